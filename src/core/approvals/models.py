from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

ApprovalRequestStatus = Literal["pending", "approved", "rejected", "cancelled"]
ApprovalActionType = Literal["approved", "rejected"]
ApprovalDecision = Literal["approve", "reject"]
ApprovalEventType = Literal["CREATED", "ADVANCED", "APPROVED", "REJECTED", "CANCELLED"]

TERMINAL_STATUSES = {"approved", "rejected", "cancelled"}


class StepSpec(BaseModel):
    step_order: int = Field(ge=1, description="1-based position of the step.", examples=[1])
    step_name: str = Field(description="Display name of the step.", examples=["GM Review"])
    approver_role: str = Field(
        description="Role whose members may decide this step.", examples=["gm"]
    )


class ChainSelector(BaseModel):
    min_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Inclusive lower bound of the amount bracket this chain applies to.",
        examples=["0"],
    )
    max_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Exclusive upper bound of the amount bracket this chain applies to.",
        examples=["50000"],
    )
    scope_ref: Optional[str] = Field(
        default=None,
        description="Organization scope this chain is restricted to; unset means global.",
        examples=["org_kenya_01"],
    )

    @model_validator(mode="after")
    def _check_bracket(self) -> "ChainSelector":
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.min_amount >= self.max_amount
        ):
            raise ValueError("min_amount must be lower than max_amount")
        return self


class ApprovalChainDefinition(BaseModel):
    chain_definition_id: str = Field(
        description="Unique chain definition identifier.", examples=["partner_onboarding_v1"]
    )
    entity_type: str = Field(
        description="Entity type this chain approves.", examples=["organization"]
    )
    name: Optional[str] = Field(
        default=None,
        description="Human readable chain name.",
        examples=["Partner onboarding final review"],
    )
    version: str = Field(default="1", description="Chain definition version.", examples=["1"])
    selector: ChainSelector = Field(
        default_factory=ChainSelector,
        description="Context selector narrowing when this chain applies.",
    )
    steps: List[StepSpec] = Field(
        default_factory=list,
        description="Ordered steps; step orders must be the contiguous sequence 1..n.",
        examples=[
            [
                {"step_order": 1, "step_name": "GM Review", "approver_role": "gm"},
                {"step_order": 2, "step_name": "COO Review", "approver_role": "coo"},
            ]
        ],
    )

    @model_validator(mode="after")
    def _check_step_orders(self) -> "ApprovalChainDefinition":
        orders = [step.step_order for step in self.steps]
        if orders != list(range(1, len(orders) + 1)):
            raise ValueError("step orders must be contiguous starting at 1")
        return self

    def step(self, step_order: int) -> Optional[StepSpec]:
        if 1 <= step_order <= len(self.steps):
            return self.steps[step_order - 1]
        return None


class ChainResolutionContext(BaseModel):
    amount: Optional[Decimal] = Field(
        default=None,
        description="Amount used to select an amount-bracketed chain.",
        examples=["12500.00"],
    )
    scope_ref: Optional[str] = Field(
        default=None,
        description="Organization scope used to select a scope-specific chain.",
        examples=["org_kenya_01"],
    )


class ApprovalCreateRequest(BaseModel):
    entity_type: str = Field(description="Type of entity being approved.", examples=["budget"])
    entity_id: str = Field(description="Opaque entity identifier.", examples=["bud_2026_017"])
    submitted_by: str = Field(description="Submitting actor id.", examples=["user_finance_7"])
    context: ChainResolutionContext = Field(
        default_factory=ChainResolutionContext,
        description="Context used for chain selection.",
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Caller metadata stored with the request and never interpreted.",
        examples=[{"title": "FY26 budget line 17"}],
    )


class ApprovalDecisionRequest(BaseModel):
    decision: ApprovalDecision = Field(description="Decision to record.", examples=["approve"])
    approver_id: str = Field(description="Deciding actor id.", examples=["user_gm_1"])
    approver_name: Optional[str] = Field(
        default=None, description="Deciding actor display name.", examples=["Grace M."]
    )
    step_order: Optional[int] = Field(
        default=None,
        ge=1,
        description="Step the decision targets; stale values are refused.",
        examples=[1],
    )
    comments: Optional[str] = Field(
        default=None, description="Optional decision comments.", examples=["Looks good."]
    )


class ApprovalCancelRequest(BaseModel):
    actor_id: str = Field(description="Actor cancelling the request.", examples=["user_finance_7"])
    reason: Optional[str] = Field(
        default=None, description="Optional cancellation reason.", examples=["Duplicate"]
    )


class ApprovalAction(BaseModel):
    action_id: str = Field(description="Action identifier.", examples=["apa_001"])
    request_id: str = Field(description="Owning request identifier.", examples=["apr_001"])
    step_order: int = Field(description="Step the action was recorded against.", examples=[1])
    step_name: str = Field(description="Step display name at decision time.", examples=["GM"])
    action: ApprovalActionType = Field(description="Recorded action.", examples=["approved"])
    approver_id: str = Field(description="Deciding actor id.", examples=["user_gm_1"])
    approver_name: Optional[str] = Field(
        default=None, description="Deciding actor display name.", examples=["Grace M."]
    )
    acted_at: str = Field(
        description="Decision timestamp (UTC ISO8601).", examples=["2026-03-01T10:00:00+00:00"]
    )
    comments: Optional[str] = Field(default=None, description="Decision comments.")


class ApprovalRequestSnapshot(BaseModel):
    request_id: str = Field(description="Request identifier.", examples=["apr_001"])
    entity_type: str = Field(description="Entity type.", examples=["budget"])
    entity_id: str = Field(description="Entity identifier.", examples=["bud_2026_017"])
    chain_definition_id: str = Field(description="Chain definition identifier.")
    status: ApprovalRequestStatus = Field(description="Request status.", examples=["pending"])
    current_step: int = Field(description="Current 1-based step.", examples=[1])
    step_name: str = Field(description="Name of the current step.", examples=["GM Review"])
    approver_role: str = Field(description="Role expected to decide the current step.")
    submitted_by: str = Field(description="Submitting actor id.")
    submitted_at: str = Field(description="Submission timestamp (UTC ISO8601).")
    step_entered_at: str = Field(description="When the request entered its current step.")
    completed_at: Optional[str] = Field(
        default=None, description="Terminal transition timestamp, when terminal."
    )
    cancelled_by: Optional[str] = Field(default=None, description="Cancelling actor id.")
    completed_steps: int = Field(description="Number of approved steps.", examples=[2])
    total_steps: int = Field(description="Number of steps counted for progress.", examples=[4])
    progress_percentage: float = Field(description="Approval progress in percent.", examples=[50])
    days_in_queue: Optional[int] = Field(
        default=None,
        description="Whole days spent at the current step; set only while pending.",
        examples=[3],
    )
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Caller metadata.")
    actions: List[ApprovalAction] = Field(
        default_factory=list, description="Decision history in append order."
    )


class ApprovalRequestListResponse(BaseModel):
    items: List[ApprovalRequestSnapshot] = Field(description="Requests, newest first.")
    next_cursor: Optional[str] = Field(
        default=None, description="Cursor for the next page.", examples=["apr_123"]
    )


class ApprovalHistoryResponse(BaseModel):
    request_id: str = Field(description="Request identifier.", examples=["apr_001"])
    status: ApprovalRequestStatus = Field(description="Current request status.")
    actions: List[ApprovalAction] = Field(description="Decision history in append order.")


class ApprovalQueueResponse(BaseModel):
    role: str = Field(description="Queue role.", examples=["coo"])
    total: int = Field(description="Number of queued requests.", examples=[4])
    items: List[ApprovalRequestSnapshot] = Field(
        description="Pending requests awaiting the role, oldest submission first."
    )


class ApprovalQueueSummary(BaseModel):
    role: str = Field(description="Queue role.", examples=["coo"])
    total: int = Field(description="Number of queued requests.", examples=[4])
    aging: Dict[str, int] = Field(
        description="Count of items at or above each day threshold, keyed aging_<days>.",
        examples=[{"aging_2": 3, "aging_5": 1, "aging_10": 0}],
    )
    oldest_days_in_queue: Optional[int] = Field(
        default=None, description="Largest days_in_queue in the queue.", examples=[6]
    )


class ApprovalChainCatalogResponse(BaseModel):
    total: int = Field(description="Number of chain definitions.", examples=[3])
    items: List[ApprovalChainDefinition] = Field(description="Chain definitions by id.")


class ApprovalStepBottleneck(BaseModel):
    step_order: int = Field(description="Step order.", examples=[2])
    step_name: str = Field(description="Step name.", examples=["COO Review"])
    decision_count: int = Field(description="Decisions recorded at this step.", examples=[12])
    avg_hours_in_step: float = Field(
        description="Average hours between entering the step and deciding it.", examples=[30.5]
    )


class ApprovalAnalyticsResponse(BaseModel):
    total_requests: int = Field(description="Requests in the analysed window.", examples=[20])
    pending_count: int = Field(description="Pending requests.", examples=[5])
    approved_count: int = Field(description="Approved requests.", examples=[11])
    rejected_count: int = Field(description="Rejected requests.", examples=[3])
    cancelled_count: int = Field(description="Cancelled requests.", examples=[1])
    overdue_count: int = Field(
        description="Pending requests older than the overdue horizon.", examples=[2]
    )
    avg_hours_to_complete: Optional[float] = Field(
        default=None, description="Average submit-to-terminal hours.", examples=[52.25]
    )
    approval_rate: float = Field(
        description="Approved share of decided (approved + rejected) requests, in percent.",
        examples=[78.57],
    )
    bottlenecks: List[ApprovalStepBottleneck] = Field(
        description="Steps ordered by average hours spent, slowest first."
    )


class ApprovalEvent(BaseModel):
    event_id: str = Field(description="Event identifier.", examples=["ape_001"])
    event_type: ApprovalEventType = Field(description="Event type.", examples=["ADVANCED"])
    request_id: str = Field(description="Request identifier.")
    entity_type: str = Field(description="Entity type.")
    entity_id: str = Field(description="Entity identifier.")
    status: ApprovalRequestStatus = Field(description="Request status after the change.")
    step_order: int = Field(description="Current step after the change.")
    approver_role: str = Field(description="Role expected to act next, or last step role.")
    actor_id: str = Field(description="Actor who caused the change.")
    occurred_at: datetime = Field(description="Event timestamp.")


class ApprovalRequestRecord(BaseModel):
    request_id: str = Field(description="Internal request identifier.", examples=["apr_001"])
    entity_type: str = Field(description="Internal entity type.", examples=["budget"])
    entity_id: str = Field(description="Internal entity identifier.", examples=["bud_2026_017"])
    chain_definition_id: str = Field(description="Internal chain definition identifier.")
    total_steps: int = Field(description="Chain length captured at creation.", examples=[3])
    status: ApprovalRequestStatus = Field(description="Internal status.", examples=["pending"])
    current_step: int = Field(description="Internal current step.", examples=[1])
    step_name: str = Field(description="Internal current step name.", examples=["Finance"])
    approver_role: str = Field(description="Internal current step role.", examples=["finance"])
    submitted_by: str = Field(description="Internal submitting actor id.")
    submitted_at: datetime = Field(description="Internal submission timestamp.")
    step_entered_at: datetime = Field(description="Internal current-step entry timestamp.")
    completed_at: Optional[datetime] = Field(
        default=None, description="Internal terminal timestamp."
    )
    cancelled_by: Optional[str] = Field(default=None, description="Internal cancelling actor.")
    version: int = Field(default=1, description="Internal optimistic concurrency version.")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Internal metadata.")


class ApprovalActionRecord(BaseModel):
    action_id: str = Field(description="Internal action identifier.", examples=["apa_001"])
    request_id: str = Field(description="Internal request identifier.", examples=["apr_001"])
    step_order: int = Field(description="Internal step order.", examples=[1])
    step_name: str = Field(description="Internal step name.", examples=["Finance"])
    action: ApprovalActionType = Field(description="Internal action.", examples=["approved"])
    approver_id: str = Field(description="Internal approver id.")
    approver_name: Optional[str] = Field(default=None, description="Internal approver name.")
    acted_at: datetime = Field(description="Internal decision timestamp.")
    comments: Optional[str] = Field(default=None, description="Internal comments.")


class ApprovalTransitionResult(BaseModel):
    request: ApprovalRequestRecord = Field(description="Request state after the transition.")
    action: Optional[ApprovalActionRecord] = Field(
        default=None, description="Action appended by the transition, if any."
    )


class ApprovalRequestView(BaseModel):
    request: ApprovalRequestRecord = Field(description="Request state at read time.")
    actions: List[ApprovalActionRecord] = Field(
        default_factory=list,
        description="Actions recorded up to the same read, in append order.",
    )


class ApprovalSupportabilityConfigResponse(BaseModel):
    store_backend: str = Field(
        description="Configured request store backend.", examples=["POSTGRES"]
    )
    backend_ready: bool = Field(description="Whether the store backend initialised.")
    backend_init_error: Optional[str] = Field(
        default=None,
        description="Stable error code when the backend failed to initialise.",
        examples=["APPROVAL_POSTGRES_CONNECTION_FAILED"],
    )
    chain_definition_count: int = Field(description="Loaded chain definitions.", examples=[3])
    workflow_enabled: bool = Field(description="Whether approval routes are enabled.")
    analytics_enabled: bool = Field(description="Whether analytics routes are enabled.")
    require_step_order: bool = Field(description="Whether decisions must name their step.")
    require_rejection_comments: bool = Field(description="Whether rejections need comments.")
    cancel_requires_submitter: bool = Field(
        description="Whether only the submitter may cancel a request."
    )
    queue_aging_thresholds: List[int] = Field(
        description="Default day thresholds for queue summaries.", examples=[[2, 5, 10]]
    )
