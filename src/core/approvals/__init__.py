from src.core.approvals.analytics import ApprovalAnalyticsService
from src.core.approvals.chain_catalog import ApprovalChainCatalog
from src.core.approvals.errors import (
    ApprovalConcurrencyConflictError,
    ApprovalValidationError,
    ApprovalWorkflowError,
    ApproverUnauthorizedError,
    ChainDefinitionUnavailableError,
    NoStepsDefinedError,
    RequestAlreadyTerminalError,
    RequestNotFoundError,
    StepMismatchError,
    UnknownChainTypeError,
)
from src.core.approvals.models import (
    ApprovalAnalyticsResponse,
    ApprovalCancelRequest,
    ApprovalChainCatalogResponse,
    ApprovalChainDefinition,
    ApprovalCreateRequest,
    ApprovalDecisionRequest,
    ApprovalHistoryResponse,
    ApprovalQueueResponse,
    ApprovalQueueSummary,
    ApprovalRequestListResponse,
    ApprovalRequestSnapshot,
    ApprovalSupportabilityConfigResponse,
    ChainResolutionContext,
)
from src.core.approvals.queue import ApprovalQueueService
from src.core.approvals.repository import ApprovalRequestRepository
from src.core.approvals.service import ApprovalWorkflowService

__all__ = [
    "ApprovalAnalyticsResponse",
    "ApprovalAnalyticsService",
    "ApprovalCancelRequest",
    "ApprovalChainCatalog",
    "ApprovalChainCatalogResponse",
    "ApprovalChainDefinition",
    "ApprovalConcurrencyConflictError",
    "ApprovalCreateRequest",
    "ApprovalDecisionRequest",
    "ApprovalHistoryResponse",
    "ApprovalQueueResponse",
    "ApprovalQueueService",
    "ApprovalQueueSummary",
    "ApprovalRequestListResponse",
    "ApprovalRequestRepository",
    "ApprovalRequestSnapshot",
    "ApprovalSupportabilityConfigResponse",
    "ApprovalValidationError",
    "ApprovalWorkflowError",
    "ApprovalWorkflowService",
    "ApproverUnauthorizedError",
    "ChainDefinitionUnavailableError",
    "ChainResolutionContext",
    "NoStepsDefinedError",
    "RequestAlreadyTerminalError",
    "RequestNotFoundError",
    "StepMismatchError",
    "UnknownChainTypeError",
]
