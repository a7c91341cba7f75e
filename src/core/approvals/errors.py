class ApprovalWorkflowError(Exception):
    pass


class UnknownChainTypeError(ApprovalWorkflowError):
    pass


class NoStepsDefinedError(ApprovalWorkflowError):
    pass


class RequestNotFoundError(ApprovalWorkflowError):
    pass


class RequestAlreadyTerminalError(ApprovalWorkflowError):
    """Decision or cancel on a request that is no longer pending.

    Expected under races and duplicate submits; callers report it as
    "already processed" rather than as a failure.
    """


class StepMismatchError(ApprovalWorkflowError):
    pass


class ApproverUnauthorizedError(ApprovalWorkflowError):
    pass


class ApprovalValidationError(ApprovalWorkflowError):
    pass


class ApprovalConcurrencyConflictError(ApprovalWorkflowError):
    """Raised by repositories when the stored version moved under a writer."""


class ChainDefinitionUnavailableError(ApprovalWorkflowError):
    """The chain a pending request was created against no longer defines its next step."""
