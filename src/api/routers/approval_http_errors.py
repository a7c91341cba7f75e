from typing import NoReturn

from fastapi import HTTPException, status

from src.api.http_status import HTTP_422_UNPROCESSABLE
from src.core.approvals import (
    ApprovalValidationError,
    ApproverUnauthorizedError,
    ChainDefinitionUnavailableError,
    NoStepsDefinedError,
    RequestAlreadyTerminalError,
    RequestNotFoundError,
    StepMismatchError,
    UnknownChainTypeError,
)


def raise_approval_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, RequestNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(
        exc, (RequestAlreadyTerminalError, StepMismatchError, ChainDefinitionUnavailableError)
    ):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ApproverUnauthorizedError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, (UnknownChainTypeError, NoStepsDefinedError, ApprovalValidationError)):
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail=str(exc),
        ) from exc
    raise exc
