import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.api.observability import setup_observability
from src.api.persistence_profile import validate_persistence_profile_guardrails
from src.api.routers.approvals import router as approval_workflow_router
from src.api.routers.approvals_queue_routes import router as approval_queue_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI):
    validate_persistence_profile_guardrails()
    yield


app = FastAPI(
    title="Grant Approval Engine API",
    version="0.1.0",
    description=(
        "Multi-stage approval workflow service.\n\n"
        "Entities move through ordered approval chains; every decision is recorded in an "
        "append-only history and requests end `approved`, `rejected`, or `cancelled`."
    ),
    openapi_tags=[
        {
            "name": "Approval Workflow",
            "description": "Request creation, decisions, cancellation, and history endpoints.",
        },
        {
            "name": "Approval Queues and Catalog",
            "description": "Role queues, aging summaries, chain catalog, and analytics endpoints.",
        },
    ],
    lifespan=_app_lifespan,
)

setup_observability(app)

app.include_router(approval_workflow_router)
app.include_router(approval_queue_router)


@app.exception_handler(Exception)
async def unhandled_exception_to_problem_details(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception while serving request", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred.",
            "instance": str(request.url.path),
        },
    )
