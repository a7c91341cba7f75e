import os
import warnings
from typing import Optional, cast

from src.api.routers.runtime_utils import env_flag, env_positive_int, env_text
from src.core.approvals.chain_catalog import ApprovalChainCatalog
from src.core.approvals.queue import parse_thresholds
from src.core.approvals.repository import ApprovalRequestRepository
from src.core.approvals.roles import ApproverRoleDirectory, build_approver_role_directory
from src.infrastructure.approval_chains import EnvJsonApprovalChainCatalog
from src.infrastructure.approvals import (
    InMemoryApprovalRequestRepository,
    PostgresApprovalRequestRepository,
)

_CHAIN_CATALOG: Optional[EnvJsonApprovalChainCatalog] = None
_CHAIN_CATALOG_RAW: Optional[str] = None


def approval_store_backend_name() -> str:
    backend = os.getenv("APPROVAL_STORE_BACKEND", "IN_MEMORY").strip().upper()
    if backend == "POSTGRES":
        return "POSTGRES"
    warnings.warn(
        "APPROVAL_STORE_BACKEND legacy runtime backend (IN_MEMORY) is deprecated; use POSTGRES.",
        DeprecationWarning,
        stacklevel=2,
    )
    return "IN_MEMORY"


def approval_postgres_dsn() -> str:
    return os.getenv("APPROVAL_POSTGRES_DSN", "").strip()


def _postgres_connection_exception_types() -> tuple[type[BaseException], ...]:
    types: list[type[BaseException]] = [
        ConnectionError,
        OSError,
        TimeoutError,
        TypeError,
        ValueError,
    ]
    try:
        import psycopg
    except ImportError:
        pass
    else:
        types.append(psycopg.Error)
    return tuple(types)


def build_repository() -> ApprovalRequestRepository:
    backend = approval_store_backend_name()
    if backend == "POSTGRES":
        dsn = approval_postgres_dsn()
        if not dsn:
            raise RuntimeError("APPROVAL_POSTGRES_DSN_REQUIRED")
        try:
            return cast(ApprovalRequestRepository, PostgresApprovalRequestRepository(dsn=dsn))
        except RuntimeError:
            raise
        except _postgres_connection_exception_types() as exc:
            raise RuntimeError("APPROVAL_POSTGRES_CONNECTION_FAILED") from exc
    return cast(ApprovalRequestRepository, InMemoryApprovalRequestRepository())


def build_chain_catalog() -> ApprovalChainCatalog:
    global _CHAIN_CATALOG
    global _CHAIN_CATALOG_RAW
    raw_catalog = os.getenv("APPROVAL_CHAIN_CATALOG_JSON")
    if _CHAIN_CATALOG is None or _CHAIN_CATALOG_RAW != raw_catalog:
        _CHAIN_CATALOG = EnvJsonApprovalChainCatalog(catalog_json=raw_catalog)
        _CHAIN_CATALOG_RAW = raw_catalog
    return _CHAIN_CATALOG


def build_role_directory() -> ApproverRoleDirectory:
    return build_approver_role_directory(mapping_json=os.getenv("APPROVAL_ROLE_DIRECTORY_JSON"))


def queue_aging_thresholds() -> tuple[int, ...]:
    return parse_thresholds(env_text("APPROVAL_QUEUE_AGING_THRESHOLDS"))


def analytics_overdue_hours() -> int:
    return env_positive_int("APPROVAL_ANALYTICS_OVERDUE_HOURS", 48)


def require_step_order() -> bool:
    return env_flag("APPROVAL_REQUIRE_STEP_ORDER", False)


def require_rejection_comments() -> bool:
    return env_flag("APPROVAL_REQUIRE_REJECTION_COMMENTS", False)


def cancel_requires_submitter() -> bool:
    return env_flag("APPROVAL_CANCEL_REQUIRES_SUBMITTER", False)


def reset_chain_catalog_for_tests() -> None:
    global _CHAIN_CATALOG
    global _CHAIN_CATALOG_RAW
    _CHAIN_CATALOG = None
    _CHAIN_CATALOG_RAW = None
