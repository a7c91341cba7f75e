from __future__ import annotations

import os

from src.api.routers.approvals_config import (
    approval_postgres_dsn,
    approval_store_backend_name,
)
from src.api.routers.runtime_utils import env_text

_PRODUCTION_PROFILE = "PRODUCTION"
_LOCAL_PROFILE = "LOCAL"


def app_persistence_profile_name() -> str:
    profile = os.getenv("APP_PERSISTENCE_PROFILE", _LOCAL_PROFILE).strip().upper()
    return _PRODUCTION_PROFILE if profile == _PRODUCTION_PROFILE else _LOCAL_PROFILE


def validate_persistence_profile_guardrails() -> None:
    if app_persistence_profile_name() != _PRODUCTION_PROFILE:
        return
    if approval_store_backend_name() != "POSTGRES":
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_APPROVAL_POSTGRES")
    if not approval_postgres_dsn():
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_APPROVAL_POSTGRES_DSN")
    if env_text("APPROVAL_CHAIN_CATALOG_JSON") is None:
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_APPROVAL_CHAIN_CATALOG")
