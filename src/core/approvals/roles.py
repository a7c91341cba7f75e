import json
from typing import Optional, Protocol


class ApproverRoleDirectory(Protocol):
    def get_roles(self, *, approver_id: str) -> set[str]:
        """Return the roles held by an approver; empty when unknown."""


class StaticMapApproverRoleDirectory:
    def __init__(self, role_map: dict[str, set[str]]) -> None:
        self._role_map = role_map

    def get_roles(self, *, approver_id: str) -> set[str]:
        normalized_approver_id = _normalize_optional_value(approver_id)
        if normalized_approver_id is None:
            return set()
        return set(self._role_map.get(normalized_approver_id, set()))

    def assign(self, *, approver_id: str, roles: set[str]) -> None:
        self._role_map[approver_id] = set(roles)


def parse_approver_role_map(mapping_json: Optional[str]) -> dict[str, set[str]]:
    normalized_json = (mapping_json or "").strip()
    if not normalized_json:
        return {}
    try:
        raw = json.loads(normalized_json)
    except json.JSONDecodeError:
        return {}
    if not isinstance(raw, dict):
        return {}
    mapping: dict[str, set[str]] = {}
    for approver_id, roles in raw.items():
        normalized_approver_id = _normalize_optional_value(approver_id)
        if normalized_approver_id is None:
            continue
        if isinstance(roles, str):
            roles = [roles]
        if not isinstance(roles, list):
            continue
        normalized_roles = {
            role.strip() for role in roles if isinstance(role, str) and role.strip()
        }
        if normalized_roles:
            mapping[normalized_approver_id] = normalized_roles
    return mapping


def build_approver_role_directory(*, mapping_json: Optional[str]) -> ApproverRoleDirectory:
    return StaticMapApproverRoleDirectory(role_map=parse_approver_role_map(mapping_json))


def _normalize_optional_value(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None
