import json
import logging
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import ValidationError

from src.core.approvals.errors import UnknownChainTypeError
from src.core.approvals.models import (
    ApprovalChainDefinition,
    ChainResolutionContext,
    ChainSelector,
)

logger = logging.getLogger(__name__)


def parse_chain_catalog(catalog_json: Optional[str]) -> dict[str, ApprovalChainDefinition]:
    normalized_json = (catalog_json or "").strip()
    if not normalized_json:
        return {}
    try:
        raw = json.loads(normalized_json)
    except json.JSONDecodeError:
        logger.warning("Approval chain catalog is not valid JSON; using empty catalog")
        return {}
    if not isinstance(raw, dict):
        return {}

    catalog: dict[str, ApprovalChainDefinition] = {}
    for chain_definition_id, definition in raw.items():
        if not isinstance(chain_definition_id, str) or not isinstance(definition, dict):
            continue
        normalized_id = chain_definition_id.strip()
        if not normalized_id:
            continue
        payload = {
            "chain_definition_id": normalized_id,
            "entity_type": definition.get("entity_type"),
            "name": definition.get("name"),
            "version": str(definition.get("version", "1")),
            "selector": definition.get("selector") or {},
            "steps": _normalize_steps(definition.get("steps") or []),
        }
        try:
            parsed = ApprovalChainDefinition.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid approval chain definition",
                extra={
                    "extra_fields": {
                        "chain_definition_id": normalized_id,
                        "error_count": exc.error_count(),
                    }
                },
            )
            continue
        catalog[normalized_id] = parsed
    return catalog


def _normalize_steps(raw_steps: list) -> list:
    # Steps listed without step_order take their position in the list.
    steps = []
    for index, step in enumerate(raw_steps, start=1):
        if not isinstance(step, dict):
            steps.append(step)
            continue
        steps.append({"step_order": index, **step})
    return steps


def resolve_chain_definition(
    *,
    entity_type: str,
    context: Optional[ChainResolutionContext],
    definitions: Iterable[ApprovalChainDefinition],
) -> ApprovalChainDefinition:
    context = context or ChainResolutionContext()
    candidates = [
        definition
        for definition in definitions
        if definition.entity_type == entity_type and _selector_matches(definition.selector, context)
    ]
    if not candidates:
        raise UnknownChainTypeError(f"UNKNOWN_CHAIN_TYPE: {entity_type}")
    candidates.sort(key=_resolution_rank)
    return candidates[0]


def _selector_matches(selector: ChainSelector, context: ChainResolutionContext) -> bool:
    if selector.scope_ref is not None and selector.scope_ref != context.scope_ref:
        return False
    if selector.min_amount is None and selector.max_amount is None:
        return True
    if context.amount is None:
        return False
    if selector.min_amount is not None and context.amount < selector.min_amount:
        return False
    if selector.max_amount is not None and context.amount >= selector.max_amount:
        return False
    return True


def _resolution_rank(definition: ApprovalChainDefinition) -> tuple[int, int, Decimal, str]:
    selector = definition.selector
    scope_rank = 0 if selector.scope_ref is not None else 1
    bracketed = selector.min_amount is not None or selector.max_amount is not None
    bracket_rank = 0 if bracketed else 1
    min_amount = selector.min_amount if selector.min_amount is not None else Decimal("-1")
    return (scope_rank, bracket_rank, -min_amount, definition.chain_definition_id)
