from typing import Optional

from src.core.approvals.chains import parse_chain_catalog
from src.core.approvals.models import ApprovalChainDefinition


class EnvJsonApprovalChainCatalog:
    def __init__(self, *, catalog_json: Optional[str]) -> None:
        self._definitions = parse_chain_catalog(catalog_json)

    def list_chain_definitions(self) -> list[ApprovalChainDefinition]:
        return sorted(
            self._definitions.values(),
            key=lambda item: (item.entity_type, item.chain_definition_id),
        )

    def get_chain_definition(
        self, *, chain_definition_id: str
    ) -> Optional[ApprovalChainDefinition]:
        return self._definitions.get(chain_definition_id)

