from typing import Optional, Protocol

from src.core.approvals.models import ApprovalChainDefinition


class ApprovalChainCatalog(Protocol):
    def list_chain_definitions(self) -> list[ApprovalChainDefinition]: ...

    def get_chain_definition(
        self, *, chain_definition_id: str
    ) -> Optional[ApprovalChainDefinition]: ...
