from src.infrastructure.approval_chains.env_json import EnvJsonApprovalChainCatalog

__all__ = ["EnvJsonApprovalChainCatalog"]
