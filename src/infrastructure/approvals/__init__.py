from src.infrastructure.approvals.in_memory import InMemoryApprovalRequestRepository
from src.infrastructure.approvals.postgres import PostgresApprovalRequestRepository

__all__ = ["InMemoryApprovalRequestRepository", "PostgresApprovalRequestRepository"]
