"""
Application wiring and shared dependencies
"""

from typing import Optional

from fastapi import HTTPException, Request, status

from ..audit import AuditTrail
from ..config import QuorumConfig, get_config
from ..coordinator import ApprovalCoordinator
from ..entry_store import TransactionEntryStore
from ..errors import ApprovalError
from ..events import EventDispatcher
from ..storage import StorageInterface, create_storage


class ApprovalSystem:
    """Approval engine with all components initialized"""

    def __init__(self, config: Optional[QuorumConfig] = None,
                 storage: Optional[StorageInterface] = None):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)
        self.audit_trail = AuditTrail(self.storage)
        self.event_dispatcher = EventDispatcher()
        self.store = TransactionEntryStore(self.storage)
        self.coordinator = ApprovalCoordinator(
            self.store,
            audit_trail=self.audit_trail,
            event_dispatcher=self.event_dispatcher,
            config=self.config
        )

    def close(self) -> None:
        self.storage.close()


def get_approval_system(request: Request) -> ApprovalSystem:
    return request.app.state.approval_system


# Error code -> HTTP status
ERROR_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "duplicate_id": status.HTTP_409_CONFLICT,
    "already_terminal": status.HTTP_409_CONFLICT,
    "duplicate_vote": status.HTTP_409_CONFLICT,
    "ineligible_voter": status.HTTP_403_FORBIDDEN,
    "version_conflict": status.HTTP_409_CONFLICT,
    "contention": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(error: Exception) -> HTTPException:
    """Map an engine error onto an HTTPException with a structured detail"""
    if isinstance(error, ApprovalError):
        headers = {"Retry-After": "1"} if error.code == "contention" else None
        return HTTPException(
            status_code=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
            detail=error.to_dict(),
            headers=headers
        )
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "invalid_request", "message": str(error)}
    )
