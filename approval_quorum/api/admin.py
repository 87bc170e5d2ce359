"""
Admin endpoints (audit integrity)
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from .dependencies import ApprovalSystem, get_approval_system
from ..audit import AuditEventType


router = APIRouter()


@router.get("/verify")
def verify_audit_chain(system: ApprovalSystem = Depends(get_approval_system)) -> Dict[str, Any]:
    """Verify the hash chain of the audit trail"""
    result = system.audit_trail.verify_integrity()
    system.audit_trail.log_event(
        AuditEventType.AUDIT_INTEGRITY_CHECK,
        "audit_trail",
        system.audit_trail.table_name,
        {"valid": result['valid'], "total_events": result['total_events']},
        "system"
    )
    return result
