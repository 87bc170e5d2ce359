"""
Transaction and vote endpoints
"""

from decimal import InvalidOperation
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status as http_status

from .dependencies import ApprovalSystem, get_approval_system, to_http_exception
from .schemas import CreateTransactionRequest, SubmitVoteRequest, TransactionResponse
from ..errors import ApprovalError
from ..models import TransactionKind, TransactionStatus


router = APIRouter()


@router.post("", response_model=TransactionResponse, status_code=http_status.HTTP_201_CREATED)
def create_transaction(request: CreateTransactionRequest,
                       system: ApprovalSystem = Depends(get_approval_system)):
    """Create a transaction awaiting approval"""
    try:
        entry = system.coordinator.create_transaction(
            kind=request.kind,
            required_approvals=request.required_approvals,
            rejection_is_terminal=request.rejection_is_terminal,
            allow_revote=request.allow_revote,
            transaction_id=request.id,
            from_account=request.from_account,
            to_account=request.to_account,
            amount=request.amount,
            currency=request.currency,
            description=request.description,
            exchange_rate=request.exchange_rate,
            initiated_by=request.initiated_by,
            eligible_voters=request.eligible_voters,
            metadata=request.metadata
        )
    except (ApprovalError, ValueError, InvalidOperation) as e:
        raise to_http_exception(e)
    return TransactionResponse.from_entry(entry)


@router.get("", response_model=List[TransactionResponse])
def list_transactions(status: Optional[str] = None, kind: Optional[str] = None,
                      system: ApprovalSystem = Depends(get_approval_system)):
    """List transactions, optionally filtered by status and kind"""
    try:
        entries = system.coordinator.list_transactions(
            status=TransactionStatus(status) if status else None,
            kind=TransactionKind(kind) if kind else None
        )
    except ValueError as e:
        raise to_http_exception(e)
    return [TransactionResponse.from_entry(entry) for entry in entries]


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: str,
                    system: ApprovalSystem = Depends(get_approval_system)):
    """Get a transaction by id"""
    try:
        entry = system.coordinator.get_transaction(transaction_id)
    except ApprovalError as e:
        raise to_http_exception(e)
    return TransactionResponse.from_entry(entry)


@router.get("/{transaction_id}/details")
def get_transaction_details(transaction_id: str, voter_id: Optional[str] = None,
                            system: ApprovalSystem = Depends(get_approval_system)) -> Dict[str, Any]:
    """Transaction with tally figures and, for a voter, whether they can vote"""
    try:
        return system.coordinator.get_transaction_details(transaction_id, voter_id)
    except ApprovalError as e:
        raise to_http_exception(e)


@router.post("/{transaction_id}/votes", response_model=TransactionResponse)
def submit_vote(transaction_id: str, request: SubmitVoteRequest,
                system: ApprovalSystem = Depends(get_approval_system)):
    """Submit an approve/reject vote"""
    try:
        entry = system.coordinator.submit_vote(
            transaction_id, request.voter_id, request.decision, comments=request.comments
        )
    except (ApprovalError, ValueError) as e:
        raise to_http_exception(e)
    return TransactionResponse.from_entry(entry)
