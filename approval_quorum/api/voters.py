"""
Voter-centric endpoints
"""

from typing import List

from fastapi import APIRouter, Depends

from .dependencies import ApprovalSystem, get_approval_system
from .schemas import TransactionResponse, VoteHistoryItem


router = APIRouter()


@router.get("/{voter_id}/pending", response_model=List[TransactionResponse])
def list_pending_for_voter(voter_id: str, include_voted: bool = False,
                           system: ApprovalSystem = Depends(get_approval_system)):
    """Pending transactions the voter can act on"""
    entries = system.coordinator.list_pending_for_voter(voter_id, include_voted=include_voted)
    return [TransactionResponse.from_entry(entry) for entry in entries]


@router.get("/{voter_id}/history", response_model=List[VoteHistoryItem])
def get_vote_history(voter_id: str, system: ApprovalSystem = Depends(get_approval_system)):
    """Votes the voter has cast, newest first"""
    return [VoteHistoryItem.from_record(r) for r in system.coordinator.get_vote_history(voter_id)]
