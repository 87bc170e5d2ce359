"""
Pydantic schemas for API requests and responses
"""

from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field

from ..models import TransactionEntry, VoteRecord


class CreateTransactionRequest(BaseModel):
    kind: str = Field(..., description="Transaction kind (transfer, swap, withdrawal, deposit)")
    required_approvals: int = Field(..., ge=1, description="Quorum threshold")
    rejection_is_terminal: Optional[bool] = Field(None, description="Defaults to server configuration")
    allow_revote: Optional[bool] = Field(None, description="Defaults to server configuration")
    id: Optional[str] = Field(None, description="Caller-chosen transaction id")
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    amount: Optional[str] = Field(None, description="Decimal amount as string")
    currency: Optional[str] = None
    description: Optional[str] = None
    exchange_rate: Optional[str] = Field(None, description="Decimal rate as string")
    initiated_by: Optional[str] = None
    eligible_voters: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SubmitVoteRequest(BaseModel):
    voter_id: str = Field(..., min_length=1)
    decision: str = Field(..., description="approved or rejected")
    comments: Optional[str] = None


class VoteModel(BaseModel):
    voter_id: str
    decision: str
    timestamp: str
    comments: Optional[str] = None


class TransactionResponse(BaseModel):
    id: str
    kind: str
    status: str
    version: int
    required_approvals: int
    rejection_is_terminal: bool
    allow_revote: bool
    votes: List[VoteModel]
    created_at: str
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    description: Optional[str] = None
    exchange_rate: Optional[str] = None
    initiated_by: Optional[str] = None
    eligible_voters: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_entry(cls, entry: TransactionEntry) -> 'TransactionResponse':
        return cls(**entry.to_dict())


class VoteHistoryItem(BaseModel):
    transaction_id: str
    transaction_status: str
    voter_id: str
    decision: str
    timestamp: str
    comments: Optional[str] = None

    @classmethod
    def from_record(cls, record: VoteRecord) -> 'VoteHistoryItem':
        return cls(**record.to_dict())
