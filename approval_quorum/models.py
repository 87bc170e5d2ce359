"""
Approval Data Model Module

TransactionEntry and Vote records for multi-party approvable transactions.
All timestamps are timezone-aware UTC; amounts use Decimal and are stored as
strings so serialization is lossless.
"""

import json
from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Any
from enum import Enum


class TransactionKind(Enum):
    """Kinds of transactions that may require approval"""
    TRANSFER = "transfer"
    SWAP = "swap"
    WITHDRAWAL = "withdrawal"
    DEPOSIT = "deposit"


class TransactionStatus(Enum):
    """Approval status of a transaction"""
    PENDING = "pending"
    APPROVED = "approved"    # Terminal
    REJECTED = "rejected"    # Terminal

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class VoteDecision(Enum):
    """A participant's decision"""
    APPROVED = "approved"
    REJECTED = "rejected"


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class Vote:
    """One participant's decision on a transaction"""
    voter_id: str
    decision: VoteDecision
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    comments: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'voter_id': self.voter_id,
            'decision': self.decision.value,
            'timestamp': self.timestamp.isoformat(),
            'comments': self.comments
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Vote':
        return cls(
            voter_id=data['voter_id'],
            decision=VoteDecision(data['decision']),
            timestamp=_parse_datetime(data['timestamp']),
            comments=data.get('comments')
        )


@dataclass
class TransactionEntry:
    """
    A transaction awaiting multi-party approval.

    ``status`` and ``votes`` are only ever changed through the vote intake
    coordinator; ``version`` is owned by the entry store and advances by one
    on each successful compare-and-swap.
    """
    id: str
    kind: TransactionKind
    required_approvals: int
    rejection_is_terminal: bool
    created_at: datetime
    allow_revote: bool = False
    votes: List[Vote] = field(default_factory=list)
    status: TransactionStatus = TransactionStatus.PENDING
    version: int = 0
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Transaction details carried for approvers; never interpreted by the engine
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    description: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    initiated_by: Optional[str] = None
    eligible_voters: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.required_approvals < 1:
            raise ValueError("required_approvals must be a positive integer")
        if self.amount is not None and self.amount <= 0:
            raise ValueError("Transaction amount must be positive")
        try:
            json.dumps(self.metadata)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Transaction metadata must be JSON-serializable: {e}") from e
        if self.updated_at is None:
            self.updated_at = self.created_at

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def approved_count(self) -> int:
        return sum(1 for v in self.votes if v.decision == VoteDecision.APPROVED)

    @property
    def rejected_count(self) -> int:
        return sum(1 for v in self.votes if v.decision == VoteDecision.REJECTED)

    @property
    def remaining_approvals(self) -> int:
        return max(0, self.required_approvals - self.approved_count)

    def vote_of(self, voter_id: str) -> Optional[Vote]:
        """The recorded vote for a voter, if any"""
        for vote in self.votes:
            if vote.voter_id == voter_id:
                return vote
        return None

    def is_eligible(self, voter_id: str) -> bool:
        """An empty eligible list means anyone may vote"""
        return not self.eligible_voters or voter_id in self.eligible_voters

    def with_votes(self, votes: List[Vote]) -> 'TransactionEntry':
        return replace(self, votes=list(votes))

    def with_status(self, status: TransactionStatus) -> 'TransactionEntry':
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary for storage"""
        return {
            'id': self.id,
            'kind': self.kind.value,
            'required_approvals': self.required_approvals,
            'rejection_is_terminal': self.rejection_is_terminal,
            'allow_revote': self.allow_revote,
            'votes': [vote.to_dict() for vote in self.votes],
            'status': self.status.value,
            'version': self.version,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'from_account': self.from_account,
            'to_account': self.to_account,
            'amount': str(self.amount) if self.amount is not None else None,
            'currency': self.currency,
            'description': self.description,
            'exchange_rate': str(self.exchange_rate) if self.exchange_rate is not None else None,
            'initiated_by': self.initiated_by,
            'eligible_voters': list(self.eligible_voters),
            'metadata': self.metadata
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionEntry':
        """Create instance from a stored dictionary"""
        return cls(
            id=data['id'],
            kind=TransactionKind(data['kind']),
            required_approvals=int(data['required_approvals']),
            rejection_is_terminal=bool(data['rejection_is_terminal']),
            allow_revote=bool(data.get('allow_revote', False)),
            votes=[Vote.from_dict(v) for v in data.get('votes', [])],
            status=TransactionStatus(data.get('status', TransactionStatus.PENDING.value)),
            version=int(data.get('version', 0)),
            created_at=_parse_datetime(data['created_at']),
            updated_at=_parse_datetime(data.get('updated_at')),
            completed_at=_parse_datetime(data.get('completed_at')),
            from_account=data.get('from_account'),
            to_account=data.get('to_account'),
            amount=_parse_decimal(data.get('amount')),
            currency=data.get('currency'),
            description=data.get('description'),
            exchange_rate=_parse_decimal(data.get('exchange_rate')),
            initiated_by=data.get('initiated_by'),
            eligible_voters=list(data.get('eligible_voters') or []),
            metadata=data.get('metadata') or {}
        )


@dataclass
class VoteRecord:
    """A voter's vote together with the transaction it was cast on (history view)"""
    transaction_id: str
    transaction_status: TransactionStatus
    vote: Vote

    def to_dict(self) -> Dict[str, Any]:
        result = self.vote.to_dict()
        result['transaction_id'] = self.transaction_id
        result['transaction_status'] = self.transaction_status.value
        return result
