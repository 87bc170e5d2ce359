"""
Quorum Evaluator Module

Pure decision logic: given a transaction entry and an incoming vote, compute
the resulting vote list and status. No I/O and no shared state, so it is safe
to call from any number of threads.
"""

from datetime import datetime, timezone
from typing import List, NamedTuple, Optional, Sequence

from .errors import AlreadyTerminalError, DuplicateVoteError, IneligibleVoterError
from .models import TransactionEntry, TransactionStatus, Vote, VoteDecision


class VoteOutcome(NamedTuple):
    """Result of applying one vote to an entry"""
    votes: List[Vote]
    status: TransactionStatus
    replaced: Optional[Vote] = None


def evaluate_status(votes: Sequence[Vote], required_approvals: int,
                    rejection_is_terminal: bool) -> TransactionStatus:
    """
    Derive status from vote counts alone.

    A rejection wins over a reached quorum when rejections are terminal, so
    the result never depends on the order votes arrived in.
    """
    approved = sum(1 for v in votes if v.decision == VoteDecision.APPROVED)
    rejected = sum(1 for v in votes if v.decision == VoteDecision.REJECTED)

    if rejection_is_terminal and rejected >= 1:
        return TransactionStatus.REJECTED
    if approved >= required_approvals:
        return TransactionStatus.APPROVED
    return TransactionStatus.PENDING


def apply_vote(entry: TransactionEntry, voter_id: str, decision: VoteDecision,
               timestamp: Optional[datetime] = None,
               comments: Optional[str] = None) -> VoteOutcome:
    """
    Apply a vote to an entry without mutating it.

    Args:
        entry: Current state of the transaction
        voter_id: Voter casting the vote
        decision: APPROVED or REJECTED
        timestamp: Time of the vote (defaults to now, UTC)
        comments: Optional voter comments

    Returns:
        VoteOutcome with the new vote list, new status and the vote it
        replaced (re-vote), if any

    Raises:
        AlreadyTerminalError: Entry is already approved or rejected
        IneligibleVoterError: Voter is not in the entry's eligible list
        DuplicateVoteError: Voter already voted and re-voting is disabled
    """
    if entry.status.is_terminal:
        raise AlreadyTerminalError(entry.id, entry.status.value)

    if not entry.is_eligible(voter_id):
        raise IneligibleVoterError(entry.id, voter_id)

    previous = entry.vote_of(voter_id)
    if previous is not None and not entry.allow_revote:
        raise DuplicateVoteError(entry.id, voter_id)

    # A replacing vote moves to the end: the sequence is history, not tally order
    votes = [v for v in entry.votes if v.voter_id != voter_id]
    votes.append(Vote(
        voter_id=voter_id,
        decision=decision,
        timestamp=timestamp or datetime.now(timezone.utc),
        comments=comments
    ))

    status = evaluate_status(votes, entry.required_approvals, entry.rejection_is_terminal)
    return VoteOutcome(votes=votes, status=status, replaced=previous)


class QuorumEvaluator:
    """Object wrapper around the pure evaluation functions, for injection"""

    def apply_vote(self, entry: TransactionEntry, voter_id: str, decision: VoteDecision,
                   timestamp: Optional[datetime] = None,
                   comments: Optional[str] = None) -> VoteOutcome:
        return apply_vote(entry, voter_id, decision, timestamp, comments)

    def evaluate_status(self, entry: TransactionEntry) -> TransactionStatus:
        return evaluate_status(entry.votes, entry.required_approvals, entry.rejection_is_terminal)
