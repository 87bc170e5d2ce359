"""
Approval Intake Coordinator Module

The concurrency-safe entry point for creating approvable transactions and
submitting votes. Holds no entry state between calls: every operation re-reads
the store, applies the quorum evaluator and writes back with compare-and-swap,
retrying with exponential backoff when another vote wins the race.
"""

import random
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union

from .audit import AuditTrail, AuditEventType
from .config import QuorumConfig, get_config
from .entry_store import TransactionEntryStore
from .errors import ContentionError, VersionConflictError
from .events import DomainEvent, EventDispatcher, create_transaction_event, create_vote_event
from .logging_config import get_logger, log_action
from .models import (
    TransactionEntry, TransactionKind, TransactionStatus, Vote, VoteDecision, VoteRecord
)
from .quorum import apply_vote


def calculate_backoff(attempt: int, base_delay: float, max_delay: float,
                      jitter_factor: float = 0.0,
                      rng: Optional[random.Random] = None) -> float:
    """
    Exponential backoff delay with jitter.

    Args:
        attempt: Retry number (0 for the first retry)
        base_delay: Base delay in seconds
        max_delay: Cap on the exponential component
        jitter_factor: Random jitter range (0.25 = +/-25%)
        rng: Optional Random instance for deterministic testing

    Returns:
        Delay in seconds, never negative
    """
    delay = min(base_delay * (2 ** attempt), max_delay)
    if jitter_factor > 0:
        rng = rng or random
        jitter_range = delay * jitter_factor
        delay += rng.uniform(-jitter_range, jitter_range)
    return max(0.0, delay)


def _to_decimal(value: Union[Decimal, str, int, float, None]) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


class ApprovalCoordinator:
    """Accepts approve/reject votes and drives transactions to their terminal state"""

    def __init__(
        self,
        store: TransactionEntryStore,
        audit_trail: Optional[AuditTrail] = None,
        event_dispatcher: Optional[EventDispatcher] = None,
        config: Optional[QuorumConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None
    ):
        self.store = store
        self.config = config or get_config()
        self.audit_trail = audit_trail if self.config.enable_audit_logging else None
        self.event_dispatcher = event_dispatcher if self.config.enable_events else None
        self.logger = get_logger("quorum.coordinator")
        self._sleep = sleep
        self._clock = clock
        self._rng = rng

    # Transaction creation and queries

    def create_transaction(
        self,
        kind: Union[TransactionKind, str],
        required_approvals: int,
        rejection_is_terminal: Optional[bool] = None,
        allow_revote: Optional[bool] = None,
        transaction_id: Optional[str] = None,
        from_account: Optional[str] = None,
        to_account: Optional[str] = None,
        amount: Union[Decimal, str, int, float, None] = None,
        currency: Optional[str] = None,
        description: Optional[str] = None,
        exchange_rate: Union[Decimal, str, int, float, None] = None,
        initiated_by: Optional[str] = None,
        eligible_voters: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> TransactionEntry:
        """
        Create a pending transaction with an empty vote list

        Args:
            kind: transfer, swap, withdrawal or deposit
            required_approvals: Quorum threshold, at least 1
            rejection_is_terminal: Whether one rejection ends the transaction
                (defaults to configuration)
            allow_revote: Whether a voter may replace their vote while pending
                (defaults to configuration)
            transaction_id: Caller-chosen id; a UUID4 is generated when omitted
            eligible_voters: Restrict voting to these ids; empty means anyone

        Returns:
            The stored TransactionEntry at version 0

        Raises:
            ValueError: Invalid kind, threshold, amount or non-JSON metadata
            DuplicateIdError: transaction_id already exists
        """
        now = datetime.now(timezone.utc)
        if rejection_is_terminal is None:
            rejection_is_terminal = self.config.default_rejection_is_terminal
        if allow_revote is None:
            allow_revote = self.config.allow_revote

        entry = TransactionEntry(
            id=transaction_id or str(uuid.uuid4()),
            kind=TransactionKind(kind),
            required_approvals=required_approvals,
            rejection_is_terminal=rejection_is_terminal,
            allow_revote=allow_revote,
            created_at=now,
            from_account=from_account,
            to_account=to_account,
            amount=_to_decimal(amount),
            currency=currency,
            description=description,
            exchange_rate=_to_decimal(exchange_rate),
            initiated_by=initiated_by,
            eligible_voters=list(eligible_voters or []),
            metadata=metadata or {}
        )
        entry = self.store.create(entry)

        log_action(
            self.logger, "info", f"Transaction created: {entry.kind.value}",
            action="create_transaction", resource=f"transaction:{entry.id}",
            extra={
                "transaction_id": entry.id,
                "kind": entry.kind.value,
                "required_approvals": entry.required_approvals,
                "rejection_is_terminal": entry.rejection_is_terminal,
                "allow_revote": entry.allow_revote
            }
        )
        if self.audit_trail:
            try:
                self.audit_trail.log_event(
                    AuditEventType.TRANSACTION_CREATED,
                    "transaction",
                    entry.id,
                    {
                        "kind": entry.kind.value,
                        "required_approvals": entry.required_approvals,
                        "rejection_is_terminal": entry.rejection_is_terminal,
                        "allow_revote": entry.allow_revote,
                        "amount": entry.amount,
                        "currency": entry.currency
                    },
                    initiated_by
                )
            except Exception as e:
                self._side_effect_failed("audit", entry.id, initiated_by, e)
        self._publish(create_transaction_event(DomainEvent.TRANSACTION_CREATED, entry))
        return entry

    def get_transaction(self, transaction_id: str) -> TransactionEntry:
        """Current entry; raises NotFoundError for unknown ids"""
        return self.store.get(transaction_id)

    def list_transactions(self, status: Optional[TransactionStatus] = None,
                          kind: Optional[TransactionKind] = None) -> List[TransactionEntry]:
        return self.store.list_entries(status=status, kind=kind)

    def list_pending_for_voter(self, voter_id: str,
                               include_voted: bool = False) -> List[TransactionEntry]:
        """
        Pending transactions this voter may act on, oldest first.

        Matches the ``can_vote`` flag of get_transaction_details: entries the
        voter already voted on are listed only when they allow re-voting,
        or when include_voted is set.
        """
        return [
            entry for entry in self.store.list_entries(status=TransactionStatus.PENDING)
            if entry.is_eligible(voter_id)
            and (include_voted or self._can_vote(entry, voter_id))
        ]

    def get_vote_history(self, voter_id: str) -> List[VoteRecord]:
        """Every vote this voter has on record, newest first"""
        history = []
        for entry in self.store.list_entries():
            vote = entry.vote_of(voter_id)
            if vote is not None:
                history.append(VoteRecord(
                    transaction_id=entry.id,
                    transaction_status=entry.status,
                    vote=vote
                ))
        return sorted(history, key=lambda r: r.vote.timestamp, reverse=True)

    def get_transaction_details(self, transaction_id: str,
                                voter_id: Optional[str] = None) -> Dict[str, Any]:
        """Serialized entry plus tally figures for display"""
        entry = self.store.get(transaction_id)
        details = entry.to_dict()
        details['approved_count'] = entry.approved_count
        details['rejected_count'] = entry.rejected_count
        details['remaining_approvals'] = entry.remaining_approvals
        if voter_id is not None:
            details['can_vote'] = self._can_vote(entry, voter_id)
        return details

    @staticmethod
    def _can_vote(entry: TransactionEntry, voter_id: str) -> bool:
        if entry.is_terminal or not entry.is_eligible(voter_id):
            return False
        return entry.allow_revote or entry.vote_of(voter_id) is None

    # Vote intake

    def submit_vote(
        self,
        transaction_id: str,
        voter_id: str,
        decision: Union[VoteDecision, str],
        comments: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> TransactionEntry:
        """
        Submit an approve/reject vote

        Args:
            transaction_id: Transaction being voted on
            voter_id: Voter casting the vote
            decision: VoteDecision or its value ("approved" / "rejected")
            comments: Optional voter comments
            timeout: Overall deadline in seconds for the retry loop
                (defaults to configuration; None means attempts bound only)

        Returns:
            The successfully stored entry

        Raises:
            NotFoundError: Unknown transaction id
            AlreadyTerminalError: Transaction already approved or rejected
            DuplicateVoteError: Voter already voted and re-voting is disabled
            IneligibleVoterError: Voter is not an eligible approver
            ContentionError: Vote not committed within attempts or deadline
        """
        decision = VoteDecision(decision)
        if timeout is None:
            timeout = self.config.vote_timeout_seconds
        deadline = self._clock() + timeout if timeout is not None else None
        max_attempts = max(1, self.config.max_vote_attempts)

        for attempt in range(max_attempts):
            if deadline is not None and self._clock() >= deadline:
                raise self._contention(transaction_id, voter_id, attempt, "timeout")

            entry = self.store.get(transaction_id)
            outcome = apply_vote(entry, voter_id, decision, comments=comments)

            candidate = entry.with_votes(outcome.votes).with_status(outcome.status)
            if outcome.status.is_terminal:
                candidate.completed_at = datetime.now(timezone.utc)

            try:
                stored = self.store.compare_and_swap(transaction_id, entry.version, candidate)
            except VersionConflictError as e:
                if attempt + 1 >= max_attempts:
                    break
                delay = calculate_backoff(
                    attempt,
                    self.config.backoff_base_seconds,
                    self.config.backoff_max_seconds,
                    self.config.backoff_jitter,
                    self._rng
                )
                if deadline is not None and self._clock() + delay >= deadline:
                    raise self._contention(transaction_id, voter_id, attempt + 1, "timeout")
                self.logger.debug(
                    f"Retry {attempt + 1}/{max_attempts - 1} for vote by {voter_id} on "
                    f"{transaction_id} after {delay:.3f}s: {e}"
                )
                self._sleep(delay)
                continue

            self._record_vote(entry, stored, outcome.votes[-1], outcome.replaced is not None)
            return stored

        raise self._contention(transaction_id, voter_id, max_attempts, "retries exhausted")

    def _contention(self, transaction_id: str, voter_id: str, attempts: int,
                    reason: str) -> ContentionError:
        log_action(
            self.logger, "error", f"Vote contention on transaction {transaction_id}: {reason}",
            voter_id=voter_id, action="submit_vote", resource=f"transaction:{transaction_id}",
            extra={"attempts": attempts, "reason": reason}
        )
        return ContentionError(transaction_id, attempts, reason)

    def _record_vote(self, previous: TransactionEntry, stored: TransactionEntry,
                     vote: Vote, replaced: bool) -> None:
        """Log, audit and publish a committed vote"""
        transitioned = not previous.is_terminal and stored.is_terminal

        log_action(
            self.logger, "info",
            f"Vote {vote.decision.value} recorded on transaction {stored.id} "
            f"({stored.approved_count}/{stored.required_approvals} approved, status {stored.status.value})",
            voter_id=vote.voter_id, action="submit_vote", resource=f"transaction:{stored.id}",
            extra={
                "transaction_id": stored.id,
                "decision": vote.decision.value,
                "status": stored.status.value,
                "version": stored.version,
                "replaced_previous_vote": replaced
            }
        )

        if self.audit_trail:
            try:
                self._audit_vote(stored, vote, replaced, transitioned)
            except Exception as e:
                # Vote already committed
                self._side_effect_failed("audit", stored.id, vote.voter_id, e)

        self._publish(create_vote_event(stored, vote))
        if transitioned:
            log_action(
                self.logger, "info", f"Transaction {stored.id} {stored.status.value}",
                action="transition", resource=f"transaction:{stored.id}",
                extra={"status": stored.status.value, "votes": len(stored.votes)}
            )
            self._publish(create_transaction_event(
                DomainEvent.TRANSACTION_APPROVED
                if stored.status == TransactionStatus.APPROVED
                else DomainEvent.TRANSACTION_REJECTED,
                stored
            ))

    def _audit_vote(self, stored: TransactionEntry, vote: Vote, replaced: bool,
                    transitioned: bool) -> None:
        self.audit_trail.log_event(
            AuditEventType.VOTE_RECORDED,
            "transaction",
            stored.id,
            {
                "decision": vote.decision.value,
                "comments": vote.comments,
                "replaced_previous_vote": replaced,
                "status": stored.status.value,
                "version": stored.version
            },
            vote.voter_id
        )
        if transitioned:
            self.audit_trail.log_event(
                AuditEventType.TRANSACTION_APPROVED
                if stored.status == TransactionStatus.APPROVED
                else AuditEventType.TRANSACTION_REJECTED,
                "transaction",
                stored.id,
                {
                    "final_votes": [v.to_dict() for v in stored.votes],
                    "approved_count": stored.approved_count,
                    "rejected_count": stored.rejected_count
                },
                vote.voter_id
            )

    def _side_effect_failed(self, effect: str, transaction_id: str,
                            voter_id: Optional[str], error: Exception) -> None:
        log_action(
            self.logger, "error",
            f"Post-commit {effect} failed for transaction {transaction_id}: {error}",
            voter_id=voter_id, action=f"{effect}_failed",
            resource=f"transaction:{transaction_id}",
            extra={"error_type": type(error).__name__}
        )

    def _publish(self, event) -> None:
        if self.event_dispatcher:
            try:
                self.event_dispatcher.publish(event)
            except Exception as e:
                self._side_effect_failed("publish", event.entity_id, None, e)
