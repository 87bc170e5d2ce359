"""
Event System Module

Publish/subscribe dispatcher for outbound notifications. Settlement and
alerting collaborators subscribe here to learn when a transaction reaches a
terminal state.
"""

from enum import Enum
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid
import logging
from threading import RLock


class DomainEvent(Enum):
    """Domain events emitted by the approval engine"""
    TRANSACTION_CREATED = "transaction.created"
    VOTE_RECORDED = "vote.recorded"
    TRANSACTION_APPROVED = "transaction.approved"
    TRANSACTION_REJECTED = "transaction.rejected"


@dataclass
class EventPayload:
    """Payload for domain events"""
    event_type: DomainEvent
    entity_type: str
    entity_id: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'data': self.data,
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventPayload':
        return cls(
            event_type=DomainEvent(data['event_type']),
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            data=data['data'],
            timestamp=datetime.fromisoformat(data['timestamp']) if isinstance(data['timestamp'], str) else data['timestamp'],
            event_id=data['event_id']
        )


def _handler_name(handler: Callable) -> str:
    return getattr(handler, '__name__', repr(handler))


class EventDispatcher:
    """Central event dispatcher, publish/subscribe pattern"""

    def __init__(self):
        self._handlers: Dict[DomainEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []  # catch-all handlers
        self._lock = RLock()
        self.logger = logging.getLogger("quorum.events")

    def subscribe(self, event_type: DomainEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        with self._lock:
            self._global_handlers.append(handler)
            self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: DomainEvent, handler: Callable) -> None:
        with self._lock:
            try:
                self._handlers.get(event_type, []).remove(handler)
            except ValueError:
                self.logger.warning(
                    f"Handler {_handler_name(handler)} was not subscribed to {event_type.value}"
                )

    def publish(self, event: EventPayload) -> None:
        """Publish event to all subscribers"""
        with self._lock:
            handlers = list(self._handlers.get(event.event_type, [])) + list(self._global_handlers)

        self.logger.debug(
            f"Publishing event {event.event_type.value} for {event.entity_type}:{event.entity_id}"
        )
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                # Log but don't break the committed operation
                self.logger.error(
                    f"Error in event handler {_handler_name(handler)} for {event.event_type.value}: {e}"
                )

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()

    def get_handler_count(self, event_type: Optional[DomainEvent] = None) -> int:
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            total = sum(len(handlers) for handlers in self._handlers.values())
            return total + len(self._global_handlers)


def create_transaction_event(event_type: DomainEvent, entry) -> EventPayload:
    """Create a transaction-level event carrying the current status and votes"""
    return EventPayload(
        event_type=event_type,
        entity_type="transaction",
        entity_id=entry.id,
        data={
            "transaction_id": entry.id,
            "kind": entry.kind.value,
            "new_status": entry.status.value,
            "required_approvals": entry.required_approvals,
            "final_votes": [vote.to_dict() for vote in entry.votes],
            "version": entry.version
        }
    )


def create_vote_event(entry, vote) -> EventPayload:
    """Create a vote.recorded event"""
    return EventPayload(
        event_type=DomainEvent.VOTE_RECORDED,
        entity_type="transaction",
        entity_id=entry.id,
        data={
            "transaction_id": entry.id,
            "voter_id": vote.voter_id,
            "decision": vote.decision.value,
            "status": entry.status.value,
            "approved_count": entry.approved_count,
            "rejected_count": entry.rejected_count,
            "version": entry.version
        }
    )
