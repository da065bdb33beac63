"""Event system for FormGate.

This module provides the event data structures and event emitter for audit
logging and notifications. Every status transition, rejected activation and
record mutation emits a typed StatusEvent.

Cascading deactivations are not errors: they surface to callers as an
``*.auto_deactivated`` event alongside the successful edit that caused them.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
import json
import logging
import uuid

from dateutil.parser import isoparse
from typing_extensions import Self

from formgate.types import EntityKind, EventType, Status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusEvent:
    """A single event in a Form or Template lifecycle.

    Attributes:
        event_id: Unique event identifier (e.g., "evt_01H8...")
        type: Event type from EventType enum
        entity_kind: Whether the event concerns a form or a template
        entity_id: Id of the form or template
        ts: UTC timestamp when the event occurred
        status: Entity status after this event
        actor: Optional - id of the user who triggered the event
        payload: Optional event-specific data (previous status, issue codes)

    Examples:
        >>> from datetime import datetime, timezone
        >>> event = StatusEvent(
        ...     event_id="evt_001",
        ...     type=EventType.FORM_ACTIVATED,
        ...     entity_kind=EntityKind.FORM,
        ...     entity_id="form_001",
        ...     ts=datetime.now(timezone.utc),
        ...     status=Status.ACTIVE,
        ... )
    """
    event_id: str
    type: EventType
    entity_kind: EntityKind
    entity_id: str
    ts: datetime
    status: Status
    actor: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        """Normalize string values to enums."""
        if isinstance(self.type, str):
            object.__setattr__(self, "type", EventType(self.type))
        if isinstance(self.entity_kind, str):
            object.__setattr__(self, "entity_kind", EntityKind(self.entity_kind))
        if isinstance(self.status, str):
            object.__setattr__(self, "status", Status(self.status))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Timestamp is formatted as ISO 8601 string.
        """
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "entityKind": self.entity_kind.value,
            "entityId": self.entity_id,
            "ts": self.ts.isoformat(),
            "status": self.status.value,
        }
        if self.actor is not None:
            result["actor"] = self.actor
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Convert event to a single-line JSON string."""
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Self:
        """Create StatusEvent from dictionary (camelCase keys)."""
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            entity_kind=EntityKind(data["entityKind"]),
            entity_id=data["entityId"],
            ts=isoparse(data["ts"]),
            status=Status(data["status"]),
            actor=data.get("actor"),
            payload=data.get("payload"),
        )


def make_event(
    event_type: EventType,
    entity_kind: EntityKind,
    entity_id: str,
    status: Status,
    actor: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> StatusEvent:
    """Build a StatusEvent with a fresh id and the current UTC time."""
    return StatusEvent(
        event_id=f"evt_{uuid.uuid4().hex[:16]}",
        type=event_type,
        entity_kind=entity_kind,
        entity_id=entity_id,
        ts=datetime.now(timezone.utc),
        status=status,
        actor=actor,
        payload=payload,
    )


EventListener = Callable[[StatusEvent], None]
"""Type alias for event listener callbacks.

Listeners are called synchronously when events are emitted.
"""


class EventEmitter:
    """Event emitter for managing event listeners and dispatching events.

    Features:
    - Type-specific subscriptions (listen to specific event types)
    - Wildcard subscriptions (listen to all events)
    - Synchronous dispatch (listeners called in registration order)
    - Error isolation (listener exceptions are logged, not propagated)

    Examples:
        >>> emitter = EventEmitter()
        >>> emitter.on(EventType.FORM_AUTO_DEACTIVATED, lambda e: print(e.entity_id))
        >>> emitter.on_any(lambda e: print(e.type.value))
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Subscribe to a specific event type."""
        self._listeners.setdefault(event_type, []).append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types."""
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type. Unknown listeners are ignored."""
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def off_any(self, listener: EventListener) -> None:
        """Unsubscribe from wildcard subscription. Unknown listeners are ignored."""
        if listener in self._any_listeners:
            self._any_listeners.remove(listener)

    def emit(self, event: StatusEvent) -> None:
        """Dispatch an event to all registered listeners.

        Type-specific listeners run first, then wildcard listeners. A listener
        that raises is logged and skipped so it cannot affect other listeners
        or the mutation that produced the event.
        """
        listeners = list(self._listeners.get(event.type, [])) + list(self._any_listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Event listener %r failed for %s on %s %s",
                    listener,
                    event.type.value,
                    event.entity_kind.value,
                    event.entity_id,
                )

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Count registered listeners, for one type or in total (wildcards included)."""
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return len(self._any_listeners) + sum(len(ls) for ls in self._listeners.values())


__all__ = [
    "StatusEvent",
    "make_event",
    "EventListener",
    "EventEmitter",
]
