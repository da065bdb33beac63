"""Unit tests for the event system.

Tests cover:
- StatusEvent creation and string-to-enum normalization
- Event serialization (to_dict, to_jsonl) and deserialization (from_dict)
- make_event ids and timestamps
- EventEmitter subscriptions, ordering and listener isolation
"""

import json
import logging
from datetime import datetime, timezone

import pytest

from formgate.events import EventEmitter, StatusEvent, make_event
from formgate.types import EntityKind, EventType, Status


def sample_event(**overrides):
    values = dict(
        event_id="evt_001",
        type=EventType.FORM_ACTIVATED,
        entity_kind=EntityKind.FORM,
        entity_id="form_001",
        ts=datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc),
        status=Status.ACTIVE,
    )
    values.update(overrides)
    return StatusEvent(**values)


class TestStatusEventCreation:
    """Test StatusEvent creation."""

    def test_create_event_with_required_fields(self):
        """Should create event with optional fields left empty."""
        event = sample_event()
        assert event.type == EventType.FORM_ACTIVATED
        assert event.entity_kind == EntityKind.FORM
        assert event.status == Status.ACTIVE
        assert event.actor is None
        assert event.payload is None

    def test_create_event_with_string_enums(self):
        """Should normalize string values to enums."""
        event = sample_event(
            type="template.auto_deactivated",
            entity_kind="template",
            status="inactive",
        )
        assert event.type == EventType.TEMPLATE_AUTO_DEACTIVATED
        assert event.entity_kind == EntityKind.TEMPLATE
        assert event.status == Status.INACTIVE

    def test_unknown_event_type(self):
        with pytest.raises(ValueError):
            sample_event(type="form.published")

    def test_event_is_immutable(self):
        event = sample_event()
        with pytest.raises(AttributeError):
            event.status = Status.INACTIVE


class TestEventSerialization:
    """Test to_dict, to_jsonl and from_dict."""

    def test_to_dict_without_optional_fields(self):
        """Should omit actor and payload when unset."""
        assert sample_event().to_dict() == {
            "eventId": "evt_001",
            "type": "form.activated",
            "entityKind": "form",
            "entityId": "form_001",
            "ts": "2024-03-01T12:30:00+00:00",
            "status": "active",
        }

    def test_to_dict_with_actor_and_payload(self):
        event = sample_event(actor="user_1", payload={"fromStatus": "inactive"})
        data = event.to_dict()
        assert data["actor"] == "user_1"
        assert data["payload"] == {"fromStatus": "inactive"}

    def test_to_jsonl_format(self):
        """Should produce one compact JSON line."""
        line = sample_event(payload={"reasons": ["NO_APPROVER"]}).to_jsonl()
        assert "\n" not in line
        assert ", " not in line
        assert json.loads(line)["payload"] == {"reasons": ["NO_APPROVER"]}

    def test_from_dict_handles_z_timezone(self):
        data = sample_event().to_dict()
        data["ts"] = "2024-03-01T12:30:00Z"
        event = StatusEvent.from_dict(data)
        assert event.ts == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

    def test_roundtrip(self):
        event = sample_event(actor="user_1", payload={"fromStatus": "inactive"})
        assert StatusEvent.from_dict(event.to_dict()) == event


class TestMakeEvent:
    """Test the event factory."""

    def test_fresh_id_and_utc_timestamp(self):
        first = make_event(EventType.FORM_CREATED, EntityKind.FORM, "form_1", Status.INACTIVE)
        second = make_event(EventType.FORM_CREATED, EntityKind.FORM, "form_1", Status.INACTIVE)
        assert first.event_id.startswith("evt_")
        assert len(first.event_id) == 20
        assert first.event_id != second.event_id
        assert first.ts.tzinfo == timezone.utc

    def test_carries_actor_and_payload(self):
        event = make_event(
            EventType.TEMPLATE_AUTO_DEACTIVATED,
            EntityKind.TEMPLATE,
            "tpl_1",
            Status.INACTIVE,
            actor="user_2",
            payload={"reasons": ["NO_ACTIVE_FORMS"]},
        )
        assert event.actor == "user_2"
        assert event.payload == {"reasons": ["NO_ACTIVE_FORMS"]}


class TestEventEmitter:
    """Test EventEmitter subscriptions and dispatching."""

    def test_subscribe_to_specific_event_type(self):
        """Should only deliver events of the subscribed type."""
        emitter = EventEmitter()
        received = []
        emitter.on(EventType.FORM_ACTIVATED, received.append)

        emitter.emit(sample_event())
        emitter.emit(sample_event(type=EventType.FORM_DEACTIVATED, status=Status.INACTIVE))

        assert [e.type for e in received] == [EventType.FORM_ACTIVATED]

    def test_type_specific_listeners_run_before_wildcards(self):
        emitter = EventEmitter()
        order = []
        emitter.on_any(lambda e: order.append("any"))
        emitter.on(EventType.FORM_ACTIVATED, lambda e: order.append("typed"))

        emitter.emit(sample_event())

        assert order == ["typed", "any"]

    def test_off_and_off_any(self):
        emitter = EventEmitter()
        received = []
        emitter.on(EventType.FORM_ACTIVATED, received.append)
        emitter.on_any(received.append)

        emitter.off(EventType.FORM_ACTIVATED, received.append)
        emitter.off_any(received.append)
        emitter.emit(sample_event())

        assert received == []
        assert emitter.listener_count() == 0

    def test_off_unknown_listener_is_ignored(self):
        emitter = EventEmitter()
        emitter.off(EventType.FORM_ACTIVATED, print)
        emitter.off_any(print)
        assert emitter.listener_count() == 0

    def test_listener_count(self):
        emitter = EventEmitter()
        emitter.on(EventType.FORM_ACTIVATED, print)
        emitter.on(EventType.FORM_ACTIVATED, repr)
        emitter.on_any(print)
        assert emitter.listener_count(EventType.FORM_ACTIVATED) == 2
        assert emitter.listener_count(EventType.FORM_DELETED) == 0
        assert emitter.listener_count() == 3

    def test_clear(self):
        emitter = EventEmitter()
        emitter.on(EventType.FORM_ACTIVATED, print)
        emitter.on_any(print)
        emitter.clear()
        assert emitter.listener_count() == 0

    def test_failing_listener_is_isolated(self, caplog):
        """A listener that raises is logged and the others still run."""
        emitter = EventEmitter()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        emitter.on(EventType.FORM_ACTIVATED, broken)
        emitter.on_any(received.append)

        with caplog.at_level(logging.ERROR, logger="formgate.events"):
            emitter.emit(sample_event())

        assert len(received) == 1
        assert "form.activated" in caplog.text
        assert "boom" in caplog.text
