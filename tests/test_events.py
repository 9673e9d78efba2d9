"""Tests for the event bus."""

from __future__ import annotations

import gc

import pytest

from recordkit import Delta, Event, EventBus


class Thing:
    pass


class SubThing(Thing):
    pass


class Listener:
    """Subscriber holding its own state, updated through deltas."""

    def __init__(self) -> None:
        self.members: set = set()

    def handle(self, event: Event) -> Delta | None:
        if event.payload.get("ignore"):
            return None
        return Delta(add=(event.subject,))

    def apply(self, delta: Delta) -> None:
        self.members.update(delta.add)
        self.members.difference_update(delta.remove)


class TestEventBus:
    """Test subscription, dispatch and delta delivery."""

    def test_delta_reaches_sink(self) -> None:
        bus = EventBus()
        listener = Listener()
        bus.subscribe(Thing, "saved", listener.handle, listener.apply)
        thing = Thing()

        bus.publish("saved", thing)

        assert listener.members == {thing}

    def test_none_delta_not_delivered(self) -> None:
        bus = EventBus()
        listener = Listener()
        bus.subscribe(Thing, "saved", listener.handle, listener.apply)

        bus.publish("saved", Thing(), {"ignore": True})

        assert listener.members == set()

    def test_empty_delta_is_falsy(self) -> None:
        assert not Delta()
        assert Delta(remove=(1,))

    def test_matches_subclasses_and_event_name(self) -> None:
        bus = EventBus()
        seen = []
        bus.subscribe(Thing, "deleted", seen.append)

        bus.publish("deleted", SubThing())
        bus.publish("saved", Thing())
        bus.publish("deleted", object())

        assert len(seen) == 1
        assert seen[0].name == "deleted"

    def test_payload_is_read_only(self) -> None:
        bus = EventBus()
        seen = []
        bus.subscribe(Thing, "saved", seen.append)
        payload = {"created": True}

        bus.publish("saved", Thing(), payload)
        payload["created"] = False

        assert seen[0].payload["created"] is True
        with pytest.raises(TypeError):
            seen[0].payload["created"] = False  # type: ignore[index]

    def test_handlers_run_in_subscription_order(self) -> None:
        bus = EventBus()
        order = []
        bus.subscribe(Thing, "saved", lambda e: order.append("first"))
        bus.subscribe(Thing, "saved", lambda e: order.append("second"))

        bus.publish("saved", Thing())

        assert order == ["first", "second"]

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        seen = []
        subscription = bus.subscribe(Thing, "saved", seen.append)

        bus.unsubscribe(subscription)
        bus.publish("saved", Thing())

        assert seen == []
        assert len(bus) == 0

    def test_collected_subscriber_drops_out(self) -> None:
        bus = EventBus()
        listener = Listener()
        bus.subscribe(Thing, "saved", listener.handle, listener.apply)
        assert len(bus) == 1

        del listener
        gc.collect()
        bus.publish("saved", Thing())

        assert len(bus) == 0

    def test_collected_subscriber_removed_without_publish(self) -> None:
        bus = EventBus()
        listener = Listener()
        bus.subscribe(Thing, "saved", listener.handle, listener.apply)
        bus.subscribe(Thing, "deleted", listener.handle)

        del listener
        gc.collect()

        assert len(bus) == 0

    def test_handler_exception_propagates(self) -> None:
        bus = EventBus()

        def boom(event: Event) -> None:
            raise RuntimeError("handler failed")

        bus.subscribe(Thing, "saved", boom)

        with pytest.raises(RuntimeError, match="handler failed"):
            bus.publish("saved", Thing())
