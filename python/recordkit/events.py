"""Synchronous event bus for model notifications."""

from __future__ import annotations

import itertools
import weakref
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

SAVED = "saved"
DELETED = "deleted"


@dataclass(frozen=True)
class Event:
    """Snapshot handed to subscribers: the event name, its subject and payload."""

    name: str
    subject: Any
    payload: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class Delta:
    """Membership change a subscriber should apply to its own state.

    ``add`` holds records to append, ``remove`` primary keys to drop.
    """

    add: tuple[Any, ...] = ()
    remove: tuple[Any, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.add or self.remove)


Handler = Callable[[Event], "Delta | None"]
Sink = Callable[[Delta], None]


def _ref(func: Callable[..., Any] | None) -> Callable[[], Callable[..., Any] | None] | None:
    # Bound methods are held weakly, plain functions strongly
    if func is None:
        return None
    if hasattr(func, "__self__") and hasattr(func, "__func__"):
        return weakref.WeakMethod(func)  # type: ignore[arg-type]
    return lambda: func


@dataclass(frozen=True)
class Subscription:
    """Handle returned by ``EventBus.subscribe``."""

    id: int
    model_type: type
    event_name: str


class EventBus:
    """Publish/subscribe primitive keyed by model type and event name.

    Handlers run synchronously, in subscription order, on the publisher's
    stack; exceptions propagate to the caller of ``publish``.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe(Book, "deleted", lambda e: Delta(remove=(e.subject.get_pk(),)), sink)
        >>> bus.publish("deleted", book)
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._subscriptions: dict[int, tuple[Subscription, Any, Any]] = {}

    def subscribe(
        self,
        model_type: type,
        event_name: str,
        handler: Handler,
        sink: Sink | None = None,
    ) -> Subscription:
        """Register ``handler`` for ``event_name`` on instances of ``model_type``.

        A non-empty ``Delta`` returned by the handler is passed to ``sink``.
        """
        subscription = Subscription(next(self._counter), model_type, event_name)
        self._subscriptions[subscription.id] = (subscription, _ref(handler), _ref(sink))

        # Drop the entry once an owner of a weakly held method is collected
        owners = {id(func.__self__): func.__self__ for func in (handler, sink) if hasattr(func, "__func__")}
        for owner in owners.values():
            weakref.finalize(owner, self._subscriptions.pop, subscription.id, None)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.pop(subscription.id, None)

    def publish(self, event_name: str, subject: Any, payload: Mapping[str, Any] | None = None) -> None:
        """Notify every live subscriber of ``event_name`` matching the subject's type."""
        event = Event(event_name, subject, MappingProxyType(dict(payload or {})))

        for sub_id, (subscription, handler_ref, sink_ref) in list(self._subscriptions.items()):
            if subscription.event_name != event_name or not isinstance(subject, subscription.model_type):
                continue

            handler = handler_ref()
            if handler is None:
                self._subscriptions.pop(sub_id, None)
                continue

            delta = handler(event)
            if not delta or sink_ref is None:
                continue

            sink = sink_ref()
            if sink is None:
                self._subscriptions.pop(sub_id, None)
                continue
            sink(delta)

    def __len__(self) -> int:
        return len(self._subscriptions)
