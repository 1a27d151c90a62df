"""Event bus for decoupled behaviour communication.

Usage:
    bus = EventBus()

    # Exact names, or compiled patterns, with an optional value filter
    def on_tab(values, name):
        print(f"{name}: {values['tab']}")

    unsubscribe = bus.subscribe("tabs.changed", {"group": "main"}, on_tab)

    # Tie the listener to an instance; it goes away with "instance-removed"
    unsubscribe.bind_lifetime(widget)

    # Late subscribers can catch up on what already happened
    bus.subscribe_and_replay(re.compile(r"^tabs\\."), on_tab)

    bus.publish("tabs.changed", {"group": "main", "tab": "home"})
    bus.publish_sticky("page.loaded", {"path": "/"})
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
import logging
import re
from typing import Any

from .domain import INSTANCE_REMOVED

LOGGER = logging.getLogger(__name__)

Matcher = str | re.Pattern[str]
Callback = Callable[[Any, str], Any]

_FLAG_LETTERS = (
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
    (re.ASCII, "a"),
)


def matcher_text(matcher: Matcher) -> str:
    """Return the string form used to compare matchers on unsubscribe.

    Patterns render as ``/<pattern>/<flags>``, so two separately compiled
    patterns with the same source and flags compare equal.
    """
    if isinstance(matcher, re.Pattern):
        flags = "".join(
            letter for flag, letter in _FLAG_LETTERS if matcher.flags & flag
        )
        return f"/{matcher.pattern}/{flags}"
    return matcher


@dataclass(eq=False)
class Listener:
    """A registered callback; compared by identity."""

    callback: Callback
    matcher: Matcher
    filter: Mapping[str, Any] | None = None
    owner: Any = None

    def matches_name(self, name: str) -> bool:
        if isinstance(self.matcher, re.Pattern):
            return self.matcher.search(name) is not None
        return self.matcher == name

    def accepts(self, values: Any) -> bool:
        """Check every filter key is present in ``values`` with an equal value.

        Equality is strict: ``True`` and ``1.0`` never match a filter of ``1``.
        """
        if not self.filter:
            return True
        if not isinstance(values, Mapping):
            return False
        for key, expected in self.filter.items():
            if key not in values:
                return False
            actual = values[key]
            if type(actual) is not type(expected) or actual != expected:
                return False
        return True


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`.

    Calling the handle unsubscribes the listener.
    """

    def __init__(self, bus: EventBus, listener: Listener) -> None:
        self._bus = bus
        self.listener = listener

    def __call__(self) -> None:
        self._bus.unsubscribe(self.listener.matcher, self.listener.callback)

    def cancel(self) -> None:
        self()

    def bind_lifetime(self, owner: Any) -> Subscription:
        """Discard the listener once ``instance-removed`` is published for ``owner``."""
        self.listener.owner = owner
        return self

    @property
    def active(self) -> bool:
        return self._bus.is_registered(self.listener)


class EventBus:
    """Listener registry with last-value and sticky-value history.

    Delivery is synchronous and follows subscription order. Replays for late
    subscribers are deferred onto the event loop so they never run inside the
    subscribing call.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._listeners: list[Listener] = []
        self._last_values: dict[str, Any] = {}
        self._sticky_values: dict[str, list[Any]] = {}
        self._loop = loop

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def is_registered(self, listener: Listener) -> bool:
        return any(item is listener for item in self._listeners)

    def last_value(self, name: str, default: Any = None) -> Any:
        """Return the most recent non-sticky values published under ``name``."""
        return self._last_values.get(name, default)

    def sticky_values(self, name: str) -> list[Any]:
        """Return every sticky value published under ``name``, oldest first."""
        return list(self._sticky_values.get(name, ()))

    def publish(self, name: str, values: Any = None, sticky: bool = False) -> None:
        """Publish an event to all matching listeners.

        Args:
            name: Event name
            values: Event values, ``{}`` when omitted
            sticky: Keep every value for replay instead of only the latest
        """
        if values is None:
            values = {}

        if sticky:
            self._sticky_values.setdefault(name, []).append(values)
        else:
            self._last_values[name] = values

        # Listeners may (un)subscribe while we dispatch; iterate a snapshot.
        for listener in list(self._listeners):
            self._deliver(listener, name, values)

        if name == INSTANCE_REMOVED:
            self._remove_listeners_owned_by(values)

    def publish_sticky(self, name: str, values: Any = None) -> None:
        self.publish(name, values, sticky=True)

    def subscribe(
        self,
        matcher: Matcher,
        filter_or_callback: Mapping[str, Any] | Callback | None,
        callback: Callback | None = None,
    ) -> Subscription:
        """Subscribe to an event name or pattern.

        Args:
            matcher: Exact event name or compiled pattern searched in the name
            filter_or_callback: Value filter, or the callback when no filter is used
            callback: Called as ``callback(values, name)``
        """
        event_filter, callback = self._split_arguments(filter_or_callback, callback)
        if not isinstance(matcher, (str, re.Pattern)):
            raise TypeError(
                f"Event matcher must be a string or compiled pattern, got {type(matcher).__name__}"
            )

        listener = Listener(callback=callback, matcher=matcher, filter=event_filter)
        self._listeners.append(listener)
        LOGGER.debug(
            "bus.subscribe",
            extra={"event": "bus.subscribe", "matcher": matcher_text(matcher)},
        )
        return Subscription(self, listener)

    def unsubscribe(self, matcher: Matcher, callback: Callback) -> None:
        """Remove listeners registered with ``callback`` for an equivalent matcher.

        Unknown listeners are ignored.
        """
        text = matcher_text(matcher)
        self._listeners = [
            listener
            for listener in self._listeners
            if not (
                listener.callback == callback
                and matcher_text(listener.matcher) == text
            )
        ]

    def subscribe_and_replay(
        self,
        matcher: Matcher,
        filter_or_callback: Mapping[str, Any] | Callback | None,
        callback: Callback | None = None,
    ) -> Subscription:
        """Subscribe, then replay past events to the new listener only.

        Exact names replay the latest value followed by every sticky value.
        Patterns do the same for every known name they match. Replays run on
        the event loop after this call returns, so one must be running (or
        injected) whenever there is history to replay.
        """
        history: list[tuple[str, Any]] = []
        if isinstance(matcher, re.Pattern):
            for name, values in self._last_values.items():
                if matcher.search(name):
                    history.append((name, values))
            for name, sticky in self._sticky_values.items():
                if matcher.search(name):
                    history.extend((name, values) for values in sticky)
        elif isinstance(matcher, str):
            if matcher in self._last_values:
                history.append((matcher, self._last_values[matcher]))
            history.extend(
                (matcher, values) for values in self._sticky_values.get(matcher, ())
            )

        # Resolve the loop first so a missing one leaves nothing registered.
        loop = (self._loop or asyncio.get_running_loop()) if history else None
        subscription = self.subscribe(matcher, filter_or_callback, callback)
        if loop is not None:
            for name, values in history:
                loop.call_soon(self._replay, subscription.listener, name, values)
        return subscription

    def clear(self) -> None:
        """Drop every listener and all recorded history."""
        self._listeners = []
        self._last_values.clear()
        self._sticky_values.clear()

    @staticmethod
    def _split_arguments(
        filter_or_callback: Mapping[str, Any] | Callback | None,
        callback: Callback | None,
    ) -> tuple[Mapping[str, Any] | None, Callback]:
        if callback is None:
            if not callable(filter_or_callback):
                raise TypeError("A callback is required to subscribe.")
            return None, filter_or_callback
        if filter_or_callback is not None and not isinstance(filter_or_callback, Mapping):
            raise TypeError("Event filter must be a mapping.")
        return filter_or_callback, callback

    @staticmethod
    def _deliver(listener: Listener, name: str, values: Any) -> None:
        if listener.matches_name(name) and listener.accepts(values):
            listener.callback(values, name)

    def _replay(self, listener: Listener, name: str, values: Any) -> None:
        if not self.is_registered(listener):
            LOGGER.debug(
                "bus.replay.suppressed",
                extra={"event": "bus.replay.suppressed", "event_name": name},
            )
            return
        try:
            self._deliver(listener, name, values)
        except Exception:
            # Nobody awaits a replay; the loop callback is the last stop.
            LOGGER.exception(
                "bus.replay.failed",
                extra={"event": "bus.replay.failed", "event_name": name},
            )

    def _remove_listeners_owned_by(self, owner: Any) -> None:
        before = len(self._listeners)
        self._listeners = [
            listener for listener in self._listeners if listener.owner is not owner
        ]
        LOGGER.debug(
            "bus.instance_removed",
            extra={
                "event": "bus.instance_removed",
                "removed": before - len(self._listeners),
            },
        )
