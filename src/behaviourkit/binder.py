"""Bind marked elements to their registered behaviour handlers."""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
import inspect
import logging
from typing import Any

from bs4.element import Tag

from .events import BEHAVIOURS_APPLIED, EventBus
from .handlers import HandlerRegistry, Resolution
from .markers import MarkerScanner
from .options import parse_options
from .pending import PendingWork

LOGGER = logging.getLogger(__name__)


def _default_export(module: Any) -> Any:
    if isinstance(module, Mapping):
        return module["default"]
    return getattr(module, "default")


class BehaviourBinder:
    """Scan a tree for markers and construct one handler per keyed marker.

    Each keyed marker is handled exactly once: the marker token is stripped
    right after its handler was invoked, and the bare prefix token is stripped
    before any handler runs, so a second pass over the same tree is a no-op.
    """

    def __init__(
        self,
        bus: EventBus,
        registry: HandlerRegistry,
        markers: MarkerScanner | None = None,
        options_attribute: str = "data",
    ) -> None:
        self.bus = bus
        self.registry = registry
        self.markers = markers or MarkerScanner()
        self.options_attribute = options_attribute
        self.pending = PendingWork()

    def apply_behaviour(self, root: Tag) -> int:
        """Bind every marked element below ``root``.

        Returns the number of keyed markers handled. Handler construction
        errors propagate; the remaining elements are left untouched.
        """
        elements = self.markers.scan(root)
        handled = 0

        for element in elements:
            self.markers.strip_prefix(element)
            while True:
                key = self.markers.first_key(element)
                if key is None:
                    break
                self.invoke_handler(key, element)
                self.markers.strip_key(element, key)
                handled += 1

        LOGGER.debug(
            "binder.applied",
            extra={
                "event": "binder.applied",
                "elements": len(elements),
                "handled": handled,
            },
        )
        self.bus.publish(BEHAVIOURS_APPLIED)
        return handled

    def options_for(self, key: str, element: Tag) -> str | None:
        """Return the raw options string for ``key``, if the element has one.

        The handler specific ``data-<key>`` attribute wins over the generic
        ``data`` attribute; empty values count as missing.
        """
        specific = f"{self.options_attribute}-{key.replace('/', '-')}"
        for attribute in (specific, specific.lower(), self.options_attribute):
            value = element.get(attribute)
            if value:
                return value if isinstance(value, str) else " ".join(value)
        return None

    def invoke_handler(self, key: str, element: Tag) -> Any:
        """Construct the handler for ``key`` on ``element``.

        Returns the constructed handler, or ``None`` when the factory still
        has to be loaded; the load then finishes in the background and calls
        this method again.
        """
        resolution = self.registry.resolve(key)
        if resolution.is_pending:
            self.pending.add(
                self._resume_after_load(resolution, element),
                name=f"bind:{key}",
            )
            return None

        raw_options = self.options_for(key, element)
        options = parse_options(raw_options) if raw_options is not None else None
        result = resolution.factory(element, options)

        if inspect.isawaitable(result):
            try:
                self.pending.add(
                    self._construct_deferred(key, result, element, options),
                    name=f"bind-deferred:{key}",
                )
            except RuntimeError:
                # No running loop to finish the module on.
                if inspect.iscoroutine(result):
                    result.close()
                LOGGER.exception(
                    "binder.deferred.failed",
                    extra={"event": "binder.deferred.failed", "key": key},
                )
        return result

    async def drain(self) -> None:
        """Wait for deferred handler work; re-raises the first failure."""
        await self.pending.drain()

    async def _resume_after_load(self, resolution: Resolution, element: Tag) -> None:
        assert resolution.pending is not None
        await resolution.pending
        self.invoke_handler(resolution.key, element)

    async def _construct_deferred(
        self,
        key: str,
        awaitable: Awaitable[Any],
        element: Tag,
        options: dict[str, Any] | None,
    ) -> None:
        try:
            module = await awaitable
            _default_export(module)(element, options)
        except Exception:
            LOGGER.exception(
                "binder.deferred.failed",
                extra={"event": "binder.deferred.failed", "key": key},
            )
