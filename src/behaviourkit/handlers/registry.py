"""Handler key -> factory registry with optional deferred resolution."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
from typing import Any

from ..exceptions import UnresolvedHandlerError

LOGGER = logging.getLogger(__name__)

HandlerFactory = Callable[..., Any]
HandlerLoader = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class Resolution:
    """Outcome of :meth:`HandlerRegistry.resolve`.

    Exactly one of ``factory`` (resolved now) and ``pending`` (a task that
    yields the factory once the loader finishes) is set.
    """

    key: str
    factory: HandlerFactory | None = None
    pending: asyncio.Task[HandlerFactory] | None = None

    @classmethod
    def immediate(cls, key: str, factory: HandlerFactory) -> Resolution:
        return cls(key=key, factory=factory)

    @classmethod
    def deferred(cls, key: str, task: asyncio.Task[HandlerFactory]) -> Resolution:
        return cls(key=key, pending=task)

    @property
    def is_pending(self) -> bool:
        return self.pending is not None


class HandlerRegistry:
    """Map handler keys to the factories called as ``factory(element, options)``.

    Without a loader, unknown keys fail immediately. With one, resolution of
    an unknown key is deferred to ``await loader(key)``.
    """

    def __init__(self, loader: HandlerLoader | None = None) -> None:
        self._handlers: dict[str, HandlerFactory] = {}
        self.loader = loader

    def register(self, key: str, factory: HandlerFactory) -> None:
        if key in self._handlers:
            LOGGER.debug(
                "handlers.register.replace",
                extra={"event": "handlers.register.replace", "key": key},
            )
        self._handlers[key] = factory

    def unregister(self, key: str) -> None:
        self._handlers.pop(key, None)

    def get(self, key: str) -> HandlerFactory | None:
        return self._handlers.get(key)

    def keys(self) -> list[str]:
        return list(self._handlers)

    def __contains__(self, key: object) -> bool:
        return key in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def resolve(self, key: str) -> Resolution:
        """Resolve ``key`` now, or start loading it when a loader is configured.

        Raises:
            UnresolvedHandlerError: ``key`` is unknown and there is no loader.
        """
        factory = self._handlers.get(key)
        if factory is not None:
            return Resolution.immediate(key, factory)
        if self.loader is None:
            raise UnresolvedHandlerError(key)

        LOGGER.info(
            "handlers.load.start",
            extra={"event": "handlers.load.start", "key": key},
        )
        task = asyncio.get_running_loop().create_task(
            self._load(key), name=f"handler-load:{key}"
        )
        return Resolution.deferred(key, task)

    async def _load(self, key: str) -> HandlerFactory:
        assert self.loader is not None
        loaded = await self.loader(key)

        # Someone registered the key while we were loading; that wins.
        registered = self._handlers.get(key)
        if registered is not None:
            return registered
        if loaded is None:
            raise UnresolvedHandlerError(
                key, f"The handler {key} is not defined (even with the loader)!"
            )
        self.register(key, loaded)
        LOGGER.info(
            "handlers.load.done",
            extra={"event": "handlers.load.done", "key": key},
        )
        return loaded
