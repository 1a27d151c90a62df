"""Process-scoped context wiring the bus, registry and binder together."""

from __future__ import annotations

from collections.abc import Callable
import logging
from pathlib import Path
from typing import Any, TypeVar

from bs4 import BeautifulSoup
from bs4.element import Tag

from .binder import BehaviourBinder
from .config import DEFAULT_CONFIG, _deep_merge, load_config
from .events import EventBus
from .handlers import HandlerFactory, HandlerLoader, HandlerRegistry, ImportHandlerLoader
from .markers import MarkerScanner

LOGGER = logging.getLogger(__name__)

FactoryT = TypeVar("FactoryT", bound=Callable[..., Any])


class Toolkit:
    """One independent set of bus, handler registry and binder.

    Tests and embedders create as many as they need; :func:`get_toolkit`
    keeps a lazily created default for handler modules that want a shared one.
    """

    def __init__(
        self,
        config: dict[str, dict[str, Any]] | None = None,
        *,
        bus: EventBus | None = None,
        loader: HandlerLoader | None = None,
    ) -> None:
        self.config = _deep_merge(DEFAULT_CONFIG, config or {})
        markers_config = self.config["markers"]
        loader_config = self.config["loader"]

        if loader is None and loader_config.get("enabled"):
            loader = ImportHandlerLoader(
                package_prefix=loader_config.get("package_prefix", ""),
                export=loader_config.get("export", "default"),
            )

        self.bus = bus or EventBus()
        self.registry = HandlerRegistry(loader)
        self.markers = MarkerScanner()
        self.markers.set_prefix(markers_config["prefix"])
        self.binder = BehaviourBinder(
            self.bus,
            self.registry,
            self.markers,
            options_attribute=markers_config["options_attribute"],
        )
        self._document_bound = False

    @classmethod
    def from_config_file(cls, config_path: Path | None = None) -> Toolkit:
        return cls(load_config(config_path))

    def set_prefix(self, name: str) -> None:
        self.markers.set_prefix(name)

    def register_handler(self, key: str, factory: HandlerFactory) -> None:
        self.registry.register(key, factory)

    def handler(self, key: str) -> Callable[[FactoryT], FactoryT]:
        """Decorator form of :meth:`register_handler`."""

        def decorator(factory: FactoryT) -> FactoryT:
            self.register_handler(key, factory)
            return factory

        return decorator

    def apply_behaviour(self, root: Tag) -> int:
        return self.binder.apply_behaviour(root)

    @staticmethod
    def load_document(markup: str) -> BeautifulSoup:
        return BeautifulSoup(markup, "html.parser")

    def document_ready(self, document: Tag) -> bool:
        """Bind the whole document the first time it becomes ready.

        Returns ``False`` (and binds nothing) on every later call.
        """
        if self._document_bound:
            LOGGER.warning(
                "toolkit.document_ready.repeated",
                extra={"event": "toolkit.document_ready.repeated"},
            )
            return False
        self._document_bound = True
        self.apply_behaviour(document)
        return True

    async def drain(self) -> None:
        await self.binder.drain()


_default_toolkit: Toolkit | None = None


def get_toolkit() -> Toolkit:
    global _default_toolkit
    if _default_toolkit is None:
        _default_toolkit = Toolkit()
    return _default_toolkit


def set_toolkit(toolkit: Toolkit | None) -> None:
    """Replace (or with ``None`` reset) the shared default toolkit."""
    global _default_toolkit
    _default_toolkit = toolkit
