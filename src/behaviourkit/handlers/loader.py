"""importlib-backed deferred handler loader."""

from __future__ import annotations

import asyncio
import importlib
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class ImportHandlerLoader:
    """Load handler factories from Python modules named after the handler key.

    ``widgets/tabs`` imports ``<package_prefix>widgets.tabs`` and returns its
    ``export`` attribute. ``widgets.tabs:Tabs`` picks the attribute explicitly.
    Missing modules or attributes resolve to ``None``.
    """

    def __init__(self, package_prefix: str = "", export: str = "default") -> None:
        self.package_prefix = package_prefix
        self.export = export

    def target_for(self, key: str) -> tuple[str, str]:
        module_part, _, attribute = key.partition(":")
        module_name = self.package_prefix + module_part.strip("/").replace("/", ".")
        return module_name, attribute or self.export

    async def __call__(self, key: str) -> Any:
        module_name, attribute = self.target_for(key)
        try:
            module = await asyncio.to_thread(importlib.import_module, module_name)
        except ModuleNotFoundError as exc:
            LOGGER.warning(
                "handlers.loader.module_missing",
                extra={
                    "event": "handlers.loader.module_missing",
                    "key": key,
                    "module_name": module_name,
                    "error": str(exc),
                },
            )
            return None
        return getattr(module, attribute, None)
