"""Top-level package for behaviourkit."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .binder import BehaviourBinder
    from .config import ensure_config_dir, load_config
    from .events import EventBus, Subscription
    from .exceptions import (
        BehaviourKitError,
        ConfigValidationError,
        OptionsParseError,
        UnresolvedHandlerError,
    )
    from .handlers import HandlerRegistry, ImportHandlerLoader
    from .markers import MarkerScanner
    from .options import parse_options
    from .toolkit import Toolkit, get_toolkit

__all__ = [
    "BehaviourBinder",
    "BehaviourKitError",
    "ConfigValidationError",
    "EventBus",
    "HandlerRegistry",
    "ImportHandlerLoader",
    "MarkerScanner",
    "OptionsParseError",
    "Subscription",
    "Toolkit",
    "UnresolvedHandlerError",
    "ensure_config_dir",
    "get_toolkit",
    "load_config",
    "parse_options",
]

_EXPORTS = {
    "BehaviourBinder": ".binder",
    "BehaviourKitError": ".exceptions",
    "ConfigValidationError": ".exceptions",
    "EventBus": ".events",
    "HandlerRegistry": ".handlers",
    "ImportHandlerLoader": ".handlers",
    "MarkerScanner": ".markers",
    "OptionsParseError": ".exceptions",
    "Subscription": ".events",
    "Toolkit": ".toolkit",
    "UnresolvedHandlerError": ".exceptions",
    "ensure_config_dir": ".config",
    "get_toolkit": ".toolkit",
    "load_config": ".config",
    "parse_options": ".options",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so ``import behaviourkit`` stays cheap."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)
