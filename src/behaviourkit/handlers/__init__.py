"""Handler registration and (deferred) resolution."""

from .loader import ImportHandlerLoader
from .registry import HandlerFactory, HandlerLoader, HandlerRegistry, Resolution

__all__ = [
    "HandlerFactory",
    "HandlerLoader",
    "HandlerRegistry",
    "ImportHandlerLoader",
    "Resolution",
]
