"""Domain exception hierarchy for the behaviour toolkit."""

from __future__ import annotations


class BehaviourKitError(RuntimeError):
    """Base class for all toolkit errors."""


class UnresolvedHandlerError(BehaviourKitError, LookupError):
    """Raised when a handler key cannot be resolved to a factory."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"The handler {key} is not defined!")


class OptionsParseError(BehaviourKitError, ValueError):
    """Raised when an options annotation cannot be decoded."""


class ConfigValidationError(BehaviourKitError):
    """Raised when configuration cannot be validated safely."""
