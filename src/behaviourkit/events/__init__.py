"""In-process publish/subscribe bus used by behaviour handlers."""

from .bus import EventBus, Listener, Subscription, matcher_text
from .domain import BEHAVIOURS_APPLIED, INSTANCE_REMOVED

__all__ = [
    "BEHAVIOURS_APPLIED",
    "INSTANCE_REMOVED",
    "EventBus",
    "Listener",
    "Subscription",
    "matcher_text",
]
