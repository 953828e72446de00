"""Hook system core module.

Every ShadowBase model owns a HookRegistry that its write pipeline
triggers at each lifecycle point. History tracking is built entirely on
these hooks.

Example usage:
    from shadowbase.core.hooks import HookEvent

    def audit(instance, options):
        print("updating", instance.get("id"))

    post.hooks.register(HookEvent.BEFORE_UPDATE, audit)
"""

from shadowbase.core.hooks.hook_events import (
    EVENT_CATEGORIES,
    HookCategory,
    HookEvent,
    get_all_events,
    is_after_event,
    is_before_event,
    is_bulk_event,
)
from shadowbase.core.hooks.hook_registry import HookRegistry, RegisteredHook

__all__ = [
    # Registry
    "HookRegistry",
    "RegisteredHook",
    # Events
    "HookCategory",
    "HookEvent",
    "EVENT_CATEGORIES",
    "get_all_events",
    "is_before_event",
    "is_after_event",
    "is_bulk_event",
]
