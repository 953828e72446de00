"""Hook event definitions and categories.

This module defines the closed set of model lifecycle events that the write
pipeline fires. Hook wiring is keyed by these variants, never by free-form
strings.

IMPORTANT: Adding new events is allowed (non-breaking), but
           removing or renaming events is a breaking change.
"""

from enum import Enum


class HookCategory(str, Enum):
    """Categories for organizing hooks."""

    ROW = "row"  # One instance; hooks receive (instance, options)
    BULK = "bulk"  # A filtered row set; hooks receive (options)
    SCHEMA = "schema"  # Table materialization; hooks receive (model, options)


class HookEvent(str, Enum):
    """Model lifecycle events.

    - BEFORE_* events run before the write and can abort it by raising
    - AFTER_* events run after the write, inside the same transaction
    """

    BEFORE_CREATE = "before_create"
    AFTER_CREATE = "after_create"
    BEFORE_BULK_CREATE = "before_bulk_create"
    AFTER_BULK_CREATE = "after_bulk_create"

    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_BULK_UPDATE = "before_bulk_update"
    AFTER_BULK_UPDATE = "after_bulk_update"

    BEFORE_DESTROY = "before_destroy"
    AFTER_DESTROY = "after_destroy"
    BEFORE_BULK_DESTROY = "before_bulk_destroy"
    AFTER_BULK_DESTROY = "after_bulk_destroy"

    BEFORE_RESTORE = "before_restore"
    AFTER_RESTORE = "after_restore"

    BEFORE_SYNC = "before_sync"
    AFTER_SYNC = "after_sync"


# Mapping of events to their categories
EVENT_CATEGORIES: dict[HookEvent, HookCategory] = {
    HookEvent.BEFORE_CREATE: HookCategory.ROW,
    HookEvent.AFTER_CREATE: HookCategory.ROW,
    HookEvent.BEFORE_BULK_CREATE: HookCategory.BULK,
    HookEvent.AFTER_BULK_CREATE: HookCategory.BULK,
    HookEvent.BEFORE_UPDATE: HookCategory.ROW,
    HookEvent.AFTER_UPDATE: HookCategory.ROW,
    HookEvent.BEFORE_BULK_UPDATE: HookCategory.BULK,
    HookEvent.AFTER_BULK_UPDATE: HookCategory.BULK,
    HookEvent.BEFORE_DESTROY: HookCategory.ROW,
    HookEvent.AFTER_DESTROY: HookCategory.ROW,
    HookEvent.BEFORE_BULK_DESTROY: HookCategory.BULK,
    HookEvent.AFTER_BULK_DESTROY: HookCategory.BULK,
    HookEvent.BEFORE_RESTORE: HookCategory.ROW,
    HookEvent.AFTER_RESTORE: HookCategory.ROW,
    HookEvent.BEFORE_SYNC: HookCategory.SCHEMA,
    HookEvent.AFTER_SYNC: HookCategory.SCHEMA,
}


def get_all_events() -> list[HookEvent]:
    """Get all available hook events."""
    return list(HookEvent)


def is_before_event(event: HookEvent) -> bool:
    """Check if an event runs before its write."""
    return event.value.startswith("before_")


def is_after_event(event: HookEvent) -> bool:
    """Check if an event runs after its write."""
    return event.value.startswith("after_")


def is_bulk_event(event: HookEvent) -> bool:
    """Check if an event fires once per bulk operation."""
    return EVENT_CATEGORIES[event] is HookCategory.BULK
