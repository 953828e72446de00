"""Hook registry - per-model hook registration and execution engine.

Every model owns one HookRegistry. The write pipeline triggers it at each
lifecycle point. It provides:
- Registration of hooks with optional names and priority
- Execution of hooks in priority order
- Awaiting of hooks that hand back an awaitable
- Error propagation so a failing hook aborts the surrounding write
"""

import inspect
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

from shadowbase.core.hooks.hook_events import HookEvent
from shadowbase.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RegisteredHook:
    """Internal representation of a registered hook.

    Attributes:
        id: Unique identifier for this hook registration.
        event: The event this hook is registered for.
        callback: The function to call (sync or async).
        name: Optional name; a second hook with the same name and
              event replaces the first.
        priority: Execution priority (higher = earlier).
        registration_order: Order in which this hook was registered.
    """

    id: str
    event: HookEvent
    callback: Callable
    name: Optional[str] = None
    priority: int = 0
    registration_order: int = 0


class HookRegistry:
    """Per-model hook registration and execution engine.

    Unlike an application event bus, hook failures are not collected: the
    first exception raised by a hook propagates to the caller of
    ``trigger``, which is the model write pipeline. A before-hook that
    raises therefore cancels the write, and an after-hook that raises fails
    it (and rolls back its transaction).

    Example:
        registry = HookRegistry()

        hook_id = registry.register(
            HookEvent.BEFORE_UPDATE,
            snapshot_previous_state,
            name="history_insert_hook",
        )

        await registry.trigger(HookEvent.BEFORE_UPDATE, instance, options)
    """

    def __init__(self) -> None:
        """Initialize the hook registry."""
        self._hooks: dict[HookEvent, list[RegisteredHook]] = {}
        self._registration_counter: int = 0
        self._hook_map: dict[str, RegisteredHook] = {}  # hook_id -> hook

    def register(
        self,
        event: HookEvent,
        callback: Callable,
        name: Optional[str] = None,
        priority: int = 0,
    ) -> str:
        """Register a hook for an event.

        Args:
            event: Lifecycle event to bind to.
            callback: Function to execute. Row events call it with
                      (instance, options), bulk events with (options),
                      schema events with (model, options). It may be
                      async, or sync and return an awaitable.
            name: Optional hook name. Re-registering a name for the same
                  event replaces the earlier hook.
            priority: Execution priority. Higher priority hooks run first.

        Returns:
            Unique hook_id string for later removal.
        """
        event = HookEvent(event)

        if name is not None:
            for existing in self._hooks.get(event, []):
                if existing.name == name:
                    self.unregister(existing.id)
                    break

        hook_id = f"hook_{uuid.uuid4().hex[:12]}"

        # FIFO ordering within same priority
        self._registration_counter += 1

        hook = RegisteredHook(
            id=hook_id,
            event=event,
            callback=callback,
            name=name,
            priority=priority,
            registration_order=self._registration_counter,
        )

        self._hooks.setdefault(event, []).append(hook)
        self._hook_map[hook_id] = hook

        logger.debug(
            "Hook registered",
            hook_id=hook_id,
            hook_event=event.value,
            hook_name=name,
            priority=priority,
        )

        return hook_id

    def unregister(self, hook_id: str) -> bool:
        """Remove a registered hook.

        Args:
            hook_id: The unique ID returned from register().

        Returns:
            True if hook was removed, False if not found.
        """
        hook = self._hook_map.pop(hook_id, None)
        if not hook:
            logger.warning("Hook not found for unregister", hook_id=hook_id)
            return False

        remaining = [h for h in self._hooks.get(hook.event, []) if h.id != hook_id]
        if remaining:
            self._hooks[hook.event] = remaining
        else:
            self._hooks.pop(hook.event, None)

        logger.debug("Hook unregistered", hook_id=hook_id, hook_event=hook.event.value)
        return True

    async def trigger(self, event: HookEvent, *args: Any) -> None:
        """Execute all registered hooks for an event.

        Hooks are executed in priority order (higher priority first).
        Hooks with the same priority execute in registration order (FIFO).
        Any awaitable a hook returns is awaited before the next hook runs.

        Args:
            event: Lifecycle event.
            *args: Positional arguments passed to every hook.

        Raises:
            Exception: Whatever the first failing hook raised.
        """
        hooks = self._hooks.get(HookEvent(event))
        if not hooks:
            return

        sorted_hooks = sorted(hooks, key=lambda h: (-h.priority, h.registration_order))

        logger.debug("Triggering hooks", hook_event=event.value, hook_count=len(sorted_hooks))

        for hook in sorted_hooks:
            result = hook.callback(*args)
            if inspect.isawaitable(result):
                await result

    def has_hooks(self, event: HookEvent) -> bool:
        """Check whether any hook is registered for an event."""
        return bool(self._hooks.get(HookEvent(event)))

    def get_hooks_for_event(self, event: HookEvent) -> list[RegisteredHook]:
        """Get all hooks registered for an event, in registration order."""
        return self._hooks.get(HookEvent(event), []).copy()

    def get_all_hooks(self) -> dict[HookEvent, list[RegisteredHook]]:
        """Get all registered hooks organized by event."""
        return {event: hooks.copy() for event, hooks in self._hooks.items()}

    def get_hook_by_id(self, hook_id: str) -> Optional[RegisteredHook]:
        """Get a hook by its ID."""
        return self._hook_map.get(hook_id)

    def clear(self) -> int:
        """Remove all registered hooks.

        Returns:
            Number of hooks removed.
        """
        count = len(self._hook_map)
        self._hooks.clear()
        self._hook_map.clear()
        logger.debug("Hooks cleared", count=count)
        return count
