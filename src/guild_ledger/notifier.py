"""
Economy Event Notifier

Fire-and-forget notification of committed mutations to the host.

=============================================================================
PRINCIPLES
=============================================================================

1. THE NOTIFIER RECORDS FACTS
   - Events are emitted after the storage write has committed
   - "balanceAdd" means money WAS added, not "please add money"

2. EVENTS ARE IMMUTABLE
   - EconomyEvent is a frozen dataclass
   - Handlers receive events, they cannot modify them

3. HANDLERS CANNOT BREAK THE ENGINE
   - Handler exceptions are logged and swallowed
   - A failing handler never rolls back or blocks a mutation

4. ASYNC IS AN EXECUTION DETAIL
   - Handlers may be sync or async
   - Async handlers are scheduled on the running loop when there is one

5. ONE NOTIFIER PER ECONOMY
   - The notifier is constructed by (or injected into) the Economy and passed
     to each engine component.  There is no module-level instance.

=============================================================================
USAGE
=============================================================================

    from guild_ledger.events import EconomyEvents
    from guild_ledger.notifier import EventNotifier

    notifier = EventNotifier()

    def on_buy(event):
        print(f"{event.detail['itemName']} bought")

    unsubscribe = notifier.on(EconomyEvents.SHOP_ITEM_BUY, on_buy)
    ...
    unsubscribe()

=============================================================================
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections import deque
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

SyncHandler = Callable[["EconomyEvent"], None]
AsyncHandler = Callable[["EconomyEvent"], Coroutine[Any, Any, None]]
EventHandler = SyncHandler | AsyncHandler
Unsubscribe = Callable[[], None]


# =============================================================================
# EVENT
# =============================================================================


@dataclass(frozen=True)
class EconomyEvent:
    """
    A single committed notification.

    Attributes:
        type: Event name, one of :class:`~guild_ledger.events.EconomyEvents`.
        detail: Event payload.  Most events carry a dict; ``shopClear``
                carries a bool.
        timestamp: Unix epoch milliseconds (UTC) of emission.
        sequence: Monotonically increasing per notifier.  The only reliable
                  way to order two events.
    """

    type: str
    detail: Any = None
    timestamp: int = 0
    sequence: int = 0

    def __str__(self) -> str:
        return f"EconomyEvent(type='{self.type}', seq={self.sequence})"


# =============================================================================
# NOTIFIER
# =============================================================================


class EventNotifier:
    """
    Observer registry the engine emits committed mutations into.

    Thread safety:
        Engine operations may be called from several host threads, so the
        handler registry, the sequence counter and the event log are guarded
        by one lock.  Handlers themselves run outside the lock.

    Args:
        log_size: Number of recent events retained for inspection.
    """

    def __init__(self, *, log_size: int = 1000) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._event_log: deque[EconomyEvent] = deque(maxlen=log_size)
        self._sequence = 0
        self._lock = threading.Lock()
        self.debug: bool = False

    # =========================================================================
    # EMIT
    # =========================================================================

    def emit(self, event_type: str, detail: Any = None) -> EconomyEvent:
        """
        Emit an event to every handler subscribed to ``event_type``.

        Sync handlers run inline, in registration order.  Async handlers are
        scheduled.  Errors raised by handlers are logged and do not propagate.

        Returns:
            The emitted event.
        """
        with self._lock:
            self._sequence += 1
            event = EconomyEvent(
                type=event_type,
                detail=detail,
                timestamp=int(datetime.now(UTC).timestamp() * 1000),
                sequence=self._sequence,
            )
            self._event_log.append(event)
            handlers = list(self._handlers.get(event_type, ()))

        if self.debug:
            logger.debug("EMIT [%d]: %s", event.sequence, event.type)

        for handler in handlers:
            self._dispatch(handler, event)
        return event

    def _dispatch(self, handler: EventHandler, event: EconomyEvent) -> None:
        try:
            if inspect.iscoroutinefunction(handler):
                self._schedule_async_handler(handler, event)
            else:
                handler(event)
        except Exception as e:
            logger.error(f"Handler error for '{event.type}': {e}", exc_info=True)

    def _schedule_async_handler(self, handler: AsyncHandler, event: EconomyEvent) -> None:
        """
        Schedule an async handler.

        With a running loop in this thread the coroutine becomes a background
        task; otherwise (plain threads, tests, scripts) it runs to completion
        via ``asyncio.run``.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(handler(event))
            return
        loop.create_task(handler(event))

    # =========================================================================
    # SUBSCRIBE
    # =========================================================================

    def on(self, event_type: str, handler: EventHandler) -> Unsubscribe:
        """
        Subscribe ``handler`` to ``event_type``.

        Returns:
            A function that removes this subscription.
        """
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            count = len(self._handlers[event_type])

        if self.debug:
            logger.debug(f"SUBSCRIBE: '{event_type}' (total handlers: {count})")

        def unsubscribe() -> None:
            self.off(event_type, handler)

        return unsubscribe

    def once(self, event_type: str, handler: EventHandler) -> Unsubscribe:
        """Subscribe for a single event only."""
        unsub: Unsubscribe | None = None

        def one_time_wrapper(event: EconomyEvent) -> None:
            try:
                self._dispatch(handler, event)
            finally:
                if unsub is not None:
                    unsub()

        unsub = self.on(event_type, one_time_wrapper)
        return unsub

    def off(self, event_type: str, handler: EventHandler) -> bool:
        """Remove ``handler``; returns ``False`` if it was not subscribed."""
        with self._lock:
            handlers = self._handlers.get(event_type)
            if not handlers or handler not in handlers:
                return False
            handlers.remove(handler)
        if self.debug:
            logger.debug(f"UNSUBSCRIBE: '{event_type}'")
        return True

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def get_event_log(self, limit: int | None = None) -> list[EconomyEvent]:
        """Return retained events, oldest first (last ``limit`` if given)."""
        with self._lock:
            events = list(self._event_log)
        if limit is not None:
            return events[-limit:] if limit > 0 else []
        return events

    def get_sequence(self) -> int:
        return self._sequence

    def get_handler_count(self, event_type: str) -> int:
        with self._lock:
            return len(self._handlers.get(event_type, ()))

    def clear_event_log(self) -> None:
        with self._lock:
            self._event_log.clear()
