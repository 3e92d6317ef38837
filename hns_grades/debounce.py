"""
Debounced persistence of the semester average.

Every edit recomputes the average and calls `PersistenceDebouncer.schedule`.
Edits that arrive within the quiet period restart the timer, so a burst of
keystrokes ends in a single write carrying the last value. The key and the
value are bound when the timer is scheduled; a timer that is cancelled
(selection change, teardown) never writes.

All timers run on one asyncio event loop. `schedule` and `cancel` may be
called from another thread (the Streamlit script thread); they are handed
to the loop in call order.
"""

import asyncio
import logging
import threading
from functools import partial
from typing import Any, Awaitable, Callable, Hashable, Optional, Set

from hns_grades.config import DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)

SaveFn = Callable[[Any, float], Awaitable[Any]]


class CancellableTimer:
    """Fire-once timer on an event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, delay: float, callback: Callable[[], None]):
        self._loop = loop
        self._delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._fired = False

    def start(self) -> None:
        if self._handle is not None:
            raise RuntimeError("Timer already started.")
        self._handle = self._loop.call_later(self._delay, self._run)

    def cancel(self) -> None:
        if self._handle is not None and not self._fired:
            self._handle.cancel()
        self._handle = None

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._fired and not self._handle.cancelled()

    def _run(self) -> None:
        self._fired = True
        self._callback()


class PersistenceDebouncer:
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        save: SaveFn,
        delay: float = DEBOUNCE_SECONDS,
    ):
        self._loop = loop
        self._save = save
        self.delay = delay
        self._timer: Optional[CancellableTimer] = None
        self._in_flight: Set[asyncio.Task] = set()
        # schedule() calls handed to the loop but not yet applied
        self._queued = 0
        self._queued_lock = threading.Lock()

    # ---- public, thread-safe ----
    def schedule(self, key: Hashable, value: float) -> None:
        with self._queued_lock:
            self._queued += 1
        self._loop.call_soon_threadsafe(self._restart, key, value)

    def cancel(self) -> None:
        self._loop.call_soon_threadsafe(self._cancel_pending)

    @property
    def pending(self) -> bool:
        return self._queued > 0 or (self._timer is not None and self._timer.active)

    @property
    def saving(self) -> bool:
        return bool(self._in_flight)

    async def drain(self) -> None:
        """Wait for writes that already started."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight))

    # ---- loop side ----
    def _cancel_pending(self) -> None:
        if self._timer is not None:
            if self._timer.active:
                logger.debug("Cancelled pending save")
            self._timer.cancel()
            self._timer = None

    def _restart(self, key: Hashable, value: float) -> None:
        with self._queued_lock:
            self._queued -= 1
        self._cancel_pending()
        self._timer = CancellableTimer(self._loop, self.delay, partial(self._fire, key, value))
        self._timer.start()

    def _fire(self, key: Hashable, value: float) -> None:
        self._timer = None
        task = self._loop.create_task(self._write(key, value))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _write(self, key: Hashable, value: float) -> None:
        try:
            await self._save(key, value)
        except Exception:
            # No retry: the next edit schedules another write.
            logger.exception("Failed to save semester average %.4f for %s", value, key)
        else:
            logger.info("Saved semester average %.4f for %s", value, key)


def start_background_loop() -> asyncio.AbstractEventLoop:
    """Run a new event loop forever in a daemon thread and return it."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, name="hns-save-loop", daemon=True)
    thread.start()
    return loop
