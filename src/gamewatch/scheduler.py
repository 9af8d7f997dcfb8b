"""Focus-aware polling timer.

The scheduler owns at most one pending asyncio timer handle. It only re-arms
after the check callback has returned, so checks never overlap.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum

import structlog

log = structlog.get_logger()

# Returns True/False for window focus, None when there is no window system
FocusProvider = Callable[[], "bool | None"]


class SchedulerState(Enum):
    """Lifecycle of a PollScheduler."""

    IDLE = "idle"
    ACTIVE = "active"


class PollScheduler:
    """Runs a check repeatedly, slower while the host window is in the background."""

    def __init__(
        self,
        check: Callable[[], object],
        focused_interval: float,
        unfocused_interval: float,
        focus: FocusProvider | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            check: Callback run on every tick
            focused_interval: Seconds between ticks while focused (or focus unknown)
            unfocused_interval: Seconds between ticks while not focused
            focus: Optional focus provider; None means always treated as focused
            loop: Event loop to schedule on; defaults to the running loop at start()
        """
        self._check = check
        self.focused_interval = focused_interval
        self.unfocused_interval = unfocused_interval
        self._focus = focus
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self.state = SchedulerState.IDLE
        self.tick_count = 0

    @property
    def active(self) -> bool:
        """Return True while ticks are being scheduled."""
        return self.state is SchedulerState.ACTIVE

    @property
    def pending(self) -> bool:
        """Return True if a tick is armed and not yet fired or cancelled."""
        return self._handle is not None and not self._handle.cancelled()

    def start(self) -> None:
        """Arm the first tick. No-op if already active."""
        if self.active:
            return
        self._cancel_pending()
        self.state = SchedulerState.ACTIVE
        self._arm(self.focused_interval)
        log.debug("scheduler_started", interval=self.focused_interval)

    def stop(self) -> None:
        """Cancel the pending tick. No-op if already idle."""
        if not self.active and self._handle is None:
            return
        self._cancel_pending()
        self.state = SchedulerState.IDLE
        log.debug("scheduler_stopped", ticks=self.tick_count)

    def next_interval(self) -> float:
        """Return the delay before the next tick, based on current focus."""
        focused = self._focus() if self._focus is not None else None
        if focused is None or focused:
            return self.focused_interval
        return self.unfocused_interval

    def _arm(self, delay: float) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._tick)

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        self._handle = None
        if not self.active:
            # stop() raced the timer
            return
        self.tick_count += 1
        try:
            self._check()
        except Exception as e:
            log.exception("scheduled_check_failed", error=str(e))
        # The check may have stopped us, or a start() from inside it re-armed
        if self.active and self._handle is None:
            self._arm(self.next_interval())
