"""Host state-store boundary.

The monitor never writes running-state itself. It reads what the store
believes and signals transitions through set_tool_running/set_tool_stopped.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Protocol

import structlog

from gamewatch.tracker import RunningEntry, Started, Stopped, Transition

log = structlog.get_logger()


class RunningStateStore(Protocol):
    """What a host application must provide to receive running-state."""

    def known_running(self) -> Mapping[str, RunningEntry]:
        """Return executable path -> running entry as currently recorded."""
        ...

    def set_tool_running(self, path: str, pid: int, exclusive: bool) -> None:
        """Record pid as the running process for path."""
        ...

    def set_tool_stopped(self, path: str) -> None:
        """Clear any running-state for path."""
        ...


def dispatch(store: RunningStateStore, transition: Transition) -> None:
    """Deliver one transition to the store."""
    if isinstance(transition, Started):
        store.set_tool_running(transition.path, transition.pid, transition.exclusive)
    elif isinstance(transition, Stopped):
        store.set_tool_stopped(transition.path)
    else:
        raise TypeError(f"Unknown transition: {transition!r}")


class MemoryStateStore:
    """In-process running-state store.

    Each path holds a single entry, so a start for an exclusive target
    replaces whatever was recorded before. Listeners are called after the
    state has changed.
    """

    def __init__(self) -> None:
        self._running: dict[str, RunningEntry] = {}
        self._listeners: list[Callable[[Transition], None]] = []

    def subscribe(self, listener: Callable[[Transition], None]) -> None:
        """Call listener with every applied transition."""
        self._listeners.append(listener)

    def known_running(self) -> Mapping[str, RunningEntry]:
        return dict(self._running)

    def set_tool_running(self, path: str, pid: int, exclusive: bool) -> None:
        self._running[path] = RunningEntry(pid=pid, exclusive=exclusive)
        self._notify(Started(path, pid, exclusive))

    def set_tool_stopped(self, path: str) -> None:
        if self._running.pop(path, None) is None:
            log.debug("stop_for_unknown_tool", path=path)
        self._notify(Stopped(path))

    def _notify(self, transition: Transition) -> None:
        for listener in self._listeners:
            listener(transition)
