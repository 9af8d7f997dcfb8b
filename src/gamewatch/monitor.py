"""Process monitor: polls the process table and signals running-state changes."""

from __future__ import annotations

import asyncio
import os
import signal
import sys
from typing import Protocol

import structlog

from gamewatch import logging as console
from gamewatch.backends import Backend, select_backend
from gamewatch.config import Config
from gamewatch.scheduler import FocusProvider, PollScheduler
from gamewatch.store import MemoryStateStore, RunningStateStore, dispatch
from gamewatch.tracker import RunningToolTracker, Started, Transition, TrackedTarget

log = structlog.get_logger()


class TargetSource(Protocol):
    """Supplies the executables to watch, read once per check."""

    def targets(self) -> list[TrackedTarget]: ...


class ProcessMonitor:
    """Watches for the active game and its tools.

    With no backend for the platform the monitor is inert: start() does
    nothing and check() reports no transitions.
    """

    def __init__(
        self,
        store: RunningStateStore,
        source: TargetSource,
        config: Config | None = None,
        backend: Backend | None = None,
        focus: FocusProvider | None = None,
        root_pid: int | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize monitor.

        Args:
            store: Host state store that receives transitions
            source: Provides the targets for each check
            config: Polling configuration; defaults to Config()
            backend: Platform backend; defaults to select_backend()
            focus: Host window focus provider; None means always focused
            root_pid: Ancestry root for non-detached targets; defaults to our pid
            loop: Event loop for the scheduler
        """
        self.store = store
        self.source = source
        self.config = config or Config()
        self.backend = backend if backend is not None else select_backend()
        root_pid = root_pid if root_pid is not None else os.getpid()

        self.tracker: RunningToolTracker | None = None
        if self.backend is not None:
            self.tracker = RunningToolTracker(self.backend.inspector, root_pid)

        polling = self.config.polling
        self.scheduler = PollScheduler(
            self.check,
            focused_interval=polling.focused_interval,
            unfocused_interval=polling.unfocused_interval,
            focus=focus,
            loop=loop,
        )

    @property
    def supported(self) -> bool:
        """Return True if this platform has a process backend."""
        return self.backend is not None

    @property
    def active(self) -> bool:
        """Return True while polling."""
        return self.scheduler.active

    def start(self) -> None:
        """Start polling. No-op when unsupported or already running."""
        if self.backend is None:
            log.debug("process_monitor_unsupported", platform=sys.platform)
            return
        if self.scheduler.active:
            return
        log.debug("process_monitor_start", backend=self.backend.name)
        self.scheduler.start()

    def stop(self) -> None:
        """Stop polling."""
        if not self.scheduler.active:
            return
        self.scheduler.stop()
        log.debug("process_monitor_stop")

    def check(self) -> list[Transition]:
        """Run one check and signal its transitions to the store.

        Enumeration failures end this check only; they are logged and the
        next tick tries again.
        """
        if self.backend is None or self.tracker is None:
            return []

        targets = self.source.targets()
        if not targets:
            return []

        try:
            snapshot = self.backend.enumerator.list_processes()
        except OSError as e:
            log.warning("check_failed", error=str(e), backend=self.backend.name)
            console.check_failed(str(e))
            return []

        known = self.store.known_running()
        transitions = self.tracker.check(targets, known, snapshot)
        for transition in transitions:
            if isinstance(transition, Started):
                log.info(
                    "tool_started",
                    path=transition.path,
                    pid=transition.pid,
                    exclusive=transition.exclusive,
                )
            else:
                log.info("tool_stopped", path=transition.path)
            dispatch(self.store, transition)
        return transitions


def _print_transition(transition: Transition) -> None:
    if isinstance(transition, Started):
        console.tool_started(transition.path, transition.pid, transition.exclusive)
    else:
        console.tool_stopped(transition.path)


async def run_monitor(config: Config | None = None) -> None:
    """Run the monitor in the foreground until SIGINT or SIGTERM.

    Args:
        config: Optional config, loads from file if not provided
    """
    if config is None:
        config = Config.load()

    console.configure(config)

    store = MemoryStateStore()
    store.subscribe(_print_transition)
    monitor = ProcessMonitor(store, config, config=config)

    if not monitor.supported:
        console.monitor_unsupported(sys.platform)
        return
    if not config.targets():
        console.no_targets()

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(sig: signal.Signals) -> None:
        log.info("signal_received", signal=sig.name)
        console.signal_received(sig.name)
        shutdown.set()

    handled: list[signal.Signals] = []
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _handle_signal, sig)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            continue
        handled.append(sig)

    monitor.start()
    console.monitor_started(
        monitor.backend.name if monitor.backend else "none",
        config.polling.focused_interval,
        config.polling.unfocused_interval,
    )
    try:
        await shutdown.wait()
    finally:
        monitor.stop()
        for sig in handled:
            loop.remove_signal_handler(sig)
        console.monitor_stopped()
