# src/gamewatch/tracker.py
"""Running-state decisions for the game and its tools."""

from __future__ import annotations

import ntpath
import posixpath
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

import structlog

from gamewatch.tree import ProcessRecord, ProcessSnapshot, is_descendant_of

if TYPE_CHECKING:
    from gamewatch.backends import ModuleInspector

log = structlog.get_logger()


@dataclass(frozen=True)
class TrackedTarget:
    """An executable we want running-state for."""

    executable_path: str
    exclusive: bool = False
    allow_detached: bool = False


@dataclass(frozen=True)
class RunningEntry:
    """What the host store records for a running executable."""

    pid: int
    exclusive: bool = False


@dataclass(frozen=True)
class Started:
    """The executable at path is now running as pid."""

    path: str
    pid: int
    exclusive: bool


@dataclass(frozen=True)
class Stopped:
    """The executable at path is no longer running."""

    path: str


Transition = Union[Started, Stopped]


def _join_install_path(directory: str, name: str) -> str:
    """Join an installation directory and a file name using the directory's separator."""
    pathmod = ntpath if "\\" in directory else posixpath
    return pathmod.join(directory, name)


def _same_image(a: str, b: str) -> bool:
    """Compare image paths case-insensitively, treating / and \\ as the same separator."""
    return ntpath.normcase(a) == ntpath.normcase(b)


def build_targets(
    game_executable: str,
    game_path: str,
    tools: Mapping[str, tuple[str, bool, bool]],
) -> list[TrackedTarget]:
    """Assemble the targets for one check, game first.

    Args:
        game_executable: Game executable file name (relative to game_path)
        game_path: Game installation directory
        tools: tool id -> (path, exclusive, detached). Tools without a path
               are skipped.

    Returns:
        An empty list when the game has not been discovered (no executable or
        no installation path); tools are not checked without their game.
    """
    if not game_executable or not game_path:
        return []
    game_exe_path = _join_install_path(game_path, game_executable)
    targets = [TrackedTarget(game_exe_path, exclusive=True, allow_detached=True)]
    for path, exclusive, detached in tools.values():
        if not path:
            continue
        targets.append(TrackedTarget(path, exclusive=exclusive, allow_detached=detached))
    return targets


class RunningToolTracker:
    """Decides which targets started or stopped since the host store last heard.

    The tracker holds no state between checks. Everything it compares comes in
    through check(): the targets, what the store currently believes, and a
    fresh process snapshot. Module inspection is only done for candidates
    that survive the cheaper tests.
    """

    def __init__(self, inspector: ModuleInspector, root_pid: int) -> None:
        """Initialize tracker.

        Args:
            inspector: Module inspector used to confirm candidate images
            root_pid: Pid whose descendants count as launched by us (our own pid)
        """
        self.inspector = inspector
        self.root_pid = root_pid

    def check(
        self,
        targets: Sequence[TrackedTarget],
        known: Mapping[str, RunningEntry],
        snapshot: ProcessSnapshot,
    ) -> list[Transition]:
        """Return the transitions to signal, in target order."""
        transitions: list[Transition] = []
        for target in targets:
            transition = self._check_target(target, known.get(target.executable_path), snapshot)
            if transition is not None:
                transitions.append(transition)
        return transitions

    def _check_target(
        self,
        target: TrackedTarget,
        known: RunningEntry | None,
        snapshot: ProcessSnapshot,
    ) -> Transition | None:
        path = target.executable_path
        candidates = snapshot.candidates(path)

        if not candidates:
            # Nothing with a matching exe name is running
            return Stopped(path) if known is not None else None

        if known is not None and known.pid in snapshot.by_pid:
            # Steady state: the recorded process is still alive
            return None

        if not target.allow_detached:
            candidates = [
                proc for proc in candidates if is_descendant_of(proc, self.root_pid, snapshot)
            ]

        match = self._find_confirmed(candidates, path)
        if match is not None:
            log.debug("tool_match_confirmed", path=path, pid=match.pid)
            return Started(path, match.pid, target.exclusive)
        if known is not None:
            return Stopped(path)
        return None

    def _find_confirmed(
        self, candidates: Sequence[ProcessRecord], path: str
    ) -> ProcessRecord | None:
        """Return the first candidate whose main image is the configured executable."""
        for proc in candidates:
            main = self.inspector.main_module(proc.pid)
            if main is not None and _same_image(main, path):
                return proc
        return None
