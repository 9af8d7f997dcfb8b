# src/gamewatch/tree.py
"""Process snapshot indices and ancestry resolution."""

from __future__ import annotations

import ntpath
from collections.abc import Iterable
from dataclasses import dataclass, field

# Parent pid reported for processes without a parent (kernel threads, init's parent)
NO_PARENT = 0


@dataclass(frozen=True)
class ProcessRecord:
    """One row of the OS process table."""

    pid: int
    ppid: int
    exe_name: str


def exe_identity(path: str) -> str:
    """Return the key used to correlate an executable path with process names.

    Accepts both POSIX and Windows separators.
    """
    return ntpath.basename(path).lower()


@dataclass(frozen=True)
class ProcessSnapshot:
    """All processes captured at one instant.

    Built fresh for every check and discarded afterwards.
    """

    records: tuple[ProcessRecord, ...]
    by_pid: dict[int, ProcessRecord] = field(init=False, repr=False, compare=False)
    by_exe_name: dict[str, list[ProcessRecord]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_pid: dict[int, ProcessRecord] = {}
        by_exe_name: dict[str, list[ProcessRecord]] = {}
        for record in self.records:
            by_pid[record.pid] = record
            by_exe_name.setdefault(record.exe_name.lower(), []).append(record)
        object.__setattr__(self, "by_pid", by_pid)
        object.__setattr__(self, "by_exe_name", by_exe_name)

    @classmethod
    def from_records(cls, records: Iterable[ProcessRecord]) -> ProcessSnapshot:
        """Build a snapshot from any iterable of records."""
        return cls(records=tuple(records))

    def __len__(self) -> int:
        return len(self.records)

    def candidates(self, exe_path: str) -> list[ProcessRecord]:
        """Return processes whose exe name matches the file name of exe_path."""
        return self.by_exe_name.get(exe_identity(exe_path), [])


def is_descendant_of(
    candidate: ProcessRecord | None,
    root_pid: int,
    snapshot: ProcessSnapshot,
) -> bool:
    """Return True if candidate was spawned, directly or transitively, by root_pid.

    Parent chains reported by the OS can contain loops, so every parent pid is
    visited at most once and a revisit ends the walk with False.
    """
    visited: set[int] = set()
    current = candidate
    while current is not None and current.ppid != NO_PARENT:
        parent_pid = current.ppid
        if parent_pid in visited:
            return False
        visited.add(parent_pid)
        if parent_pid == root_pid:
            return True
        current = snapshot.by_pid.get(parent_pid)
    return False
