"""Fakes and builders shared by the gamewatch tests."""

from collections.abc import Iterable

from gamewatch.backends import ModuleInfo
from gamewatch.tree import ProcessRecord, ProcessSnapshot

# Pid the tests pretend the monitor runs as
MONITOR_PID = 500


def make_snapshot(*rows: tuple[int, int, str]) -> ProcessSnapshot:
    """Create a snapshot from (pid, ppid, exe_name) tuples."""
    return ProcessSnapshot.from_records(ProcessRecord(pid, ppid, name) for pid, ppid, name in rows)


class FakeEnumerator:
    """Enumerator returning a settable snapshot, or raising a settable error."""

    def __init__(self, snapshot: ProcessSnapshot | None = None) -> None:
        self.snapshot = snapshot or make_snapshot()
        self.error: OSError | None = None
        self.calls = 0

    def list_processes(self) -> ProcessSnapshot:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.snapshot


class FakeInspector:
    """Inspector answering from a pid -> main image path mapping."""

    def __init__(self, images: dict[int, str] | None = None) -> None:
        self.images = images or {}
        self.inspected: list[int] = []

    def list_modules(self, pid: int) -> list[ModuleInfo]:
        image = self.main_module(pid)
        return [ModuleInfo(image)] if image else []

    def main_module(self, pid: int) -> str | None:
        self.inspected.append(pid)
        return self.images.get(pid)


class StaticTargets:
    """Target source with a fixed list."""

    def __init__(self, targets: Iterable) -> None:
        self._targets = list(targets)

    def targets(self) -> list:
        return list(self._targets)
