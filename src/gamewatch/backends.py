"""Platform backends for process enumeration and module inspection.

Two strategies are provided:
- psutil: native system calls, one iteration returning ready-made records
- procfs: reads the /proc pseudo-filesystem directly

select_backend() picks one pair per platform at startup. Platforms without a
strategy get None and the monitor stays inert.

Processes that disappear while being read are skipped, never raised.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import psutil
import structlog

from gamewatch.tree import ProcessRecord, ProcessSnapshot

log = structlog.get_logger()

# ─────────────────────────────────────────────────────────────────────────────
# Interfaces
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ModuleInfo:
    """An executable image or library mapped into a process."""

    path: str


class ProcessEnumerator(Protocol):
    """Lists every process on the system."""

    def list_processes(self) -> ProcessSnapshot:
        """Return a full snapshot.

        Raises:
            OSError: If the process table itself cannot be read.
        """
        ...


class ModuleInspector(Protocol):
    """Lists the modules loaded by a process."""

    def list_modules(self, pid: int) -> list[ModuleInfo]:
        """Return loaded modules, main image first. Empty if unreadable."""
        ...

    def main_module(self, pid: int) -> str | None:
        """Return the path of the main image, or None if unreadable."""
        ...


@dataclass(frozen=True)
class Backend:
    """Enumerator and inspector for one platform."""

    name: str
    enumerator: ProcessEnumerator
    inspector: ModuleInspector


# ─────────────────────────────────────────────────────────────────────────────
# psutil (native)
# ─────────────────────────────────────────────────────────────────────────────


class PsutilEnumerator:
    """Enumerates processes through psutil's native platform calls."""

    def list_processes(self) -> ProcessSnapshot:
        records = []
        # process_iter skips processes that exit mid-iteration and fills
        # unreadable attributes with None
        for proc in psutil.process_iter(["pid", "ppid", "name"]):
            info = proc.info
            records.append(
                ProcessRecord(
                    pid=info["pid"],
                    ppid=info.get("ppid") or 0,
                    exe_name=info.get("name") or "",
                )
            )
        return ProcessSnapshot.from_records(records)


class PsutilInspector:
    """Inspects process images through psutil."""

    def main_module(self, pid: int) -> str | None:
        try:
            exe = psutil.Process(pid).exe()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return None
        return exe or None

    def list_modules(self, pid: int) -> list[ModuleInfo]:
        main = self.main_module(pid)
        if main is None:
            return []
        paths = [main]
        maps = []
        # memory_maps() does not exist on macOS
        if hasattr(psutil.Process, "memory_maps"):
            try:
                maps = psutil.Process(pid).memory_maps(grouped=True)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                maps = []
        for mapping in maps:
            if os.path.isabs(mapping.path) and mapping.path not in paths:
                paths.append(mapping.path)
        return [ModuleInfo(path=p) for p in paths]


# ─────────────────────────────────────────────────────────────────────────────
# procfs
# ─────────────────────────────────────────────────────────────────────────────


def parse_stat(pid: int, stat: str) -> ProcessRecord:
    """Parse the contents of /proc/<pid>/stat.

    The command name is enclosed in parentheses and may itself contain
    parentheses and spaces, so it spans from the first "(" to the last ")".
    After the closing parenthesis come the state letter and then the ppid
    (see `man 5 proc`).

    Raises:
        ValueError: If the line does not have the documented layout.
    """
    start = stat.find("(")
    end = stat.rfind(")")
    if start < 0 or end < start:
        raise ValueError(f"Malformed stat line for pid {pid}: {stat!r}")
    rest = stat[end + 1 :].split()
    if len(rest) < 2:
        raise ValueError(f"Malformed stat line for pid {pid}: {stat!r}")
    return ProcessRecord(pid=pid, ppid=int(rest[1]), exe_name=stat[start + 1 : end])


class ProcfsEnumerator:
    """Enumerates processes by reading /proc/<pid>/stat."""

    def __init__(self, proc_path: Path = Path("/proc")) -> None:
        self.proc_path = proc_path

    def _read_record(self, pid: int) -> ProcessRecord | None:
        """Read one process. Returns None if it exited while we were looking."""
        try:
            stat = (self.proc_path / str(pid) / "stat").read_text(
                encoding="utf-8", errors="replace"
            )
        except (FileNotFoundError, ProcessLookupError):
            return None
        try:
            return parse_stat(pid, stat)
        except ValueError:
            # Truncated read of a dying process
            log.debug("procfs_stat_malformed", pid=pid)
            return None

    def list_processes(self) -> ProcessSnapshot:
        records = []
        for entry in os.listdir(self.proc_path):
            if not entry.isdigit():
                continue
            record = self._read_record(int(entry))
            if record is not None:
                records.append(record)
        return ProcessSnapshot.from_records(records)


class ProcfsInspector:
    """Inspects process images through /proc/<pid>/exe and /proc/<pid>/maps."""

    def __init__(self, proc_path: Path = Path("/proc")) -> None:
        self.proc_path = proc_path

    def main_module(self, pid: int) -> str | None:
        try:
            return os.readlink(self.proc_path / str(pid) / "exe")
        except OSError:
            # ENOENT (exited), EACCES (other user), EINVAL (kernel thread)
            return None

    def list_modules(self, pid: int) -> list[ModuleInfo]:
        main = self.main_module(pid)
        if main is None:
            return []
        paths = [main]
        try:
            maps = (self.proc_path / str(pid) / "maps").read_text(
                encoding="utf-8", errors="replace"
            )
        except OSError:
            maps = ""
        for line in maps.splitlines():
            # address perms offset dev inode pathname
            parts = line.split(None, 5)
            if len(parts) < 6:
                continue
            path = parts[5].strip()
            if path.startswith("/") and path not in paths:
                paths.append(path)
        return [ModuleInfo(path=p) for p in paths]


# ─────────────────────────────────────────────────────────────────────────────
# Selection
# ─────────────────────────────────────────────────────────────────────────────


def select_backend(platform: str | None = None) -> Backend | None:
    """Return the backend for a platform, or None if it is unsupported.

    Args:
        platform: A sys.platform value. Defaults to the running platform.
    """
    platform = platform or sys.platform
    if platform == "win32" or platform == "darwin":
        return Backend("psutil", PsutilEnumerator(), PsutilInspector())
    if platform.startswith("linux"):
        return Backend("procfs", ProcfsEnumerator(), ProcfsInspector())
    return None
