"""Tests for platform backends."""

import os
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import psutil
import pytest

from gamewatch.backends import (
    ModuleInfo,
    ProcfsEnumerator,
    ProcfsInspector,
    PsutilEnumerator,
    PsutilInspector,
    parse_stat,
    select_backend,
)
from gamewatch.tree import ProcessRecord


def write_stat(proc: Path, pid: int, name: str, ppid: int) -> None:
    """Create a /proc/<pid>/stat file in a fake proc tree."""
    (proc / str(pid)).mkdir(parents=True, exist_ok=True)
    (proc / str(pid) / "stat").write_text(f"{pid} ({name}) S {ppid} {pid} {pid} 0 -1 4194560\n")


class TestParseStat:
    """Tests for /proc/<pid>/stat parsing."""

    def test_simple(self):
        record = parse_stat(1234, "1234 (bash) S 1000 1234 1234 34816 1234 4194304")
        assert record == ProcessRecord(1234, 1000, "bash")

    def test_name_with_spaces(self):
        record = parse_stat(77, "77 (Web Content) S 12 77 12 0 -1")
        assert record.exe_name == "Web Content"
        assert record.ppid == 12

    def test_name_with_parentheses(self):
        record = parse_stat(77, "77 (evil) S 1 (x)) R 42 77 77 0 -1")
        assert record.exe_name == "evil) S 1 (x)"
        assert record.ppid == 42

    def test_kernel_thread_without_parent(self):
        record = parse_stat(2, "2 (kthreadd) S 0 0 0 0 -1")
        assert record.ppid == 0

    @pytest.mark.parametrize("stat", ["", "12 bash S 1", "12 (bash)", "12 (bash) S"])
    def test_malformed(self, stat):
        with pytest.raises(ValueError):
            parse_stat(12, stat)


class TestProcfsEnumerator:
    """Tests for ProcfsEnumerator against a fake /proc."""

    def test_lists_numeric_entries_only(self, tmp_path):
        write_stat(tmp_path, 1, "init", 0)
        write_stat(tmp_path, 42, "game.exe", 1)
        (tmp_path / "self").mkdir()
        (tmp_path / "cpuinfo").write_text("processor : 0\n")

        snapshot = ProcfsEnumerator(tmp_path).list_processes()

        assert sorted(snapshot.by_pid) == [1, 42]
        assert snapshot.by_pid[42] == ProcessRecord(42, 1, "game.exe")

    def test_vanished_process_is_skipped(self, tmp_path):
        write_stat(tmp_path, 1, "init", 0)
        # Directory listed but stat gone: process exited between listdir and read
        (tmp_path / "99").mkdir()

        snapshot = ProcfsEnumerator(tmp_path).list_processes()

        assert list(snapshot.by_pid) == [1]

    def test_malformed_stat_is_skipped(self, tmp_path):
        write_stat(tmp_path, 1, "init", 0)
        (tmp_path / "5").mkdir()
        (tmp_path / "5" / "stat").write_text("5 (trunc")

        snapshot = ProcfsEnumerator(tmp_path).list_processes()

        assert list(snapshot.by_pid) == [1]

    def test_other_read_errors_abort(self, tmp_path):
        write_stat(tmp_path, 1, "init", 0)
        enumerator = ProcfsEnumerator(tmp_path)
        with patch.object(Path, "read_text", side_effect=PermissionError("denied")):
            with pytest.raises(PermissionError):
                enumerator.list_processes()

    def test_missing_proc_root_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ProcfsEnumerator(tmp_path / "nope").list_processes()


class TestProcfsInspector:
    """Tests for ProcfsInspector against a fake /proc."""

    def test_main_module_from_exe_link(self, tmp_path):
        binary = tmp_path / "bin" / "tool.exe"
        binary.parent.mkdir()
        binary.write_text("")
        (tmp_path / "42").mkdir()
        os.symlink(binary, tmp_path / "42" / "exe")

        assert ProcfsInspector(tmp_path).main_module(42) == str(binary)

    def test_modules_include_mapped_files(self, tmp_path):
        (tmp_path / "42").mkdir()
        os.symlink("/games/tool.exe", tmp_path / "42" / "exe")
        (tmp_path / "42" / "maps").write_text(
            "00400000-00452000 r-xp 00000000 08:02 173521 /games/tool.exe\n"
            "7f0000000000-7f0000021000 r-xp 00000000 08:02 135522 /usr/lib/libc.so.6\n"
            "7f0000021000-7f0000022000 r--p 00021000 08:02 135522 /usr/lib/libc.so.6\n"
            "7ffd00000000-7ffd00021000 rw-p 00000000 00:00 0      [stack]\n"
            "7ffd00030000-7ffd00031000 rw-p 00000000 00:00 0\n"
        )

        modules = ProcfsInspector(tmp_path).list_modules(42)

        assert modules == [ModuleInfo("/games/tool.exe"), ModuleInfo("/usr/lib/libc.so.6")]

    def test_vanished_process_yields_nothing(self, tmp_path):
        inspector = ProcfsInspector(tmp_path)
        assert inspector.main_module(42) is None
        assert inspector.list_modules(42) == []


class TestPsutilBackend:
    """Tests for the psutil strategy with psutil mocked out."""

    def test_enumerator_builds_records(self):
        procs = [
            SimpleNamespace(info={"pid": 4, "ppid": 0, "name": "System"}),
            SimpleNamespace(info={"pid": 42, "ppid": 4, "name": "Game.exe"}),
            SimpleNamespace(info={"pid": 43, "ppid": None, "name": None}),
        ]
        with patch("gamewatch.backends.psutil.process_iter", return_value=iter(procs)):
            snapshot = PsutilEnumerator().list_processes()

        assert snapshot.by_pid[42] == ProcessRecord(42, 4, "Game.exe")
        assert snapshot.by_pid[43] == ProcessRecord(43, 0, "")
        assert [p.pid for p in snapshot.by_exe_name["game.exe"]] == [42]

    def test_inspector_main_module(self):
        proc = MagicMock()
        proc.exe.return_value = "C:\\Games\\Game.exe"
        with patch("gamewatch.backends.psutil.Process", return_value=proc):
            assert PsutilInspector().main_module(42) == "C:\\Games\\Game.exe"

    @pytest.mark.parametrize(
        "error",
        [psutil.NoSuchProcess(42), psutil.AccessDenied(42), psutil.ZombieProcess(42)],
    )
    def test_inspector_errors_mean_unconfirmed(self, error):
        with patch("gamewatch.backends.psutil.Process", side_effect=error):
            inspector = PsutilInspector()
            assert inspector.main_module(42) is None
            assert inspector.list_modules(42) == []

    def test_inspector_empty_exe(self):
        proc = MagicMock()
        proc.exe.return_value = ""
        with patch("gamewatch.backends.psutil.Process", return_value=proc):
            assert PsutilInspector().main_module(42) is None

    def test_list_modules_main_image_first(self):
        proc = MagicMock()
        proc.exe.return_value = "/games/tool"
        proc.memory_maps.return_value = [
            SimpleNamespace(path="/usr/lib/libc.so.6"),
            SimpleNamespace(path="/games/tool"),
            SimpleNamespace(path="[heap]"),
        ]
        with patch("gamewatch.backends.psutil.Process", return_value=proc):
            modules = PsutilInspector().list_modules(42)

        assert modules == [ModuleInfo("/games/tool"), ModuleInfo("/usr/lib/libc.so.6")]


class TestSelectBackend:
    """Tests for platform selection."""

    def test_windows_uses_psutil(self):
        backend = select_backend("win32")
        assert backend is not None
        assert backend.name == "psutil"
        assert isinstance(backend.enumerator, PsutilEnumerator)
        assert isinstance(backend.inspector, PsutilInspector)

    def test_macos_uses_psutil(self):
        backend = select_backend("darwin")
        assert backend is not None
        assert backend.name == "psutil"

    def test_linux_uses_procfs(self):
        backend = select_backend("linux")
        assert backend is not None
        assert backend.name == "procfs"
        assert isinstance(backend.enumerator, ProcfsEnumerator)

    def test_unsupported_platform(self):
        assert select_backend("sunos5") is None
