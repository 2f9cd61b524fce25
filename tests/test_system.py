"""Tests for hostagent.system module."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from hostagent.exceptions import AgentError, CommandError
from hostagent.system import (
    HostFileStore,
    MeminfoStatsCollector,
    SubprocessCommandExecutor,
    SystemClock,
    ThreadScheduler,
)


class TestSubprocessCommandExecutor:
    def test_success(self):
        proc = MagicMock(returncode=0, stdout="out", stderr="")
        with patch("hostagent.system.subprocess.run", return_value=proc) as mock_run:
            result = SubprocessCommandExecutor().run("echo", "hi", stdin="data")
        assert result.stdout == "out"
        assert result.returncode == 0
        mock_run.assert_called_once_with(
            ["echo", "hi"], input="data", capture_output=True, text=True, check=False
        )

    def test_nonzero_exit_raises(self):
        proc = MagicMock(returncode=3, stdout="", stderr="boom\n")
        with patch("hostagent.system.subprocess.run", return_value=proc):
            with pytest.raises(CommandError, match="exited with 3: boom") as exc:
                SubprocessCommandExecutor().run("false")
        assert exc.value.argv == ["false"]
        assert exc.value.returncode == 3

    def test_nonzero_exit_without_check(self):
        proc = MagicMock(returncode=3, stdout="", stderr="boom")
        with patch("hostagent.system.subprocess.run", return_value=proc):
            result = SubprocessCommandExecutor().run("false", check=False)
        assert result.returncode == 3
        assert result.stderr == "boom"

    def test_missing_binary(self):
        with patch("hostagent.system.subprocess.run", side_effect=FileNotFoundError("no such file")):
            with pytest.raises(CommandError) as exc:
                SubprocessCommandExecutor().run("not-a-binary")
        assert exc.value.returncode == 127

    def test_real_process(self):
        result = SubprocessCommandExecutor().run("cat", stdin="hello")
        assert result == ("hello", "", 0)


class TestHostFileStore:
    def test_write_and_read(self, tmp_path):
        store = HostFileStore()
        target = tmp_path / "etc" / "hostname"
        store.write(str(target), "agent-1", mode=0o640)
        assert store.read(str(target)) == "agent-1"
        assert store.exists(str(target))
        assert target.stat().st_mode & 0o777 == 0o640

    def test_mkdir_all_sets_leaf_mode(self, tmp_path):
        store = HostFileStore()
        leaf = tmp_path / "data" / "sys" / "log"
        store.mkdir_all(str(leaf), 0o750)
        assert leaf.is_dir()
        assert leaf.stat().st_mode & 0o777 == 0o750
        store.mkdir_all(str(leaf), 0o750)

    def test_glob_is_sorted(self, tmp_path):
        store = HostFileStore()
        for name in ("eth1", "eth0", "lo"):
            (tmp_path / name).mkdir()
        assert store.glob(str(tmp_path / "*")) == [
            str(tmp_path / "eth0"),
            str(tmp_path / "eth1"),
            str(tmp_path / "lo"),
        ]

    def test_read_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            HostFileStore().read(str(tmp_path / "missing"))


class TestMeminfoStatsCollector:
    def test_total_memory(self, fs):
        fs.write("/proc/meminfo", "MemTotal:        2048000 kB\nMemFree:         1024000 kB\n")
        assert MeminfoStatsCollector(fs).total_memory_bytes() == 2048000 * 1024

    def test_missing_total(self, fs):
        fs.write("/proc/meminfo", "MemFree:         1024000 kB\n")
        with pytest.raises(AgentError, match="/proc/meminfo"):
            MeminfoStatsCollector(fs).total_memory_bytes()

    def test_malformed_total(self, fs):
        fs.write("/proc/meminfo", "MemTotal: lots\n")
        with pytest.raises(AgentError):
            MeminfoStatsCollector(fs).total_memory_bytes()


class TestSystemClock:
    def test_sleep_delegates(self):
        with patch("hostagent.system.time.sleep") as mock_sleep:
            SystemClock().sleep(0.25)
        mock_sleep.assert_called_once_with(0.25)

    def test_monotonic_increases(self):
        clock = SystemClock()
        assert clock.monotonic() <= clock.monotonic()


class TestThreadScheduler:
    def test_spawn_runs_on_daemon_thread(self):
        scheduler = ThreadScheduler()
        seen = []

        def task(value):
            seen.append((value, threading.current_thread().name))

        thread = scheduler.spawn(task, 42, name="worker")
        assert thread.daemon is True
        assert scheduler.wait(timeout=5.0) is True
        assert seen == [(42, "worker")]

    def test_wait_times_out(self):
        scheduler = ThreadScheduler()
        release = threading.Event()
        scheduler.spawn(release.wait, 5.0)
        try:
            assert scheduler.wait(timeout=0.01) is False
        finally:
            release.set()
        assert scheduler.wait(timeout=5.0) is True

    def test_wait_without_tasks(self):
        assert ThreadScheduler().wait(timeout=0.0) is True
