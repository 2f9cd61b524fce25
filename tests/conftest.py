"""Shared test fixtures and in-memory host fakes."""

from __future__ import annotations

import fnmatch
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from hostagent.disk import DiskManager
from hostagent.exceptions import CommandError
from hostagent.models import AgentConfig, CommandResult, Partition

FILE = "file"
DIR = "dir"


@dataclass
class FakeStat:
    file_type: str
    mode: Optional[int] = None
    owner: Optional[str] = None
    content: str = ""


class FakeFileStore:
    def __init__(self) -> None:
        self.files: Dict[str, FakeStat] = {}
        self.writes: List[str] = []
        self._lock = threading.Lock()

    def write(self, path: str, content: str, owner: Optional[str] = None, mode: Optional[int] = None) -> None:
        with self._lock:
            self.files[path] = FakeStat(FILE, mode=mode, owner=owner, content=content)
            self.writes.append(path)

    def read(self, path: str) -> str:
        stat = self.files.get(path)
        if stat is None:
            raise FileNotFoundError(path)
        return stat.content

    def exists(self, path: str) -> bool:
        return path in self.files

    def mkdir_all(self, path: str, mode: int) -> None:
        with self._lock:
            parent = str(Path(path).parent)
            while parent not in ("/", ".") and parent not in self.files:
                self.files[parent] = FakeStat(DIR, mode=mode)
                parent = str(Path(parent).parent)
            self.files[path] = FakeStat(DIR, mode=mode)

    def glob(self, pattern: str) -> List[str]:
        depth = pattern.count("/")
        return sorted(p for p in self.files if p.count("/") == depth and fnmatch.fnmatch(p, pattern))

    def remove(self, path: str) -> None:
        self.files.pop(path, None)

    def stat(self, path: str) -> Optional[FakeStat]:
        return self.files.get(path)


class FakeCommandExecutor:
    def __init__(self, events: Optional[List[Tuple]] = None) -> None:
        self.commands: List[List[str]] = []
        self.stdin: List[Optional[str]] = []
        self.results: Dict[Tuple[str, ...], CommandResult] = {}
        self.failures: Dict[str, int] = {}
        self.events = events if events is not None else []
        self._lock = threading.Lock()

    def run(self, name: str, *args: str, stdin: Optional[str] = None, check: bool = True) -> CommandResult:
        cmd = [name, *args]
        with self._lock:
            self.commands.append(cmd)
            self.stdin.append(stdin)
            self.events.append(("run", *cmd))
        if name in self.failures:
            result = CommandResult("", f"{name} failed", self.failures[name])
        else:
            result = self.results.get(tuple(cmd), CommandResult("", "", 0))
        if check and result.returncode != 0:
            raise CommandError(cmd, result.returncode, result.stderr)
        return result


class FakeClock:
    """Clock whose sleeps advance virtual time and fire scheduled callbacks."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []
        self._pending: List[Tuple[float, Callable[[], None]]] = []
        self._lock = threading.Lock()

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        with self._lock:
            self.sleeps.append(seconds)
            self.now += seconds
            due = [item for item in self._pending if item[0] <= self.now]
            self._pending = [item for item in self._pending if item[0] > self.now]
        for _, callback in due:
            callback()

    def call_at(self, when: float, callback: Callable[[], None]) -> None:
        self._pending.append((when, callback))


class FakeStatsCollector:
    def __init__(self, total_bytes: int = 1024 * 1024 * 1024) -> None:
        self.total_bytes = total_bytes

    def total_memory_bytes(self) -> int:
        return self.total_bytes


class FakePartitioner:
    def __init__(self) -> None:
        self.sizes: Dict[str, int] = {}
        self.partition_calls: List[Tuple[str, List[Partition]]] = []

    def partition(self, device_path: str, partitions: List[Partition]) -> None:
        self.partition_calls.append((device_path, list(partitions)))

    def get_device_size_in_mb(self, device_path: str) -> int:
        return self.sizes.get(device_path, 0)


class FakeFormatter:
    def __init__(self) -> None:
        self.format_calls: List[Tuple[str, str]] = []

    def format(self, partition_path: str, fs_type: str) -> None:
        self.format_calls.append((partition_path, fs_type))


class FakeMounter:
    def __init__(self, events: List[Tuple]) -> None:
        self.events = events
        self.mount_calls: List[Tuple[str, str]] = []
        self.unmount_calls: List[str] = []
        self.unmount_did_unmount = False
        self.swap_on_calls: List[str] = []
        self.is_mounted_result = False
        self.is_mounted_calls: List[str] = []
        self.remount_readonly_calls: List[str] = []
        self.remount_calls: List[Tuple[str, str]] = []

    def mount(self, partition_path: str, mount_point: str, *options: str) -> None:
        self.mount_calls.append((partition_path, mount_point))
        self.events.append(("mount", partition_path, mount_point))

    def unmount(self, partition_or_mount_point: str) -> bool:
        self.unmount_calls.append(partition_or_mount_point)
        self.events.append(("unmount", partition_or_mount_point))
        return self.unmount_did_unmount

    def swap_on(self, partition_path: str) -> None:
        self.swap_on_calls.append(partition_path)

    def is_mounted(self, partition_or_mount_point: str) -> bool:
        self.is_mounted_calls.append(partition_or_mount_point)
        return self.is_mounted_result

    def remount_as_readonly(self, mount_point: str) -> None:
        self.remount_readonly_calls.append(mount_point)
        self.events.append(("remount_ro", mount_point))

    def remount(self, from_mount_point: str, to_mount_point: str) -> None:
        self.remount_calls.append((from_mount_point, to_mount_point))
        self.events.append(("remount", from_mount_point, to_mount_point))


class RecordingScheduler:
    """Captures spawned tasks without running them."""

    def __init__(self) -> None:
        self.tasks: List[Tuple[Callable[..., None], tuple, str]] = []

    def spawn(self, target: Callable[..., None], *args, name: str = "task") -> None:
        self.tasks.append((target, args, name))

    def run_all(self) -> None:
        for target, args, _ in self.tasks:
            target(*args)


@pytest.fixture
def events() -> List[Tuple]:
    return []


@pytest.fixture
def fs() -> FakeFileStore:
    return FakeFileStore()


@pytest.fixture
def runner(events) -> FakeCommandExecutor:
    return FakeCommandExecutor(events)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stats() -> FakeStatsCollector:
    return FakeStatsCollector()


@pytest.fixture
def disk_manager(events) -> DiskManager:
    return DiskManager(
        partitioner=FakePartitioner(),
        formatter=FakeFormatter(),
        mounter=FakeMounter(events),
    )


@pytest.fixture
def agent_config(tmp_path) -> AgentConfig:
    return AgentConfig(
        base_dir=Path("/fake-dir"),
        settings_path=tmp_path / "settings.yaml",
        runtime_group="vcap",
        arp_announce_interval=0.001,
        network_operation_delay=0.0,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Clear all environment variables that parse_env() reads."""
    for key in (
        "AGENT_BASE_DIR",
        "AGENT_SETTINGS",
        "RUNTIME_GROUP",
        "ARP_ANNOUNCE_INTERVAL",
        "NETWORK_OPERATION_DELAY",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()
