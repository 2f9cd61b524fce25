"""Host capabilities: command execution, file access, memory stats, timing.

Every component receives these as constructor arguments so tests can swap in
in-memory fakes without touching provisioning logic.
"""

from __future__ import annotations

import glob as _glob
import os
import shutil
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from hostagent.constants import PROC_MEMINFO
from hostagent.exceptions import AgentError, CommandError
from hostagent.models import CommandResult
from hostagent.utils import log


class CommandExecutor(Protocol):
    def run(
        self, name: str, *args: str, stdin: Optional[str] = None, check: bool = True
    ) -> CommandResult:
        ...


class FileStore(Protocol):
    def write(self, path: str, content: str, owner: Optional[str] = None, mode: Optional[int] = None) -> None:
        ...

    def read(self, path: str) -> str:
        ...

    def exists(self, path: str) -> bool:
        ...

    def mkdir_all(self, path: str, mode: int) -> None:
        ...

    def glob(self, pattern: str) -> List[str]:
        ...


class StatsCollector(Protocol):
    def total_memory_bytes(self) -> int:
        ...


class Clock(Protocol):
    def monotonic(self) -> float:
        ...

    def sleep(self, seconds: float) -> None:
        ...


class Scheduler(Protocol):
    def spawn(self, target: Callable[..., None], *args, name: str = ...) -> object:
        ...


class SubprocessCommandExecutor:
    """Run commands with ``subprocess.run``, capturing text output."""

    def run(
        self, name: str, *args: str, stdin: Optional[str] = None, check: bool = True
    ) -> CommandResult:
        cmd = [name, *args]
        log("DEBUG", f"Running: {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, input=stdin, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise CommandError(cmd, 127, str(exc)) from exc
        if check and proc.returncode != 0:
            raise CommandError(cmd, proc.returncode, proc.stderr)
        return CommandResult(proc.stdout, proc.stderr, proc.returncode)


class HostFileStore:
    """FileStore backed by the real filesystem."""

    def write(self, path: str, content: str, owner: Optional[str] = None, mode: Optional[int] = None) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        if mode is not None:
            os.chmod(target, mode)
        if owner:
            user, _, group = owner.partition(":")
            shutil.chown(target, user=user or None, group=group or None)

    def read(self, path: str) -> str:
        return Path(path).read_text()

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def mkdir_all(self, path: str, mode: int) -> None:
        os.makedirs(path, mode=mode, exist_ok=True)
        # makedirs honours the umask; the leaf must carry the exact mode
        os.chmod(path, mode)

    def glob(self, pattern: str) -> List[str]:
        return sorted(_glob.glob(pattern))


class MeminfoStatsCollector:
    """Report total memory from ``/proc/meminfo``."""

    def __init__(self, fs: FileStore) -> None:
        self.fs = fs

    def total_memory_bytes(self) -> int:
        for line in self.fs.read(PROC_MEMINFO).splitlines():
            if line.startswith("MemTotal:"):
                parts = line.split()
                try:
                    return int(parts[1]) * 1024
                except (IndexError, ValueError):
                    break
        raise AgentError(f"Unable to determine total memory from {PROC_MEMINFO}")


class SystemClock:
    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class ThreadScheduler:
    """Spawn fire-and-forget tasks on daemon threads.

    Tasks have no return channel; anything they need to report goes to the log.
    """

    def __init__(self) -> None:
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def spawn(self, target: Callable[..., None], *args, name: str = "host-agent-task") -> threading.Thread:
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()
        return thread

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until spawned tasks finish. Returns False if any is still running."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        return not any(t.is_alive() for t in threads)
