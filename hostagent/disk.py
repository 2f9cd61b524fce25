"""Single-device disk primitives: partition, format, mount.

Provisioning logic consumes these through the ``DiskManager`` bundle; the
Linux implementation below shells out to util-linux/e2fsprogs through the
injected CommandExecutor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

from hostagent.constants import (
    FILESYSTEM_SWAP,
    PARTITION_TYPE_LINUX,
    PARTITION_TYPE_SWAP,
    PROC_MOUNTS,
    PROC_SWAPS,
)
from hostagent.exceptions import CommandError, PrimitiveFailure
from hostagent.models import Partition
from hostagent.system import CommandExecutor, FileStore
from hostagent.utils import bytes_to_mb, log


class Partitioner(Protocol):
    def partition(self, device_path: str, partitions: List[Partition]) -> None:
        ...

    def get_device_size_in_mb(self, device_path: str) -> int:
        ...


class Formatter(Protocol):
    def format(self, partition_path: str, fs_type: str) -> None:
        ...


class Mounter(Protocol):
    def mount(self, partition_path: str, mount_point: str, *options: str) -> None:
        ...

    def unmount(self, partition_or_mount_point: str) -> bool:
        ...

    def swap_on(self, partition_path: str) -> None:
        ...

    def is_mounted(self, partition_or_mount_point: str) -> bool:
        ...

    def remount_as_readonly(self, mount_point: str) -> None:
        ...

    def remount(self, from_mount_point: str, to_mount_point: str) -> None:
        ...


@dataclass
class DiskManager:
    partitioner: Partitioner
    formatter: Formatter
    mounter: Mounter


_SFDISK_TYPES = {PARTITION_TYPE_SWAP: "S", PARTITION_TYPE_LINUX: "L"}
# Type codes sfdisk --dump reports for each partition type (MBR id, GPT GUID).
_DUMP_TYPES = {
    PARTITION_TYPE_SWAP: {"82", "0657FD6D-A4AB-43C4-84E5-0933C84B4F4F"},
    PARTITION_TYPE_LINUX: {"83", "0FC63DAF-8483-4772-8E79-3D69D8477DE4"},
}
_SIZE_TOLERANCE_MB = 1


def _run(runner: CommandExecutor, name: str, *args: str, stdin: Optional[str] = None) -> str:
    try:
        return runner.run(name, *args, stdin=stdin).stdout
    except CommandError as exc:
        raise PrimitiveFailure(f"{name} failed: {exc}") from exc


def parse_sfdisk_dump(dump: str) -> List[Tuple[int, str]]:
    """Return ``(size_in_mb, type)`` for each partition in ``sfdisk --dump`` output."""
    sector_size = 512
    entries: List[Tuple[int, str]] = []
    for line in dump.splitlines():
        line = line.strip()
        if line.startswith("sector-size:"):
            value = line.split(":", 1)[1].strip()
            if value.isdigit():
                sector_size = int(value)
            continue
        if not line.startswith("/dev/") or ":" not in line:
            continue
        fields: Dict[str, str] = {}
        for item in line.split(":", 1)[1].split(","):
            key, sep, value = item.partition("=")
            if sep:
                fields[key.strip()] = value.strip()
        try:
            sectors = int(fields["size"])
        except (KeyError, ValueError):
            continue
        entries.append((bytes_to_mb(sectors * sector_size), fields.get("type", "").upper()))
    return entries


class SfdiskPartitioner:
    def __init__(self, runner: CommandExecutor) -> None:
        self.runner = runner

    def partition(self, device_path: str, partitions: List[Partition]) -> None:
        lines = []
        for index, part in enumerate(partitions):
            sfdisk_type = _SFDISK_TYPES.get(part.type)
            if sfdisk_type is None:
                raise PrimitiveFailure(f"Unsupported partition type '{part.type}'")
            # the last partition takes whatever is left after alignment
            size = "" if index == len(partitions) - 1 else f"{part.size_in_mb}MiB"
            lines.append(f",{size},{sfdisk_type}")
        if self._layout_matches(device_path, partitions):
            log("INFO", f"{device_path} already partitioned as requested; skipping")
            return
        script = "\n".join(lines) + "\n"
        log("INFO", f"Partitioning {device_path}: {', '.join(f'{p.size_in_mb}MiB {p.type}' for p in partitions)}")
        _run(self.runner, "sfdisk", device_path, stdin=script)

    def _layout_matches(self, device_path: str, partitions: List[Partition]) -> bool:
        result = self.runner.run("sfdisk", "--dump", device_path, check=False)
        if result.returncode != 0:
            return False
        existing = parse_sfdisk_dump(result.stdout)
        if len(existing) != len(partitions):
            return False
        last = len(partitions) - 1
        for index, (part, (size_in_mb, type_code)) in enumerate(zip(partitions, existing)):
            if type_code not in _DUMP_TYPES[part.type]:
                return False
            # the last partition's size depends on alignment, so only its type counts
            if index != last and abs(size_in_mb - part.size_in_mb) > _SIZE_TOLERANCE_MB:
                return False
        return True

    def get_device_size_in_mb(self, device_path: str) -> int:
        raw = _run(self.runner, "blockdev", "--getsize64", device_path).strip()
        try:
            return bytes_to_mb(int(raw))
        except ValueError:
            raise PrimitiveFailure(f"Unexpected size '{raw}' reported for {device_path}")


class LinuxFormatter:
    def __init__(self, runner: CommandExecutor) -> None:
        self.runner = runner

    def format(self, partition_path: str, fs_type: str) -> None:
        if self._current_fs_type(partition_path) == fs_type:
            log("INFO", f"{partition_path} already formatted as {fs_type}; skipping")
            return
        if fs_type == FILESYSTEM_SWAP:
            _run(self.runner, "mkswap", partition_path)
        else:
            _run(self.runner, "mke2fs", "-t", fs_type, "-j", partition_path)

    def _current_fs_type(self, partition_path: str) -> str:
        result = self.runner.run("blkid", "-p", "-s", "TYPE", "-o", "value", partition_path, check=False)
        if result.returncode != 0:
            return ""
        return result.stdout.strip()


class LinuxMounter:
    def __init__(self, runner: CommandExecutor, fs: FileStore) -> None:
        self.runner = runner
        self.fs = fs

    def mount(self, partition_path: str, mount_point: str, *options: str) -> None:
        _run(self.runner, "mount", partition_path, mount_point, *options)

    def unmount(self, partition_or_mount_point: str) -> bool:
        if not self.is_mounted(partition_or_mount_point):
            return False
        _run(self.runner, "umount", partition_or_mount_point)
        return True

    def swap_on(self, partition_path: str) -> None:
        for line in self.fs.read(PROC_SWAPS).splitlines()[1:]:
            fields = line.split()
            if fields and fields[0] == partition_path:
                return
        _run(self.runner, "swapon", partition_path)

    def is_mounted(self, partition_or_mount_point: str) -> bool:
        return self._find_mount(partition_or_mount_point) is not None

    def remount_as_readonly(self, mount_point: str) -> None:
        self.remount(mount_point, mount_point, "-o", "ro")

    def remount(self, from_mount_point: str, to_mount_point: str, *options: str) -> None:
        entry = self._find_mount(from_mount_point)
        if entry is None:
            raise PrimitiveFailure(f"Nothing is mounted at {from_mount_point}")
        device = entry[0]
        _run(self.runner, "umount", from_mount_point)
        self.mount(device, to_mount_point, *options)

    def _find_mount(self, partition_or_mount_point: str) -> Optional[List[str]]:
        for line in self.fs.read(PROC_MOUNTS).splitlines():
            fields = line.split()
            if len(fields) < 2:
                continue
            if partition_or_mount_point in (fields[0], fields[1]):
                return fields
        return None


def linux_disk_manager(runner: CommandExecutor, fs: FileStore) -> DiskManager:
    return DiskManager(
        partitioner=SfdiskPartitioner(runner),
        formatter=LinuxFormatter(runner),
        mounter=LinuxMounter(runner, fs),
    )
