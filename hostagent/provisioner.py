"""Ephemeral and persistent disk provisioning."""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import List, Tuple

from hostagent.constants import (
    DATA_DIR_MODE,
    FILESYSTEM_EXT4,
    FILESYSTEM_SWAP,
    PARTITION_TYPE_LINUX,
    PARTITION_TYPE_SWAP,
    PERSISTENT_MOUNT_MODE,
)
from hostagent.devices import DeviceResolver
from hostagent.disk import DiskManager
from hostagent.exceptions import CommandError, PrimitiveFailure
from hostagent.models import Partition
from hostagent.system import CommandExecutor, FileStore, StatsCollector
from hostagent.utils import bytes_to_mb, log, partition_path


def ephemeral_partition_sizes(disk_size_in_mb: int, total_mem_in_mb: int) -> Tuple[int, int]:
    """Return ``(swap, root)`` sizes in MB for an ephemeral disk."""
    if disk_size_in_mb > total_mem_in_mb * 2:
        swap = total_mem_in_mb
    else:
        swap = disk_size_in_mb // 2
    return swap, disk_size_in_mb - swap


class DiskProvisioner:
    """Drives the disk primitives to lay out ephemeral and persistent disks.

    Failures abort the current operation and propagate; nothing is rolled
    back. A half-configured disk is redone from scratch on the next boot.
    """

    def __init__(
        self,
        resolver: DeviceResolver,
        disk_manager: DiskManager,
        stats: StatsCollector,
        fs: FileStore,
        runner: CommandExecutor,
        data_dir: Path,
        runtime_group: str,
    ) -> None:
        self.resolver = resolver
        self.partitioner = disk_manager.partitioner
        self.formatter = disk_manager.formatter
        self.mounter = disk_manager.mounter
        self.stats = stats
        self.fs = fs
        self.runner = runner
        self.data_dir = Path(data_dir)
        self.runtime_group = runtime_group

    def setup_ephemeral_disk_with_path(self, device_path: str) -> None:
        real_path = self.resolver.resolve_or_raise(device_path)
        log("INFO", f"Setting up ephemeral disk {real_path}")

        total_mem_in_mb = bytes_to_mb(self.stats.total_memory_bytes())
        disk_size_in_mb = self.partitioner.get_device_size_in_mb(real_path)
        swap_size, root_size = ephemeral_partition_sizes(disk_size_in_mb, total_mem_in_mb)
        partitions: List[Partition] = [
            Partition(swap_size, PARTITION_TYPE_SWAP),
            Partition(root_size, PARTITION_TYPE_LINUX),
        ]
        self.partitioner.partition(real_path, partitions)

        swap_partition = partition_path(real_path, 1)
        data_partition = partition_path(real_path, 2)
        self.formatter.format(swap_partition, FILESYSTEM_SWAP)
        self.formatter.format(data_partition, FILESYSTEM_EXT4)

        self.fs.mkdir_all(str(self.data_dir), DATA_DIR_MODE)
        self.mounter.mount(data_partition, str(self.data_dir))
        self.mounter.swap_on(swap_partition)

        sys_dir = self.data_dir / "sys"
        log_dir = sys_dir / "log"
        run_dir = sys_dir / "run"
        self.fs.mkdir_all(str(log_dir), DATA_DIR_MODE)
        self.fs.mkdir_all(str(run_dir), DATA_DIR_MODE)
        # parent before children
        for path in (sys_dir, log_dir, run_dir):
            self._chown_to_runtime_group(str(path))
        log("SUCCESS", f"Ephemeral disk ready: swap {swap_size}MB, data {root_size}MB at {self.data_dir}")

    def mount_persistent_disk(self, device_path: str, mount_point: str) -> None:
        real_path = self.resolver.resolve_or_raise(device_path)
        log("INFO", f"Mounting persistent disk {real_path} at {mount_point}")

        disk_size_in_mb = self.partitioner.get_device_size_in_mb(real_path)
        self.partitioner.partition(real_path, [Partition(disk_size_in_mb, PARTITION_TYPE_LINUX)])

        data_partition = partition_path(real_path, 1)
        self.formatter.format(data_partition, FILESYSTEM_EXT4)
        if not self.fs.exists(mount_point):
            self.fs.mkdir_all(mount_point, PERSISTENT_MOUNT_MODE)
        self.mounter.mount(data_partition, mount_point)

    def unmount_persistent_disk(self, device_path: str) -> bool:
        real_path = self.resolver.resolve_or_raise(device_path)
        did_unmount = self.mounter.unmount(partition_path(real_path, 1))
        if did_unmount:
            log("INFO", f"Unmounted persistent disk {real_path}")
        else:
            log("INFO", f"Persistent disk {real_path} was not mounted")
        return did_unmount

    def is_device_path_mounted(self, device_path: str) -> bool:
        real_path = self.resolver.resolve_or_raise(device_path)
        return self.mounter.is_mounted(partition_path(real_path, 1))

    def migrate_persistent_disk(self, from_mount_point: str, to_mount_point: str) -> None:
        """Copy ``from`` onto the disk at ``to`` and move that disk to ``from``.

        ``from`` is left read-only if the copy fails; remounting it read-write
        is a manual step.
        """
        log("INFO", f"Migrating persistent disk {from_mount_point} -> {to_mount_point}")
        self.mounter.remount_as_readonly(from_mount_point)

        pipeline = "(tar -C {} -cf - .) | (tar -C {} -xpf -)".format(
            shlex.quote(from_mount_point), shlex.quote(to_mount_point)
        )
        try:
            self.runner.run("sh", "-c", pipeline)
        except CommandError as exc:
            log("ERROR", f"Copy failed; {from_mount_point} is still mounted read-only")
            raise PrimitiveFailure(f"Copying {from_mount_point} to {to_mount_point} failed: {exc}") from exc

        self.mounter.unmount(from_mount_point)
        self.mounter.remount(to_mount_point, from_mount_point)
        log("SUCCESS", f"Persistent disk migrated; new disk mounted at {from_mount_point}")

    def _chown_to_runtime_group(self, path: str) -> None:
        try:
            self.runner.run("chown", f"root:{self.runtime_group}", path)
        except CommandError as exc:
            raise PrimitiveFailure(f"Changing ownership of {path} failed: {exc}") from exc
