"""Wiring and boot-time provisioning sequence."""

from __future__ import annotations

from typing import Optional

from hostagent.devices import DeviceResolver
from hostagent.disk import DiskManager, linux_disk_manager
from hostagent.exceptions import MalformedState
from hostagent.host import HostConfigurator
from hostagent.models import AgentConfig, Networks, Settings
from hostagent.network import NetworkConfigurator
from hostagent.provisioner import DiskProvisioner
from hostagent.system import (
    Clock,
    CommandExecutor,
    FileStore,
    HostFileStore,
    MeminfoStatsCollector,
    Scheduler,
    StatsCollector,
    SubprocessCommandExecutor,
    SystemClock,
    ThreadScheduler,
)
from hostagent.utils import log


def uses_manual_networking(networks: Networks) -> bool:
    return any(network.ip and network.mac for network in networks.values())


class HostAgent:
    def __init__(
        self,
        cfg: AgentConfig,
        fs: FileStore,
        runner: CommandExecutor,
        disk_manager: DiskManager,
        stats: StatsCollector,
        clock: Clock,
        scheduler: Scheduler,
    ) -> None:
        self.cfg = cfg
        self.scheduler = scheduler
        self.resolver = DeviceResolver(fs, clock)
        self.disks = DiskProvisioner(
            self.resolver,
            disk_manager,
            stats,
            fs,
            runner,
            data_dir=cfg.data_dir,
            runtime_group=cfg.runtime_group,
        )
        self.network = NetworkConfigurator(
            fs,
            runner,
            clock,
            scheduler,
            arp_announce_interval=cfg.arp_announce_interval,
            network_operation_delay=cfg.network_operation_delay,
        )
        self.host = HostConfigurator(fs, runner, cfg.runtime_group, str(cfg.runtime_rc_path))

    def bootstrap(self, settings: Settings) -> None:
        if len(settings.disks.persistent) > 1:
            raise MalformedState(
                f"Only one persistent disk is supported (got {len(settings.disks.persistent)})"
            )

        self.host.setup_runtime_configuration()
        if settings.hostname:
            self.host.setup_hostname(settings.hostname)

        if uses_manual_networking(settings.networks):
            self.network.setup_manual_networking(settings.networks)
        else:
            self.network.setup_dhcp(settings.networks)

        if settings.disks.ephemeral:
            self.disks.setup_ephemeral_disk_with_path(settings.disks.ephemeral)
        else:
            log("WARN", "No ephemeral disk configured; data stays on the root filesystem")

        self.host.setup_tmp_dir()

        for disk_id, device_path in settings.disks.persistent.items():
            log("INFO", f"Persistent disk '{disk_id}' -> {self.cfg.store_dir}")
            self.disks.mount_persistent_disk(device_path, str(self.cfg.store_dir))

        log("SUCCESS", "Host bootstrap complete")


def build_host_agent(cfg: AgentConfig, scheduler: Optional[ThreadScheduler] = None) -> HostAgent:
    fs = HostFileStore()
    runner = SubprocessCommandExecutor()
    return HostAgent(
        cfg,
        fs,
        runner,
        linux_disk_manager(runner, fs),
        MeminfoStatsCollector(fs),
        SystemClock(),
        scheduler or ThreadScheduler(),
    )
