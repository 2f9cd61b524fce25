"""Data models for the host agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from hostagent.constants import RUNTIME_RC_NAME


class Partition(NamedTuple):
    size_in_mb: int
    type: str  # PARTITION_TYPE_SWAP or PARTITION_TYPE_LINUX


class CommandResult(NamedTuple):
    stdout: str
    stderr: str
    returncode: int


@dataclass
class NetworkConfig:
    ip: Optional[str] = None
    netmask: Optional[str] = None
    gateway: Optional[str] = None
    mac: Optional[str] = None
    default: List[str] = field(default_factory=list)
    dns: List[str] = field(default_factory=list)

    def is_default_for(self, category: str) -> bool:
        return category in self.default


Networks = Dict[str, NetworkConfig]


@dataclass
class DiskSettings:
    ephemeral: Optional[str] = None
    persistent: Dict[str, str] = field(default_factory=dict)


@dataclass
class Settings:
    hostname: Optional[str] = None
    networks: Networks = field(default_factory=dict)
    disks: DiskSettings = field(default_factory=DiskSettings)


@dataclass
class AgentConfig:
    base_dir: Path
    settings_path: Path
    runtime_group: str
    arp_announce_interval: float
    network_operation_delay: float

    @property
    def data_dir(self) -> Path:
        return self.base_dir / "data"

    @property
    def store_dir(self) -> Path:
        return self.base_dir / "store"

    @property
    def runtime_rc_path(self) -> Path:
        return self.base_dir / "bosh" / "bin" / RUNTIME_RC_NAME
