"""Configuration loading and environment variable parsing for the host agent."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from hostagent.constants import (
    DEFAULT_ARP_ANNOUNCE_INTERVAL,
    DEFAULT_BASE_DIR,
    DEFAULT_NETWORK_OPERATION_DELAY,
    DEFAULT_RUNTIME_GROUP,
    MAC_ADDRESS_RE,
)
from hostagent.exceptions import AgentError, MalformedState
from hostagent.models import AgentConfig, DiskSettings, NetworkConfig, Networks, Settings
from hostagent.utils import get_env, parse_float_env


def parse_env() -> AgentConfig:
    base_dir = Path((get_env("AGENT_BASE_DIR") or "").strip() or DEFAULT_BASE_DIR)
    settings_raw = (get_env("AGENT_SETTINGS") or "").strip()
    settings_path = Path(settings_raw) if settings_raw else base_dir / "bosh" / "settings.yaml"
    runtime_group = (get_env("RUNTIME_GROUP") or "").strip() or DEFAULT_RUNTIME_GROUP

    arp_announce_interval = parse_float_env("ARP_ANNOUNCE_INTERVAL", DEFAULT_ARP_ANNOUNCE_INTERVAL)
    network_operation_delay = parse_float_env("NETWORK_OPERATION_DELAY", DEFAULT_NETWORK_OPERATION_DELAY)

    return AgentConfig(
        base_dir=base_dir,
        settings_path=settings_path,
        runtime_group=runtime_group,
        arp_announce_interval=arp_announce_interval,
        network_operation_delay=network_operation_delay,
    )


def _string_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedState(f"'{field_name}' must be a list of strings")
    return list(value)


def _optional_str(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedState(f"'{field_name}' must be a string")
    return value.strip() or None


def parse_network(name: str, raw: Any) -> NetworkConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise MalformedState(f"Network '{name}' must be a mapping")
    mac = _optional_str(raw.get("mac"), f"networks.{name}.mac")
    if mac is not None:
        mac = mac.lower()
        if not MAC_ADDRESS_RE.match(mac):
            raise MalformedState(f"Network '{name}' has an invalid MAC address '{mac}'")
    return NetworkConfig(
        ip=_optional_str(raw.get("ip"), f"networks.{name}.ip"),
        netmask=_optional_str(raw.get("netmask"), f"networks.{name}.netmask"),
        gateway=_optional_str(raw.get("gateway"), f"networks.{name}.gateway"),
        mac=mac,
        default=_string_list(raw.get("default"), f"networks.{name}.default"),
        dns=_string_list(raw.get("dns"), f"networks.{name}.dns"),
    )


def parse_settings(data: Any) -> Settings:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedState("Settings document must be a mapping")

    networks_raw = data.get("networks") or {}
    if not isinstance(networks_raw, dict):
        raise MalformedState("'networks' must be a mapping of name to network")
    networks: Networks = {str(name): parse_network(str(name), raw) for name, raw in networks_raw.items()}

    disks_raw = data.get("disks") or {}
    if not isinstance(disks_raw, dict):
        raise MalformedState("'disks' must be a mapping")
    persistent_raw = disks_raw.get("persistent") or {}
    if not isinstance(persistent_raw, dict):
        raise MalformedState("'disks.persistent' must be a mapping of disk id to device path")
    persistent: Dict[str, str] = {}
    for disk_id, device in persistent_raw.items():
        if not isinstance(device, str):
            raise MalformedState(f"Persistent disk '{disk_id}' must map to a device path")
        persistent[str(disk_id)] = device

    return Settings(
        hostname=_optional_str(data.get("hostname"), "hostname"),
        networks=networks,
        disks=DiskSettings(
            ephemeral=_optional_str(disks_raw.get("ephemeral"), "disks.ephemeral"),
            persistent=persistent,
        ),
    )


def load_settings(settings_path: Path) -> Settings:
    if not settings_path.exists():
        raise AgentError(f"Settings file missing: {settings_path}")
    try:
        data = yaml.safe_load(settings_path.read_text())
    except yaml.YAMLError as exc:
        raise MalformedState(f"Settings file {settings_path} contains invalid YAML: {exc}")
    return parse_settings(data)
