"""Global constants and path configuration for the host agent."""

from __future__ import annotations

import os
import re
from pathlib import Path

DEFAULT_BASE_DIR = Path("/var/vcap")
DEFAULT_RUNTIME_GROUP = "vcap"
TRUTHY = {"1", "true", "yes", "on"}
MAC_ADDRESS_RE = re.compile(r"^[0-9a-f]{2}(:[0-9a-f]{2}){5}$")

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

# Device resolution. Independent of the configurable network durations.
DEVICE_RESOLVE_TIMEOUT = 1.0
DEVICE_POLL_INTERVAL = 0.1
# Most likely present first; the requested path is always tried last.
DEVICE_PREFIXES = ("/dev/xvd", "/dev/vd")
KNOWN_DEVICE_PREFIX_RE = re.compile(r"^/dev/(?:xvd|vd|sd|hd)([a-z]+)$")

PARTITION_TYPE_SWAP = "swap"
PARTITION_TYPE_LINUX = "linux"

FILESYSTEM_SWAP = "swap"
FILESYSTEM_EXT4 = "ext4"

DATA_DIR_MODE = 0o750
PERSISTENT_MOUNT_MODE = 0o700

# Network
DHCP_CONFIG_PATH = "/etc/dhcp/dhclient.conf"
IFCFG_DIR = "/etc/sysconfig/network-scripts"
RESOLV_CONF_PATH = "/etc/resolv.conf"
NET_CLASS_GLOB = "/sys/class/net/*"
ARP_ANNOUNCE_COUNT = 6
DEFAULT_ARP_ANNOUNCE_INTERVAL = "1.0"
DEFAULT_NETWORK_OPERATION_DELAY = "0.5"

# Host
HOSTNAME_PATH = "/etc/hostname"
HOSTS_PATH = "/etc/hosts"
TMP_DIR = "/tmp"
RUNTIME_RC_NAME = "host-agent-rc"

# Kernel state
PROC_MEMINFO = "/proc/meminfo"
PROC_MOUNTS = "/proc/mounts"
PROC_SWAPS = "/proc/swaps"
