"""vm-host-agent package."""

__all__ = [
    "agent",
    "cli",
    "config",
    "constants",
    "devices",
    "disk",
    "exceptions",
    "host",
    "models",
    "network",
    "provisioner",
    "system",
    "utils",
]
