"""Custom exceptions for the host agent."""

from __future__ import annotations

from typing import Sequence


class AgentError(RuntimeError):
    """Raised on unrecoverable configuration or provisioning errors."""


class CommandError(AgentError):
    """Raised when an executed command exits non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"Command '{' '.join(self.argv)}' exited with {returncode}{detail}")


class DeviceNotFound(AgentError):
    """Raised when a device node or network interface cannot be found."""


class PrimitiveFailure(AgentError):
    """Raised when a partition/format/mount/copy step fails."""


class ConfigWriteFailure(AgentError):
    """Raised when a configuration file cannot be rendered or written."""


class MalformedState(AgentError):
    """Raised when a settings or state file does not have the expected shape."""
