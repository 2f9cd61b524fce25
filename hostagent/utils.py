"""Utility functions for the host agent."""

from __future__ import annotations

import os
from typing import Optional

from hostagent.constants import _LOG_VERBOSE
from hostagent.exceptions import AgentError


def log(level: str, message: str) -> None:
    """Lightweight structured logging compatible with existing colour expectation."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def parse_float_env(name: str, default: str, min_val: float = 0.0) -> float:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = float(raw)
    except ValueError:
        raise AgentError(f"{name} must be a number of seconds (got '{raw}')")
    if value < min_val:
        raise AgentError(f"{name} must be >= {min_val} (got {value})")
    return value


def partition_path(device_path: str, number: int) -> str:
    """Return the node for partition ``number`` of ``device_path``."""
    # nvme/mmcblk devices use p suffix
    if device_path.endswith(tuple("0123456789")):
        return f"{device_path}p{number}"
    return f"{device_path}{number}"


def bytes_to_mb(value: int) -> int:
    return value // (1024 * 1024)
