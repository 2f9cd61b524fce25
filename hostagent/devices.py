"""Device path normalization across hypervisor naming schemes."""

from __future__ import annotations

from typing import List, Tuple

from hostagent.constants import (
    DEVICE_POLL_INTERVAL,
    DEVICE_PREFIXES,
    DEVICE_RESOLVE_TIMEOUT,
    KNOWN_DEVICE_PREFIX_RE,
)
from hostagent.exceptions import DeviceNotFound
from hostagent.system import Clock, FileStore
from hostagent.utils import log


def drive_suffix(requested_path: str) -> str:
    match = KNOWN_DEVICE_PREFIX_RE.match(requested_path)
    if match:
        return match.group(1)
    return requested_path[-1:]


def candidate_paths(requested_path: str) -> List[str]:
    """Alternate names for ``requested_path`` in precedence order."""
    suffix = drive_suffix(requested_path)
    candidates: List[str] = []
    for prefix in DEVICE_PREFIXES:
        path = prefix + suffix
        if path not in candidates:
            candidates.append(path)
    if requested_path not in candidates:
        candidates.append(requested_path)
    return candidates


class DeviceResolver:
    """Resolve a configured device path to the node the kernel actually exposes.

    Devices may still be enumerating right after a hot-attach, so the full
    candidate list is rescanned until one exists or the timeout elapses.
    The call blocks for at most ``DEVICE_RESOLVE_TIMEOUT`` seconds.
    """

    def __init__(
        self,
        fs: FileStore,
        clock: Clock,
        timeout: float = DEVICE_RESOLVE_TIMEOUT,
        interval: float = DEVICE_POLL_INTERVAL,
    ) -> None:
        self.fs = fs
        self.clock = clock
        self.timeout = timeout
        self.interval = interval

    def resolve(self, requested_path: str) -> Tuple[str, bool]:
        candidates = candidate_paths(requested_path)
        deadline = self.clock.monotonic() + self.timeout
        while True:
            for candidate in candidates:
                if self.fs.exists(candidate):
                    if candidate != requested_path:
                        log("DEBUG", f"Resolved {requested_path} to {candidate}")
                    return candidate, True
            remaining = deadline - self.clock.monotonic()
            if remaining <= 0:
                return "", False
            # the last scan lands on the deadline, never past it
            self.clock.sleep(min(self.interval, remaining))

    def resolve_or_raise(self, requested_path: str) -> str:
        real_path, found = self.resolve(requested_path)
        if not found:
            raise DeviceNotFound(
                f"No device found for {requested_path} after {self.timeout:g}s "
                f"(tried {', '.join(candidate_paths(requested_path))})"
            )
        return real_path
