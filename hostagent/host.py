"""Hostname, /tmp and runtime hook setup."""

from __future__ import annotations

from hostagent.constants import HOSTNAME_PATH, HOSTS_PATH, TMP_DIR
from hostagent.exceptions import ConfigWriteFailure
from hostagent.system import CommandExecutor, FileStore
from hostagent.utils import log

HOSTS_TEMPLATE = """127.0.0.1 localhost {hostname}

# The following lines are desirable for IPv6 capable hosts
::1 localhost ip6-localhost ip6-loopback {hostname}
fe00::0 ip6-localnet
ff00::0 ip6-mcastprefix
ff02::1 ip6-allnodes
ff02::2 ip6-allrouters
ff02::3 ip6-allhosts
"""


class HostConfigurator:
    def __init__(self, fs: FileStore, runner: CommandExecutor, runtime_group: str, rc_path: str) -> None:
        self.fs = fs
        self.runner = runner
        self.runtime_group = runtime_group
        self.rc_path = rc_path

    def setup_runtime_configuration(self) -> bool:
        """Run the site rc hook if one is installed. Returns False when absent."""
        if not self.fs.exists(self.rc_path):
            log("WARN", f"No runtime hook at {self.rc_path}; skipping")
            return False
        log("INFO", f"Running runtime hook {self.rc_path}")
        self.runner.run(self.rc_path)
        return True

    def setup_hostname(self, hostname: str) -> None:
        log("INFO", f"Setting hostname to {hostname}")
        self.runner.run("hostname", hostname)
        try:
            self.fs.write(HOSTNAME_PATH, hostname)
            self.fs.write(HOSTS_PATH, HOSTS_TEMPLATE.format(hostname=hostname))
        except OSError as exc:
            raise ConfigWriteFailure(f"Cannot write hostname files: {exc}") from exc

    def setup_tmp_dir(self) -> None:
        self.runner.run("chown", f"root:{self.runtime_group}", TMP_DIR)
        self.runner.run("chmod", "0770", TMP_DIR)
