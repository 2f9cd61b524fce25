"""Network configuration rendering and reconciliation for the host agent."""

from __future__ import annotations

import ipaddress
import posixpath
from typing import List, Tuple

from hostagent.constants import (
    ARP_ANNOUNCE_COUNT,
    DHCP_CONFIG_PATH,
    IFCFG_DIR,
    NET_CLASS_GLOB,
    RESOLV_CONF_PATH,
)
from hostagent.exceptions import CommandError, ConfigWriteFailure, DeviceNotFound
from hostagent.models import NetworkConfig, Networks
from hostagent.system import Clock, CommandExecutor, FileStore, Scheduler
from hostagent.utils import log

DHCP_CONFIG_HEADER = """# Generated by host-agent

option rfc3442-classless-static-routes code 121 = array of unsigned integer 8;

send host-name "<hostname>";

request subnet-mask, broadcast-address, time-offset, routers,
\tdomain-name, domain-name-servers, domain-search, host-name,
\tnetbios-name-servers, netbios-scope, interface-mtu,
\trfc3442-classless-static-routes, ntp-servers;
"""


def collect_dns_servers(networks: Networks) -> List[str]:
    """Flatten DNS servers across networks, first occurrence wins.

    Every network contributes, not only the ones marked as the DNS default:
    servers listed on a non-default network such as a VIP still end up in
    the resolver list. Networks marked as the DNS default are visited first;
    the rest follow in name order so the result does not depend on mapping
    order.
    """
    ordered = sorted(networks.items(), key=lambda item: (not item[1].is_default_for("dns"), item[0]))
    servers: List[str] = []
    for _, network in ordered:
        for server in network.dns:
            if server not in servers:
                servers.append(server)
    return servers


def render_dhcp_config(dns_servers: List[str]) -> str:
    # dhclient prepends, so the last line written ends up first in resolv.conf
    lines = [f"prepend domain-name-servers {server};\n" for server in reversed(dns_servers)]
    if not lines:
        return DHCP_CONFIG_HEADER
    return DHCP_CONFIG_HEADER + "\n" + "".join(lines)


def broadcast_address(ip: str, netmask: str) -> str:
    try:
        network = ipaddress.IPv4Network(f"{ip}/{netmask}", strict=False)
    except ValueError as exc:
        raise ConfigWriteFailure(f"Invalid address {ip}/{netmask}: {exc}") from exc
    return str(network.broadcast_address)


def render_ifcfg(interface: str, network: NetworkConfig) -> str:
    lines = [f"DEVICE={interface}"]
    if network.ip:
        lines.append("BOOTPROTO=static")
        lines.append(f"IPADDR={network.ip}")
        if network.netmask:
            lines.append(f"NETMASK={network.netmask}")
            lines.append(f"BROADCAST={broadcast_address(network.ip, network.netmask)}")
        if network.gateway:
            lines.append(f"GATEWAY={network.gateway}")
    else:
        lines.append("BOOTPROTO=dhcp")
    lines.append("ONBOOT=yes")
    return "\n".join(lines)


def render_resolv_conf(dns_servers: List[str]) -> str:
    return "".join(f"nameserver {server}\n" for server in dns_servers)


class NetworkConfigurator:
    """Reconcile DHCP or static interface configuration.

    ``arp_announce_interval`` spaces the gratuitous ARP packets sent after a
    static configuration change; ``network_operation_delay`` is the settle
    time waited after every network service restart.
    """

    def __init__(
        self,
        fs: FileStore,
        runner: CommandExecutor,
        clock: Clock,
        scheduler: Scheduler,
        arp_announce_interval: float,
        network_operation_delay: float,
    ) -> None:
        self.fs = fs
        self.runner = runner
        self.clock = clock
        self.scheduler = scheduler
        self.arp_announce_interval = arp_announce_interval
        self.network_operation_delay = network_operation_delay

    def setup_dhcp(self, networks: Networks) -> bool:
        """Write dhclient.conf and restart networking when it changed.

        Returns True when the configuration was rewritten.
        """
        content = render_dhcp_config(collect_dns_servers(networks))
        if self.fs.exists(DHCP_CONFIG_PATH) and self._read(DHCP_CONFIG_PATH) == content:
            log("INFO", "DHCP configuration unchanged; skipping network restart")
            return False
        self._write(DHCP_CONFIG_PATH, content)
        self._restart_networking()
        return True

    def setup_manual_networking(self, networks: Networks) -> None:
        """Write static interface files, restart networking, then announce.

        Returns once the restart completes; the ARP announcements continue in
        the background and their failures only show up in the log.
        """
        announcements: List[Tuple[str, str]] = []
        for name, network in sorted(networks.items()):
            if not network.mac:
                continue
            interface = self.find_interface_by_mac(network.mac)
            log("INFO", f"Network '{name}': configuring {interface} ({network.ip or 'dhcp'})")
            self._write(posixpath.join(IFCFG_DIR, f"ifcfg-{interface}"), render_ifcfg(interface, network))
            if network.ip:
                announcements.append((interface, network.ip))

        self._write(RESOLV_CONF_PATH, render_resolv_conf(collect_dns_servers(networks)))
        self._restart_networking()

        if announcements:
            self.scheduler.spawn(self._announce_addresses, announcements, name="gratuitous-arp")

    def find_interface_by_mac(self, mac: str) -> str:
        wanted = mac.strip().lower()
        for device_dir in self.fs.glob(NET_CLASS_GLOB):
            address_path = posixpath.join(device_dir, "address")
            if not self.fs.exists(address_path):
                continue
            if self._read(address_path).strip().lower() == wanted:
                return posixpath.basename(device_dir)
        raise DeviceNotFound(f"No network interface found with MAC address {mac}")

    def _announce_addresses(self, announcements: List[Tuple[str, str]]) -> None:
        for _ in range(ARP_ANNOUNCE_COUNT):
            self.clock.sleep(self.arp_announce_interval)
            for interface, ip in announcements:
                try:
                    self.runner.run("arping", "-c", "1", "-U", "-I", interface, ip)
                except CommandError as exc:
                    log("WARN", f"Gratuitous ARP for {ip} on {interface} failed: {exc}")

    def _restart_networking(self) -> None:
        log("INFO", "Restarting network service")
        self.runner.run("service", "network", "restart")
        if self.network_operation_delay:
            self.clock.sleep(self.network_operation_delay)

    def _read(self, path: str) -> str:
        try:
            return self.fs.read(path)
        except OSError as exc:
            raise ConfigWriteFailure(f"Cannot read {path}: {exc}") from exc

    def _write(self, path: str, content: str) -> None:
        try:
            self.fs.write(path, content)
        except OSError as exc:
            raise ConfigWriteFailure(f"Cannot write {path}: {exc}") from exc
