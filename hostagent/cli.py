"""CLI entry points for the host agent."""

from __future__ import annotations

import argparse
import dataclasses
from typing import List, Optional

from hostagent.agent import HostAgent, build_host_agent
from hostagent.config import load_settings, parse_env
from hostagent.exceptions import AgentError
from hostagent.models import AgentConfig, Settings
from hostagent.system import ThreadScheduler
from hostagent.utils import log

ANNOUNCE_WAIT_TIMEOUT = 120.0


def show_config(cfg: AgentConfig, settings: Optional[Settings] = None) -> None:
    """Print the resolved agent configuration and settings."""
    for field in dataclasses.fields(cfg):
        print(f"  {field.name}: {getattr(cfg, field.name)}")
    if settings is None:
        return
    print(f"  hostname: {settings.hostname or '<unset>'}")
    for name, network in sorted(settings.networks.items()):
        print(f"  network {name}:")
        for sub_field in dataclasses.fields(network):
            print(f"    {sub_field.name}: {getattr(network, sub_field.name)}")
    print(f"  ephemeral disk: {settings.disks.ephemeral or '<none>'}")
    for disk_id, device in sorted(settings.disks.persistent.items()):
        print(f"  persistent disk {disk_id}: {device}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="host-agent", description="VM host provisioning agent")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("bootstrap", help="Apply settings: hostname, networking, disks")
    sub.add_parser("show-config", help="Show resolved configuration and settings, then exit")

    resolve = sub.add_parser("resolve-device", help="Print the real device node for a configured path")
    resolve.add_argument("device")

    mount = sub.add_parser("mount-disk", help="Partition, format and mount a persistent disk")
    mount.add_argument("device")
    mount.add_argument("mount_point")

    unmount = sub.add_parser("unmount-disk", help="Unmount a persistent disk")
    unmount.add_argument("device")

    mounted = sub.add_parser("is-mounted", help="Exit 0 when the persistent disk is mounted")
    mounted.add_argument("device")

    migrate = sub.add_parser("migrate-disk", help="Copy a persistent disk onto a new one and swap mounts")
    migrate.add_argument("from_mount_point")
    migrate.add_argument("to_mount_point")
    return parser


def _dispatch(args: argparse.Namespace, cfg: AgentConfig, agent: HostAgent) -> int:
    if args.command == "bootstrap":
        agent.bootstrap(load_settings(cfg.settings_path))
        return 0
    if args.command == "resolve-device":
        real_path = agent.resolver.resolve_or_raise(args.device)
        print(real_path)
        return 0
    if args.command == "mount-disk":
        agent.disks.mount_persistent_disk(args.device, args.mount_point)
        return 0
    if args.command == "unmount-disk":
        agent.disks.unmount_persistent_disk(args.device)
        return 0
    if args.command == "is-mounted":
        mounted = agent.disks.is_device_path_mounted(args.device)
        print("mounted" if mounted else "not mounted")
        return 0 if mounted else 1
    if args.command == "migrate-disk":
        agent.disks.migrate_persistent_disk(args.from_mount_point, args.to_mount_point)
        return 0
    raise AgentError(f"Unknown command '{args.command}'")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        cfg = parse_env()
    except AgentError as exc:
        log("ERROR", str(exc))
        return 1

    if args.command == "show-config":
        settings = None
        if cfg.settings_path.exists():
            try:
                settings = load_settings(cfg.settings_path)
            except AgentError as exc:
                log("ERROR", str(exc))
                return 1
        show_config(cfg, settings)
        return 0

    scheduler = ThreadScheduler()
    agent = build_host_agent(cfg, scheduler)
    try:
        return _dispatch(args, cfg, agent)
    except AgentError as exc:
        log("ERROR", str(exc))
        return 1
    finally:
        if not scheduler.wait(timeout=ANNOUNCE_WAIT_TIMEOUT):
            log("WARN", "Background network announcements still running at exit")
