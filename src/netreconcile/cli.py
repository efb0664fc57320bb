#!/usr/bin/env python3
"""Command-line front end for read-only queries.

Usage:
    python -m netreconcile.cli [--config FILE] DEVICE facts
    python -m netreconcile.cli [--config FILE] DEVICE show PATH
    python -m netreconcile.cli [--config FILE] DEVICE routes [--table TABLE]
    python -m netreconcile.cli [--config FILE] DEVICE interfaces [--name NAME]
    python -m netreconcile.cli [--config FILE] DEVICE get TYPE KEY

DEVICE "env" builds the device settings from JUNOS_* environment variables
instead of the inventory.
"""
import argparse
import asyncio
import logging
import sys
from dataclasses import asdict
from typing import Optional

from .config.inventory import DeviceInventory
from .config_engine import RESOURCES, ReconcileContext, reconciler_for
from .devices.base import DeviceConfig
from .devices.junos import JunosSession
from .exceptions import NetReconcileError
from .utils.logging_config import setup_logging

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s | %(levelname)-5s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

ENV_DEVICE = "env"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netreconcile",
        description="Query a NETCONF/Junos device",
    )
    parser.add_argument("--config", help="Device inventory file (devices.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log", action="store_true",
        help="Also log to NETRECONCILE_LOG_FILE (default: ~/.netreconcile/netreconcile.log)",
    )
    parser.add_argument("device", help=f"Device id from the inventory, or '{ENV_DEVICE}'")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("facts", help="Print system information")
    show = sub.add_parser("show", help="Print 'show configuration PATH | display set'")
    show.add_argument("path", nargs="*", help="Configuration path (empty for everything)")
    routes = sub.add_parser("routes", help="Print the route table")
    routes.add_argument("--table", help="Routing table name (e.g. inet.0)")
    interfaces = sub.add_parser("interfaces", help="Print terse interface status")
    interfaces.add_argument("--name", help="Interface name")
    get = sub.add_parser("get", help="Read one configuration entity")
    get.add_argument("type", choices=sorted(RESOURCES), help="Entity type")
    get.add_argument("key", help="Entity name")
    return parser


def load_device_config(device: str, config_path: Optional[str]) -> DeviceConfig:
    if device == ENV_DEVICE:
        return DeviceConfig.from_env(name=ENV_DEVICE)
    return DeviceInventory(config_path).get_device_config(device)


async def run(args: argparse.Namespace, config: DeviceConfig) -> None:
    if args.command == "get":
        context = ReconcileContext.from_device_config(config)
        record = await reconciler_for(args.type, context).read(args.key)
        if record is None:
            print(f"{args.type} {args.key}: not configured")
            return
        for name, value in asdict(record).items():
            print(f"{name}: {value}")
        return

    async with await JunosSession.open(config) as session:
        if args.command == "facts":
            for name, value in asdict(session.system_information).items():
                print(f"{name}: {value}")
        elif args.command == "show":
            words = ["show configuration", *args.path, "| display set"]
            output = await session.command(" ".join(words))
            print(output.strip())
        elif args.command == "routes":
            for route in await session.get_route_information(args.table):
                for entry in route.entries:
                    active = "*" if entry.current_active else " "
                    hops = ", ".join(
                        nh.to or nh.local_interface for nh in entry.next_hops
                    )
                    print(f"{active} {route.table:12s} {route.destination:20s} "
                          f"{entry.protocol:10s} {entry.preference:4d} {hops}")
        elif args.command == "interfaces":
            for status in await session.get_interfaces_terse(args.name):
                addresses = " ".join(
                    addr for addrs in status.addresses.values() for addr in addrs
                )
                print(f"{status.name:20s} {status.admin_status:5s} {status.oper_status:5s} {addresses}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    if args.log:
        setup_logging()

    try:
        config = load_device_config(args.device, args.config)
    except (KeyError, ValueError, FileNotFoundError) as e:
        logger.error(f"Cannot load device settings: {e}")
        return 1

    try:
        asyncio.run(run(args, config))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except NetReconcileError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
