# cli.py
import argparse
import json
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

if __package__ in (None, ""):
    project_root = Path(__file__).resolve().parent.parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))

import yaml

from models.errors import MonitorError
from models.schemas import StaticEntry
from models.static_model import StaticStore
from monitor.engine import EngineConfig, HostsSource, build_monitor
from monitor.hosts import HostsParser
from utils.logger import get_logger, log_metric, log_stage

CONFIG_ENV = "DHCPMON_CONFIG"
ENTRY_FIELDS = ("mac", "ip", "hostname", "tag", "lease_time", "comment")


def _write_json(items, output=None):
    payload = json.dumps([item.model_dump(mode="json") for item in items], indent=2)
    if output:
        target = Path(output)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)


def _add_entry_arguments(parser, require_mac):
    parser.add_argument("--mac", required=require_mac, help="Hardware address")
    parser.add_argument("--ip", help="Reserved IPv4 address")
    parser.add_argument("--hostname", help="Hostname handed to the client")
    parser.add_argument("--tag", help="dnsmasq tag (written as set:<tag>)")
    parser.add_argument("--lease-time", dest="lease_time", help="Lease time, e.g. 12h or infinite")
    parser.add_argument("--comment", help="Trailing comment")


def build_parser():
    parser = argparse.ArgumentParser(prog="dhcpmon", description="Watch dnsmasq leases, hosts and static reservations.")
    parser.add_argument("--config", default=os.getenv(CONFIG_ENV), help="Path to dhcpmon.yaml")
    parser.add_argument("--log-level", default=None, help="Overrides the configured log level")
    commands = parser.add_subparsers(dest="command", required=True)

    watch = commands.add_parser("watch", help="Run the monitor until interrupted")
    watch.add_argument(
        "--report-seconds",
        type=float,
        default=0.0,
        help="If >0, log a status summary at this interval.",
    )

    for name in ("leases", "hosts"):
        dump = commands.add_parser(name, help=f"Print the current {name} as JSON")
        dump.add_argument("--output", help="Write JSON here instead of stdout")

    static = commands.add_parser("static", help="Manage static DHCP reservations")
    actions = static.add_subparsers(dest="action", required=True)

    listing = actions.add_parser("list")
    listing.add_argument("--output")
    listing.add_argument("--mac", help="Case-insensitive MAC substring")
    listing.add_argument("--hostname", help="Case-insensitive hostname substring")
    state = listing.add_mutually_exclusive_group()
    state.add_argument("--enabled", dest="enabled", action="store_const", const=True, default=None)
    state.add_argument("--disabled", dest="enabled", action="store_const", const=False)

    actions.add_parser("validate")

    add = actions.add_parser("add")
    _add_entry_arguments(add, require_mac=True)
    add.add_argument("--disabled", action="store_true", help="Store the reservation commented out")

    update = actions.add_parser("update")
    update.add_argument("id")
    _add_entry_arguments(update, require_mac=False)

    for name in ("delete", "enable", "disable"):
        actions.add_parser(name).add_argument("id")

    return parser


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------
def run_watch(args, config, logger):
    monitor = build_monitor(config)
    logger.info("Starting monitor. Press Ctrl+C to stop.")
    try:
        with monitor:
            while True:
                if args.report_seconds > 0:
                    time.sleep(args.report_seconds)
                    logger.info(
                        "Status at %s | states=%s",
                        datetime.now(timezone.utc).isoformat(),
                        monitor.source_states(),
                    )
                    log_metric(logger, "leases", len(monitor.get_leases()))
                    log_metric(logger, "hosts", len(monitor.get_hosts()))
                    log_metric(logger, "static_entries", len(monitor.get_static_entries()))
                else:
                    time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Monitor interrupted by user; exiting.")
    return 0


def run_leases(args, config, logger):
    monitor = build_monitor(config)
    with log_stage(logger, "load_leases"):
        monitor.leases.reload()
    _write_json(monitor.get_leases(), args.output)
    return 0


def run_hosts(args, config, logger):
    source = HostsSource(config.hosts_file, HostsParser(), config.log_level)
    with log_stage(logger, "load_hosts"):
        source.reload()
    _write_json(source.snapshot(), args.output)
    return 0


def _open_store(config):
    store = StaticStore(config.static_file, log_level=config.log_level)
    if store.path is not None and not store.path.exists():
        # Nothing reserved yet; the first save creates the file.
        return store
    store.load()
    return store


def run_static(args, config, logger):
    store = _open_store(config)

    if args.action == "list":
        _write_json(store.filter(enabled=args.enabled, mac=args.mac, hostname=args.hostname), args.output)
        return 0

    if args.action == "validate":
        violations = store.validate_all()
        _write_json(violations)
        return 1 if violations else 0

    if args.action == "add":
        fields = {name: getattr(args, name) for name in ENTRY_FIELDS}
        entry = store.add(StaticEntry(enabled=not args.disabled, **fields))
        store.save()
        _write_json([entry])
        return 0

    if args.action == "update":
        current = store.get(args.id).model_dump(include=set(ENTRY_FIELDS) | {"enabled"})
        current.update({name: getattr(args, name) for name in ENTRY_FIELDS if getattr(args, name) is not None})
        entry = store.update(args.id, StaticEntry(**current))
        store.save()
        _write_json([entry])
        return 0

    if args.action == "delete":
        store.delete(args.id)
    elif args.action == "enable":
        store.enable(args.id)
    else:
        store.disable(args.id)
    store.save()
    print(f"{args.action}d {args.id}")
    return 0


COMMANDS = {
    "watch": run_watch,
    "leases": run_leases,
    "hosts": run_hosts,
    "static": run_static,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    level = args.log_level or os.getenv("LOGLEVEL") or "INFO"
    logger = get_logger("cli", level, "cli.log")
    logger.info("CLI invocation | command=%s config=%s", args.command, args.config or "-")

    try:
        config = EngineConfig.load(args.config, logger)
        if args.log_level:
            config = config.model_copy(update={"log_level": args.log_level})
        return COMMANDS[args.command](args, config, logger)
    except (MonitorError, ValueError, yaml.YAMLError) as exc:
        logger.error("Command %s failed: %s", args.command, exc)
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
