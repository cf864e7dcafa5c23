"""CLI entrypoints for the SysDock telemetry engine."""

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import asdict
from pathlib import Path

from sysdock_core import Category, load_config
from sysdock_core.config import config_path
from sysdock_core.logging_setup import configure_logging
from sysdock_core.view_state import state_path


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def cmd_run(args: argparse.Namespace) -> int:
    from .app import run_headless

    return run_headless(
        category=args.category,
        seconds=args.seconds,
        record_perf=args.record_perf,
        export_perf=(Path(args.export_perf).expanduser() if args.export_perf else None),
    )


def cmd_snapshot(_args: argparse.Namespace) -> int:
    from sysdock_telemetry import SnapshotProviderAdapter
    from sysdock_telemetry.provider import describe

    snap = asyncio.run(SnapshotProviderAdapter().fetch_snapshot())
    _print_json(describe(snap))
    return 0


def cmd_alerts(args: argparse.Namespace) -> int:
    from sysdock_telemetry import SnapshotProviderAdapter

    cfg = load_config()
    cpu = cfg.alerts.cpu_threshold if args.cpu is None else args.cpu
    ram = cfg.alerts.memory_threshold if args.ram is None else args.ram
    disk = cfg.alerts.disk_threshold if args.disk is None else args.disk
    messages = asyncio.run(SnapshotProviderAdapter().check_alerts(cpu, ram, disk))
    _print_json({"thresholds": {"cpu": cpu, "ram": ram, "disk": disk}, "alerts": messages})
    return 0


def cmd_config_show(_args: argparse.Namespace) -> int:
    _print_json(asdict(load_config()))
    return 0


def cmd_config_path(_args: argparse.Namespace) -> int:
    _print_json({"config": str(config_path()), "state": str(state_path())})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sysdock", description="SysDock telemetry engine and tools")
    sub = parser.add_subparsers(dest="command", required=True)

    run_cmd = sub.add_parser("run", help="Poll telemetry and print a live status line")
    run_cmd.add_argument(
        "--category",
        default=None,
        choices=[c.value for c in Category],
        help="Open on this category instead of the last one viewed",
    )
    run_cmd.add_argument("--seconds", type=float, default=None, help="Stop after this many seconds")
    run_cmd.add_argument("--record-perf", action="store_true", help="Record the performance log while running")
    run_cmd.add_argument("--export-perf", default=None, help="Write the performance log to this .csv or .json file")
    run_cmd.set_defaults(func=cmd_run)

    snap_cmd = sub.add_parser("snapshot", help="Print one metrics snapshot as JSON")
    snap_cmd.set_defaults(func=cmd_snapshot)

    alerts_cmd = sub.add_parser("alerts", help="Ask the provider which thresholds are breached")
    alerts_cmd.add_argument("--cpu", type=float, default=None)
    alerts_cmd.add_argument("--ram", type=float, default=None)
    alerts_cmd.add_argument("--disk", type=float, default=None)
    alerts_cmd.set_defaults(func=cmd_alerts)

    config_cmd = sub.add_parser("config", help="Inspect settings")
    config_sub = config_cmd.add_subparsers(dest="config_cmd", required=True)
    show_cmd = config_sub.add_parser("show", help="Print effective settings")
    show_cmd.set_defaults(func=cmd_config_show)
    path_cmd = config_sub.add_parser("path", help="Print settings and state file locations")
    path_cmd.set_defaults(func=cmd_config_path)

    return parser


def main(argv: list[str] | None = None) -> int:
    cfg = load_config()
    configure_logging(keep_files=cfg.diagnostics.keep_log_files, console=False)
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
