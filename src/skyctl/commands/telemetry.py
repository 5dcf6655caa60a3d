"""``skyctl telemetry`` commands: permission management and local log inspection."""

from __future__ import annotations

import argparse
import json
from collections import deque

from skyctl.domain.commands import OptionSpec, create_alias, create_command, create_namespace
from skyctl.utils.logger import log
from skyctl.utils.telemetry import (
    clear,
    iter_events,
    read_metrics_permission,
    summarize,
    telemetry_enabled,
    write_metrics_permission,
)


def _enable(args: argparse.Namespace, context) -> int:
    write_metrics_permission(context.settings, True)
    log("Status: Enabled")
    log("skyctl is now collecting telemetry about your usage. Thank you for helping make skyctl better!")
    return 0


def _disable(args: argparse.Namespace, context) -> int:
    write_metrics_permission(context.settings, False)
    log("Status: Disabled")
    log("skyctl is no longer collecting telemetry about your usage.")
    return 0


def _status(args: argparse.Namespace, context) -> int:
    enabled = telemetry_enabled(context.settings)
    stored = read_metrics_permission(context.settings)
    log(f"Status: {'Enabled' if enabled else 'Disabled'}")
    if stored is None:
        log("No preference has been saved; telemetry defaults to enabled.")
    log(f"Local log: {context.settings.telemetry_log}")
    return 0


def _report(args: argparse.Namespace, context) -> int:
    events = iter_events(context.settings.telemetry_log)
    if args.recent and args.recent > 0:
        events = deque(events, maxlen=args.recent)
    print(json.dumps(summarize(events), indent=2, ensure_ascii=False))
    return 0


def _tail(args: argparse.Namespace, context) -> int:
    for evt in deque(iter_events(context.settings.telemetry_log), maxlen=args.limit):
        print(json.dumps(evt, ensure_ascii=False))
    return 0


def _clear(args: argparse.Namespace, context) -> int:
    clear(context.settings)
    log("Telemetry log cleared")
    return 0


COMMANDS = [
    ("skyctl telemetry", create_namespace("Configure whether skyctl collects telemetry")),
    ("skyctl telemetry enable", create_command("Enable telemetry collection", _enable)),
    ("skyctl telemetry disable", create_command("Disable telemetry collection", _disable)),
    ("skyctl telemetry status", create_command("Check whether telemetry collection is enabled", _status)),
    (
        "skyctl telemetry report",
        create_command(
            "Summarise the local telemetry log",
            _report,
            args=[OptionSpec("recent", type="integer", default=0, description="Only include the last N events")],
        ),
    ),
    (
        "skyctl telemetry tail",
        create_command(
            "Print the last N telemetry events",
            _tail,
            args=[OptionSpec("limit", type="integer", default=20, description="Number of events to print")],
        ),
    ),
    ("skyctl telemetry clear", create_command("Remove the local telemetry log", _clear)),
    ("skyctl metrics", create_alias("skyctl telemetry", hidden=True)),
]

ROOTS = ("telemetry", "metrics")
