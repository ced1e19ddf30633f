#!/usr/bin/env python3
"""
Meetwatch Command Line Interface

Main entry point for the `meetwatch` command.

Usage:
    meetwatch run                                    # Poll the inbox until interrupted
    meetwatch poll-once                              # Run a single poll, print the report
    meetwatch slots --date 2025-07-25 --tz -07:00 --busy-file busy.json
    meetwatch slots --date 2025-07-25 --live         # Busy intervals from Google Calendar
    meetwatch --version
"""

import argparse
import asyncio
import json
import os
import signal
import sys
from pathlib import Path

from meetwatch import PROJECT_ROOT, __version__
from meetwatch.config_models import MonitorConfig, load_and_validate
from meetwatch.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def _token_path(config: MonitorConfig) -> Path:
    path = Path(config.google.token_file)
    return path if path.is_absolute() else PROJECT_ROOT / path


async def build_controller(config: MonitorConfig):
    """Wire credentials, Gmail, Calendar and the Claude oracle into a controller."""
    from meetwatch.oracle import ClaudeIntentOracle
    from meetwatch.pipeline import MeetingPipelineController
    from meetwatch.providers import (
        GmailMessageSource,
        GmailReplySink,
        GoogleCalendarBusySource,
        OAuthCredentialProvider,
    )

    credentials = OAuthCredentialProvider.from_token_file(_token_path(config))
    await credentials.init()

    timeout = config.google.request_timeout_seconds
    oracle = ClaudeIntentOracle(
        model=config.oracle.model,
        max_tokens=config.oracle.max_tokens,
        temperature=config.oracle.temperature,
        api_key_env=config.oracle.api_key_env,
        slot_length_minutes=config.slots.slot_length_minutes,
        max_ranked_slots=config.reply.max_candidates,
    )
    return MeetingPipelineController.from_config(
        config,
        source=GmailMessageSource(credentials, request_timeout_seconds=timeout),
        busy_source=GoogleCalendarBusySource(
            credentials, calendar_id=config.google.calendar_id, request_timeout_seconds=timeout
        ),
        oracle=oracle,
        reply_sink=GmailReplySink(credentials, request_timeout_seconds=timeout),
        account_email=credentials.account_email,
    )


def cmd_run(args, config: MonitorConfig):
    """Run the polling monitor until SIGINT/SIGTERM."""
    from meetwatch.pipeline import PollingMonitor

    async def run():
        controller = await build_controller(config)
        monitor = PollingMonitor.from_config(controller, config.monitor)
        if args.interval:
            monitor.interval_seconds = args.interval

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                pass  # Windows

        monitor.start()
        await stop_event.wait()
        logger.info("Shutdown requested")
        await monitor.stop()
        print(json.dumps(monitor.status(), indent=2, default=str))

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    return 0


def cmd_poll_once(args, config: MonitorConfig):
    """Run a single poll and print the report as JSON."""

    async def run():
        controller = await build_controller(config)
        return await controller.poll_once()

    report = asyncio.run(run())
    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.list_error is None else 1


def cmd_slots(args, config: MonitorConfig):
    """Compute free slots for the given dates."""
    from meetwatch.errors import MeetwatchError
    from meetwatch.models import BusyInterval
    from meetwatch.slots import compute_free_slots

    slots_config = config.slots.model_copy(
        update={
            k: v
            for k, v in {
                "workday_start": args.start,
                "workday_end": args.end,
                "slot_length_minutes": args.length,
                "buffer_minutes": args.buffer,
                "mode": args.mode,
            }.items()
            if v is not None
        }
    )

    try:
        spec = slots_config.to_slot_spec(args.date, timezone=args.tz)
    except ValueError as e:
        print(json.dumps({"success": False, "error": str(e)}))
        return 1

    if args.live:
        from meetwatch.models import parse_date
        from meetwatch.providers import GoogleCalendarBusySource, OAuthCredentialProvider

        async def fetch():
            credentials = OAuthCredentialProvider.from_token_file(_token_path(config))
            await credentials.init()
            source = GoogleCalendarBusySource(credentials, calendar_id=config.google.calendar_id)
            dates = []
            for value in args.date:
                try:
                    dates.append(parse_date(value))
                except ValueError:
                    continue
            return await source.get_busy_intervals(dates)

        try:
            busy = asyncio.run(fetch())
        except MeetwatchError as e:
            print(json.dumps({"success": False, "error": str(e)}))
            return 1
    elif args.busy_file:
        try:
            with open(args.busy_file) as f:
                busy = [BusyInterval.from_dict(item) for item in json.load(f)]
        except (OSError, ValueError, KeyError, TypeError) as e:
            print(json.dumps({"success": False, "error": f"Invalid busy file {args.busy_file}: {e}"}))
            return 1
    else:
        busy = []

    try:
        slots = compute_free_slots(busy, spec, mode=slots_config.mode)
    except MeetwatchError as e:
        print(json.dumps({"success": False, "error": str(e)}))
        return 1

    print(json.dumps({
        "success": True,
        "timezone": str(spec.timezone),
        "count": len(slots),
        "slots": [{"date": s.date.isoformat(), "time_slot": s.label, **s.to_dict()} for s in slots],
    }, indent=2))
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="meetwatch",
        description="Meetwatch - answers meeting requests with conflict-free calendar slots",
    )
    parser.add_argument(
        "--version", "-V", action="store_true", help="Show version and exit"
    )
    parser.add_argument(
        "--config", "-c", default=None, help="Path to YAML config (default: args/meetwatch.yaml)"
    )
    parser.add_argument(
        "--log-level", default=None, help="Log level (overrides config and MEETWATCH_LOG_LEVEL)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Poll the inbox until interrupted")
    run_parser.add_argument(
        "--interval", type=float, default=None, help="Poll interval in seconds (overrides config)"
    )
    run_parser.set_defaults(func=cmd_run)

    poll_parser = subparsers.add_parser("poll-once", help="Run a single poll and print the report")
    poll_parser.set_defaults(func=cmd_poll_once)

    slots_parser = subparsers.add_parser("slots", help="Compute free slots for dates")
    slots_parser.add_argument(
        "--date", "-d", action="append", required=True, help="Date (YYYY-MM-DD), repeatable"
    )
    slots_parser.add_argument("--tz", default=None, help="Timezone: +08:00, UTC-7 or an IANA name")
    slots_parser.add_argument("--start", type=int, default=None, help="Workday start hour")
    slots_parser.add_argument("--end", type=int, default=None, help="Workday end hour")
    slots_parser.add_argument("--length", type=int, default=None, help="Slot length in minutes")
    slots_parser.add_argument("--buffer", type=int, default=None, help="Buffer in minutes")
    slots_parser.add_argument("--mode", choices=["gap", "enumerate"], default=None, help="Computation mode")
    source_group = slots_parser.add_mutually_exclusive_group()
    source_group.add_argument(
        "--busy-file", default=None, help="JSON file with a list of {start, end} busy intervals"
    )
    source_group.add_argument(
        "--live", action="store_true", help="Read busy intervals from Google Calendar"
    )
    slots_parser.set_defaults(func=cmd_slots)

    args = parser.parse_args(argv)

    if args.version:
        print(f"meetwatch {__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    config = load_and_validate(args.config)
    setup_logging(
        level=args.log_level or os.environ.get("MEETWATCH_LOG_LEVEL") or config.logging.level,
        json_output=config.logging.json_output or None,
    )

    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
