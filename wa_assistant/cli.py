#!/usr/bin/env python3
"""CLI for the WhatsApp assistant: the three long-running processes plus status/logs."""
from __future__ import annotations

import argparse
import sqlite3
import sys
import threading

from pydantic import ValidationError

from wa_assistant import config
from wa_assistant.config import ConfigError, Settings
from wa_assistant.db import Database
from wa_assistant.logs import SOURCES, recent_logs, setup_logging
from wa_assistant.message_queue import QueueStore
from wa_assistant.outbound import OutboundStore
from wa_assistant.scheduler import install_signal_handlers


def _open(source: str) -> tuple[Settings, Database]:
    """Load settings, open the store and configure logging for one process."""
    settings = Settings.from_config()
    db = Database(settings.db_path)
    setup_logging(source, db, lifecycle_file=settings.data_dir / "lifecycle.log")
    return settings, db


def cmd_bridge(args):
    """Run the bridge (webhook + delivery)."""
    from wa_assistant import bridge

    settings, db = _open("bridge")
    bridge.run(settings, db)
    return 0


def cmd_processor(args):
    """Run the processor loop."""
    from wa_assistant import processor

    settings, db = _open("processor")
    stop = threading.Event()
    install_signal_handlers(stop)
    processor.run(settings, db, stop)
    return 0


def cmd_heartbeat(args):
    """Run the heartbeat loop."""
    from wa_assistant import heartbeat

    settings, db = _open("heartbeat")
    stop = threading.Event()
    install_signal_handlers(stop)
    heartbeat.run(settings, db, stop)
    return 0


def cmd_status(args):
    """Show queue counts, pending approvals and the last session."""
    settings = Settings.from_config()
    db = Database(settings.db_path)
    queue = QueueStore(db)

    counts = queue.counts_by_status()
    print(f"Database: {settings.db_path}")
    print("Queue:")
    for status, n in counts.items():
        print(f"  {status:<11} {n}")
    print(f"  undelivered {len(queue.undelivered())}")

    pending = OutboundStore(db).pending()
    print(f"Pending approvals: {len(pending)}")
    for request in pending:
        print(f"  #{request.id} -> {request.target_phone}: {request.message[:60]}")

    last = queue.latest_with_session()
    if last:
        print(f"Last session: {last.session_id} (message {last.id}, {last.created_at:%Y-%m-%d %H:%M} UTC)")
    else:
        print("Last session: none")
    return 0


def cmd_logs(args):
    """Print the newest bot_logs rows."""
    settings = Settings.from_config()
    db = Database(settings.db_path)
    for entry in recent_logs(db, limit=args.lines, source=args.source):
        ts = entry["created_at"].strftime("%Y-%m-%d %H:%M:%S") if entry["created_at"] else "-"
        print(f"{ts} | {entry['level']:<6} | {entry['source']:<9} | {entry['message']}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="wa-assistant",
        description="WhatsApp personal assistant bridge"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("bridge", help="Run the WhatsApp bridge (webhook + delivery)")
    subparsers.add_parser("processor", help="Run the message processor")
    subparsers.add_parser("heartbeat", help="Run health checks, reminders and the daily summary")
    subparsers.add_parser("status", help="Show queue and approval status")

    # logs
    logs_parser = subparsers.add_parser("logs", help="Show recent log entries")
    logs_parser.add_argument("-n", "--lines", type=int, default=50, help="Number of entries")
    logs_parser.add_argument("--source", choices=SOURCES, help="Only entries from this process")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "bridge": cmd_bridge,
        "processor": cmd_processor,
        "heartbeat": cmd_heartbeat,
        "status": cmd_status,
        "logs": cmd_logs,
    }

    try:
        return commands[args.command](args)
    except (ConfigError, FileNotFoundError, ValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except sqlite3.Error as e:
        print(f"Database error ({config.get('paths.data_dir', 'data')}): {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
