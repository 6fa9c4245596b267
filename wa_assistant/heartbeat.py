"""
Heartbeat: periodic host checks, reminders and the morning summary.

Runs every intervals.heartbeat_seconds; each scheduled check has its own
interval. Everything the heartbeat wants to say is enqueued as a pre-filled
notification for the bridge to deliver to the owner.

    docker          5 min
    disk            30 min
    pm2             5 min
    reminders       1 min
    daily_summary   checked every minute, sent once at daily_summary.hour
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from wa_assistant import checks
from wa_assistant.checks import CheckResult
from wa_assistant.config import Settings
from wa_assistant.db import Database
from wa_assistant.i18n import Translations, format_date, get_translations, local_now, render
from wa_assistant.message_queue import QueueStore
from wa_assistant.notifier import AlertStore, is_quiet_hours
from wa_assistant.reminders import ReminderStore
from wa_assistant.scheduler import PollingLoop

log = logging.getLogger(__name__)
lifecycle_log = logging.getLogger("lifecycle")

# The summary goes out only in the first minutes of the configured hour
SUMMARY_WINDOW_MINUTES = 2


@dataclass
class ScheduledCheck:
    name: str
    interval: timedelta
    fn: Callable[[datetime], None]
    last_run: Optional[datetime] = field(default=None)

    def due(self, now: datetime) -> bool:
        return self.last_run is None or now - self.last_run >= self.interval


class Heartbeat:
    def __init__(
        self,
        settings: Settings,
        t: Translations,
        queue: QueueStore,
        reminders: ReminderStore,
        alerts: AlertStore,
        host_checks: Optional[dict[str, Callable[[Translations], list[CheckResult]]]] = None,
        system_summary: Callable[[Translations], str] = checks.system_summary,
    ):
        self.settings = settings
        self.t = t
        self.queue = queue
        self.reminders = reminders
        self.alerts = alerts
        self.system_summary = system_summary
        self.state_file: Path = settings.daily_summary_state_file
        self.last_summary_date = self._read_last_summary()

        host_checks = host_checks if host_checks is not None else {
            "docker": checks.check_docker,
            "disk": checks.check_disk,
            "pm2": checks.check_pm2,
        }
        intervals = {"docker": timedelta(minutes=5), "disk": timedelta(minutes=30), "pm2": timedelta(minutes=5)}

        self.schedule: list[ScheduledCheck] = [
            ScheduledCheck(name, intervals.get(name, timedelta(minutes=5)), self._host_check(fn))
            for name, fn in host_checks.items()
        ]
        self.schedule.append(ScheduledCheck("reminders", timedelta(minutes=1), self.fire_reminders))
        self.schedule.append(ScheduledCheck("daily_summary", timedelta(minutes=1), self.maybe_send_summary))

    def _read_last_summary(self) -> str:
        try:
            return self.state_file.read_text().strip()
        except FileNotFoundError:
            return ""

    def _host_check(self, fn: Callable[[Translations], list[CheckResult]]) -> Callable[[datetime], None]:
        def run_check(now: datetime) -> None:
            self.dispatch(fn(self.t), now)
        return run_check

    def tick(self, now: Optional[datetime] = None) -> None:
        """Run every scheduled check whose interval has elapsed."""
        now = now or datetime.now(timezone.utc)
        for check in self.schedule:
            if not check.due(now):
                continue
            check.last_run = now
            try:
                check.fn(now)
            except Exception as e:
                log.exception(f"Check {check.name} failed: {e}")

    def dispatch(self, results: list[CheckResult], now: Optional[datetime] = None) -> None:
        """Send, buffer or suppress check results per quiet hours and cooldowns."""
        now = now or datetime.now(timezone.utc)
        hour = local_now(self.t, now).hour
        quiet = is_quiet_hours(hour, self.settings.quiet_hour_start, self.settings.quiet_hour_end)

        for result in results:
            if quiet and result.severity != "critical":
                self.alerts.queue_for_summary(result)
                continue
            if self.alerts.should_send(result, now):
                self.alerts.record(result, now)
                self.queue.enqueue_notification(result.message)
                lifecycle_log.info(f"ALERT_SENT | {result.dedup_key}")

    def fire_reminders(self, now: Optional[datetime] = None) -> int:
        due = self.reminders.due(now)
        for reminder in due:
            self.queue.enqueue_notification(self.t.reminder.format(text=reminder.text))
            self.reminders.mark_fired(reminder)
            lifecycle_log.info(f"REMINDER_FIRED | #{reminder.id} | {reminder.text}")
        return len(due)

    def maybe_send_summary(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        local = local_now(self.t, now)
        today = local.date().isoformat()

        if local.hour != self.settings.daily_summary_hour or local.minute >= SUMMARY_WINDOW_MINUTES:
            return False
        if self.last_summary_date == today:
            return False

        self.last_summary_date = today
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        self.state_file.write_text(today)
        lifecycle_log.info("DAILY_SUMMARY | generating")
        self.queue.enqueue_notification(self.build_summary(now))
        return True

    def build_summary(self, now: Optional[datetime] = None) -> str:
        t = self.t
        now = now or datetime.now(timezone.utc)
        parts = [
            render(t.good_morning, self.settings.bot_name, self.settings.owner_name) + "\n",
            t.system_status,
            self.system_summary(t),
        ]

        overnight = self.alerts.drain_summary()
        if overnight:
            parts.append(f"\n{t.overnight_alerts}")
            parts.extend(f"• {item['message']}" for item in overnight)

        parts.append(f"\n{t.yesterday_activity}")
        parts.append(t.messages_processed.format(count=self.queue.count_since(now - timedelta(days=1))))
        parts.append(f"\n📅 {format_date(local_now(t, now), t)}")
        return "\n".join(parts)


def build(settings: Settings, db: Database) -> Heartbeat:
    t = get_translations(settings.bot_lang)
    return Heartbeat(settings, t, QueueStore(db), ReminderStore(db), AlertStore(db))


def run(settings: Settings, db: Database, stop: Optional[threading.Event] = None) -> None:
    heartbeat = build(settings, db)
    lifecycle_log.info(f"HEARTBEAT_STARTED | pid={os.getpid()}")
    PollingLoop("heartbeat", heartbeat.tick, settings.heartbeat_interval, stop).run()
    lifecycle_log.info("HEARTBEAT_STOPPED")
