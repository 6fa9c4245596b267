"""
Host health checks for the heartbeat and /status.

Each check shells out to a standard tool (docker, df, pm2, free, uptime).
A missing tool or a failing command is not an alert: the check logs it and
reports nothing.
"""
from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Literal, Optional

from wa_assistant.i18n import Translations

log = logging.getLogger(__name__)

Severity = Literal["info", "warning", "critical"]

DISK_WARNING_PERCENT = 90
DISK_CRITICAL_PERCENT = 95
PM2_RESTART_LIMIT = 10


@dataclass(frozen=True)
class CheckResult:
    type: str
    severity: Severity
    dedup_key: str
    message: str


def run(cmd: list[str], timeout: float = 10) -> Optional[str]:
    """Run a command and return its stdout, or None if it is unavailable or fails."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        log.debug(f"{cmd[0]} unavailable: {e}")
        return None
    if result.returncode != 0:
        log.debug(f"{' '.join(cmd)} exited {result.returncode}: {result.stderr.strip()}")
        return None
    return result.stdout.strip()


def disk_usage() -> Optional[tuple[int, str, str]]:
    """(percent used, used, total) for the root filesystem."""
    output = run(["df", "-h", "/"], timeout=5)
    if not output:
        return None
    parts = output.splitlines()[-1].split()
    try:
        return int(parts[4].rstrip("%")), parts[2], parts[1]
    except (IndexError, ValueError):
        log.warning(f"Unexpected df output: {output!r}")
        return None


def memory_usage() -> Optional[tuple[str, str]]:
    """(used, total) RAM from free -h. Linux only."""
    output = run(["free", "-h"], timeout=5)
    if not output:
        return None
    for line in output.splitlines():
        if line.startswith("Mem"):
            parts = line.split()
            if len(parts) >= 3:
                return parts[2], parts[1]
    return None


def pm2_processes() -> list[dict]:
    output = run(["pm2", "jlist"], timeout=5)
    if not output:
        return []
    try:
        processes = json.loads(output)
    except json.JSONDecodeError as e:
        log.warning(f"pm2 jlist returned invalid JSON: {e}")
        return []
    return processes if isinstance(processes, list) else []


def check_docker(t: Translations) -> list[CheckResult]:
    output = run(["docker", "ps", "-a", "--format", "{{.Names}}|{{.Status}}|{{.State}}"])
    if not output:
        return []

    results = []
    for line in output.splitlines():
        name, _, rest = line.partition("|")
        status, _, state = rest.partition("|")
        if not name:
            continue
        if state in ("exited", "dead"):
            results.append(CheckResult(
                "docker", "warning", f"docker-down-{name}",
                t.docker_down.format(name=name, state=state, status=status),
            ))
        elif "unhealthy" in status:
            results.append(CheckResult(
                "docker", "warning", f"docker-unhealthy-{name}",
                t.docker_unhealthy.format(name=name, status=status),
            ))
    return results


def check_disk(t: Translations) -> list[CheckResult]:
    usage = disk_usage()
    if usage is None:
        return []
    percent, used, total = usage
    if percent >= DISK_CRITICAL_PERCENT:
        return [CheckResult("disk", "critical", "disk-critical",
                            t.disk_critical.format(percent=percent, used=used, total=total))]
    if percent >= DISK_WARNING_PERCENT:
        return [CheckResult("disk", "warning", "disk-warning",
                            t.disk_warning.format(percent=percent, used=used, total=total))]
    return []


def check_pm2(t: Translations) -> list[CheckResult]:
    results = []
    for proc in pm2_processes():
        name = proc.get("name", "?")
        env = proc.get("pm2_env") or {}
        status = env.get("status")
        restarts = env.get("restart_time") or 0
        if status in ("errored", "stopped"):
            results.append(CheckResult(
                "pm2", "critical", f"pm2-down-{name}",
                t.pm2_down.format(name=name, status=status, restarts=restarts),
            ))
        elif restarts > PM2_RESTART_LIMIT:
            results.append(CheckResult(
                "pm2", "warning", f"pm2-restarts-{name}",
                t.pm2_restarts.format(name=name, restarts=restarts),
            ))
    return results


def system_summary(t: Translations) -> str:
    """Multi-line host overview for /status and the daily summary."""
    lines = []

    disk = disk_usage()
    if disk:
        percent, used, total = disk
        lines.append(t.summary_disk.format(percent=percent, used=used, total=total))

    ram = memory_usage()
    if ram:
        lines.append(t.summary_ram.format(used=ram[0], total=ram[1]))

    containers = run(["docker", "ps", "--format", "{{.Names}}: {{.Status}}"], timeout=5)
    if containers:
        lines.append(t.summary_docker.format(containers=containers))

    processes = pm2_processes()
    if processes:
        pm2_lines = "\n".join(
            f"  {p.get('name', '?')}: {(p.get('pm2_env') or {}).get('status', 'unknown')} "
            f"(↻{(p.get('pm2_env') or {}).get('restart_time') or 0})"
            for p in processes
        )
        lines.append(t.summary_pm2.format(processes=pm2_lines))

    uptime = run(["uptime", "-p"], timeout=5)
    if uptime:
        lines.append(t.summary_uptime.format(uptime=uptime))

    return "\n".join(lines)
