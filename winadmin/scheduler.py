"""Task Scheduler registration through ``schtasks``."""

from __future__ import annotations
import csv
import re
from dataclasses import dataclass
from io import StringIO

from .errors import ToolError
from .logger import log, success
from .shell import run_command

SCHEDULES = ("ONCE", "DAILY", "WEEKLY", "MONTHLY", "ONSTART", "ONLOGON", "MINUTE", "HOURLY")
TIMED = ("ONCE", "DAILY", "WEEKLY", "MONTHLY")
EVENT_TRIGGERED = ("ONSTART", "ONLOGON")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

@dataclass
class ScheduledTask:
    name: str
    command: str
    schedule: str = "DAILY"
    start_time: str | None = None
    run_as: str | None = None
    highest: bool = False
    modifier: int | None = None

def is_admin() -> bool:
    """True when the process is elevated (pywin32, Windows only)."""
    try:
        from win32com.shell import shell  # type: ignore
    except ImportError:
        return False
    return bool(shell.IsUserAnAdmin())

def build_create_command(task: ScheduledTask) -> list[str]:
    schedule = task.schedule.upper()
    if schedule not in SCHEDULES:
        raise ToolError(f"Unsupported schedule {task.schedule!r} (choose from {', '.join(SCHEDULES)})")
    if task.start_time and not TIME_RE.match(task.start_time):
        raise ToolError(f"Start time must be HH:MM, got {task.start_time!r}")
    if schedule in TIMED and not task.start_time:
        raise ToolError(f"A {schedule} schedule needs a start time (HH:MM)")
    if schedule in EVENT_TRIGGERED and task.start_time:
        raise ToolError(f"A {schedule} schedule does not take a start time")
    if not task.name or not task.command:
        raise ToolError("Task name and command are required")

    cmd = ["schtasks", "/create", "/tn", task.name, "/tr", task.command, "/sc", schedule]
    if task.modifier is not None:
        cmd += ["/mo", str(task.modifier)]
    if task.start_time:
        cmd += ["/st", task.start_time]
    if task.run_as:
        cmd += ["/ru", task.run_as]
    if task.highest:
        cmd += ["/rl", "HIGHEST"]
    cmd.append("/f")
    return cmd

def register_task(task: ScheduledTask, check_admin: bool = True) -> None:
    cmd = build_create_command(task)
    if task.highest and check_admin and not is_admin():
        raise ToolError("Registering a task with highest privileges needs an elevated prompt")
    run_command(cmd)
    success("Scheduled task %s registered (%s%s)", task.name, task.schedule.upper(),
            f" at {task.start_time}" if task.start_time else "")

def delete_task(name: str) -> None:
    run_command(["schtasks", "/delete", "/tn", name, "/f"])
    success("Scheduled task %s deleted", name)

def task_exists(name: str) -> bool:
    return run_command(["schtasks", "/query", "/tn", name], ok_codes=(0, 1)).returncode == 0

def parse_task_csv(output: str, include_microsoft: bool = False) -> list[dict]:
    rows = []
    seen = set()
    for row in csv.DictReader(StringIO(output)):
        name = row.get("TaskName") or ""
        # schtasks repeats the header line for every task folder
        if not name or name == "TaskName" or name in seen:
            continue
        seen.add(name)
        if not include_microsoft and name.startswith("\\Microsoft\\"):
            continue
        rows.append(row)
    return rows

def list_tasks(include_microsoft: bool = False) -> list[dict]:
    output = run_command(["schtasks", "/query", "/fo", "CSV", "/v"]).stdout
    rows = parse_task_csv(output, include_microsoft)
    log.debug("schtasks returned %d task(s)", len(rows))
    return rows
