import sys
from unittest.mock import patch

import pytest

from winadmin import scheduler
from winadmin.errors import ToolError
from winadmin.scheduler import ScheduledTask, build_create_command

TASKS_CSV = '''"HostName","TaskName","Next Run Time","Status","Task To Run"
"PC1","\\Backup","18/10/2026 02:00:00","Ready","C:\\backup.cmd"
"HostName","TaskName","Next Run Time","Status","Task To Run"
"PC1","\\Microsoft\\Windows\\Defrag\\ScheduledDefrag","N/A","Ready","defrag.exe"
"PC1","\\Backup","19/10/2026 02:00:00","Ready","C:\\backup.cmd"
'''

class TestBuildCommand:
    def test_daily_elevated(self):
        task = ScheduledTask("Backup", "C:\\backup.cmd", "daily", "02:30", "SYSTEM", highest=True)
        assert build_create_command(task) == [
            "schtasks", "/create", "/tn", "Backup", "/tr", "C:\\backup.cmd", "/sc", "DAILY",
            "/st", "02:30", "/ru", "SYSTEM", "/rl", "HIGHEST", "/f",
        ]

    def test_onstart_needs_no_time(self):
        cmd = build_create_command(ScheduledTask("Boot", "boot.cmd", "ONSTART"))
        assert "/st" not in cmd

    def test_modifier(self):
        cmd = build_create_command(ScheduledTask("Poll", "poll.cmd", "MINUTE", modifier=15))
        assert cmd[cmd.index("/mo") + 1] == "15"

    @pytest.mark.parametrize("task", [
        ScheduledTask("Backup", "b.cmd", "DAILY"),
        ScheduledTask("Backup", "b.cmd", "DAILY", "25:00"),
        ScheduledTask("Backup", "b.cmd", "FORTNIGHTLY", "02:00"),
        ScheduledTask("", "b.cmd", "ONLOGON"),
        ScheduledTask("Boot", "boot.cmd", "ONSTART", "08:00"),
    ])
    def test_invalid(self, task):
        with pytest.raises(ToolError):
            build_create_command(task)

class TestRegister:
    @patch("winadmin.shell.subprocess.run")
    def test_register(self, mock_run, completed, monkeypatch):
        monkeypatch.setattr(scheduler, "is_admin", lambda: True)
        mock_run.return_value = completed("SUCCESS: The scheduled task \"Backup\" has successfully been created.")
        task = ScheduledTask("Backup", "b.cmd", "WEEKLY", "03:00", highest=True)
        scheduler.register_task(task)
        assert mock_run.call_args[0][0] == build_create_command(task)

    def test_highest_needs_elevation(self, monkeypatch):
        monkeypatch.setattr(scheduler, "is_admin", lambda: False)
        with pytest.raises(ToolError, match="elevated"):
            scheduler.register_task(ScheduledTask("Backup", "b.cmd", "ONSTART", highest=True))

    @patch("winadmin.shell.subprocess.run")
    def test_task_exists(self, mock_run, completed):
        mock_run.return_value = completed(returncode=1)
        assert not scheduler.task_exists("Nope")
        mock_run.return_value = completed("Backup  Ready")
        assert scheduler.task_exists("Backup")

def test_parse_task_csv():
    rows = scheduler.parse_task_csv(TASKS_CSV)
    assert [r["TaskName"] for r in rows] == ["\\Backup"]
    assert rows[0]["Next Run Time"] == "18/10/2026 02:00:00"
    assert len(scheduler.parse_task_csv(TASKS_CSV, include_microsoft=True)) == 2

@patch("winadmin.shell.subprocess.run")
def test_list_tasks(mock_run, completed):
    mock_run.return_value = completed(TASKS_CSV)
    assert len(scheduler.list_tasks()) == 1
    assert mock_run.call_args[0][0] == ["schtasks", "/query", "/fo", "CSV", "/v"]

@pytest.mark.skipif(sys.platform == "win32", reason="pywin32 present on Windows")
def test_is_admin_off_windows():
    assert scheduler.is_admin() is False
