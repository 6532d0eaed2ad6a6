from __future__ import annotations

import threading
from datetime import datetime

import pytest

from telebot_pro.core.command_gate import CommandGate
from telebot_pro.core.executor import ExecResult
from telebot_pro.telegram.terminal import Terminal


class FakeExecutor:
    def __init__(self):
        self.ran = []

    def run(self, command):
        self.ran.append(command)
        if command.startswith("tail"):
            return ExecResult(False, "", "Exit code 1")
        return ExecResult(True, "/tmp\n")


class FakeBots:
    def list_bots(self):
        return []


class FakeSessionList:
    def list_sessions(self):
        return []


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def terminal(executor, store):
    return Terminal(CommandGate(), executor, store, monitor=None,
                    bots=FakeBots(), sessions=FakeSessionList())


async def test_allowed_command_runs_and_is_audited(terminal, executor, store):
    reply = await terminal.run("pwd", user="alice")
    assert executor.ran == ["pwd"]
    assert "/tmp" in reply
    assert store.get_history() == ["pwd"]
    entry = store.get_audit_log()[-1]
    assert entry["user"] == "alice"
    assert entry["allowed"] is True
    assert entry["success"] is True


async def test_denied_command_is_audited_not_run(terminal, executor, store):
    reply = await terminal.run("sudo reboot")
    assert reply.startswith("✕ Error: Command contains dangerous patterns")
    assert executor.ran == []
    assert store.get_history() == []
    entry = store.get_audit_log()[-1]
    assert entry["command"] == "sudo reboot"
    assert entry["allowed"] is False


async def test_failed_command_reports_error(terminal, store):
    reply = await terminal.run("tail -n 5 missing.log")
    assert "Exit code 1" in reply
    assert store.get_audit_log()[-1]["success"] is False


async def test_empty_command_shows_usage(terminal, executor):
    assert "Usage" in await terminal.run("   ")
    assert executor.ran == []


async def test_builtins(terminal, executor, store):
    assert "SECURE TERMINAL" in await terminal.run("help")
    assert await terminal.run("clear") == "Terminal cleared"
    assert await terminal.run("history") == "No command history"
    await terminal.run("pwd")
    assert "`pwd`" in await terminal.run("HISTORY")
    assert "No bots configured" in await terminal.run("bots")
    assert "No sessions" in await terminal.run("userbots")
    assert executor.ran == ["pwd"]


class FakeMonitor:
    def __init__(self):
        self.thread = None

    def snapshot(self):
        self.thread = threading.get_ident()
        return {
            "time": datetime(2024, 1, 1, 12, 0, 0), "uptime": "1d 2h 3m",
            "cpu": 12.5, "cores": 4, "processes": 99,
            "memory": {"total": 8.0, "used": 2.0, "percent": 25.0},
            "disk": {"total": 100.0, "used": 40.0, "free": 60.0, "percent": 40.0},
        }


async def test_status_snapshot_runs_off_the_event_loop(executor, store):
    monitor = FakeMonitor()
    terminal = Terminal(CommandGate(), executor, store, monitor,
                        bots=FakeBots(), sessions=FakeSessionList())
    reply = await terminal.run("status", auth={"valid": True})
    assert "SYSTEM STATUS" in reply
    assert "Authenticated: yes" in reply
    assert monitor.thread is not None
    assert monitor.thread != threading.get_ident()
