from __future__ import annotations

import subprocess

from telebot_pro.core.command_gate import CommandGate
from telebot_pro.core.executor import CommandExecutor, sanitize_output


def test_sanitize_output_redacts_secrets():
    text = "host 10.0.0.12 token=abc123 Authorization: Bearer eyJhbGciOi.x-y"
    out = sanitize_output(text)
    assert "10.0.0.12" not in out
    assert "abc123" not in out
    assert "eyJhbGciOi" not in out
    assert out.count("[REDACTED]") == 3
    assert sanitize_output("") == ""


def test_refuses_blocked_and_pseudo_commands(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setattr(subprocess, "run", lambda *a, **k: calls.append(a))
    ex = CommandExecutor(CommandGate(), cwd=str(tmp_path))
    assert ex.run("rm -rf /").success is False
    assert ex.run("help").success is False
    assert ex.run("frobnicate").error == "Command not allowed"
    assert calls == []


def test_runs_allowed_command_in_sandbox_dir(tmp_path):
    ex = CommandExecutor(CommandGate(), cwd=str(tmp_path), timeout=10)
    r = ex.run("pwd")
    assert r.success is True
    assert r.output.strip() == str(tmp_path)


def test_empty_output_placeholder(tmp_path):
    ex = CommandExecutor(CommandGate(), cwd=str(tmp_path), timeout=10)
    r = ex.run("ls")
    assert r.success is True
    assert r.output == "(No output)"


def test_timeout_is_reported(tmp_path, monkeypatch):
    def boom(*a, **k):
        raise subprocess.TimeoutExpired(cmd="ping", timeout=1)

    monkeypatch.setattr(subprocess, "run", boom)
    ex = CommandExecutor(CommandGate(), cwd=str(tmp_path), timeout=1)
    r = ex.run("ping -c 1 8.8.8.8")
    assert r.success is False
    assert "timed out" in r.error
