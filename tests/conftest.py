from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from telebot_pro.core.errors import SessionNotFoundError
from telebot_pro.telegram.sessions import SendResult


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now


class FakeTimer:
    def __init__(self, name, interval, callback, due):
        self.name      = name
        self.interval  = interval
        self.callback  = callback
        self.due       = due
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeTimers:
    """Repeating timers driven by a simulated clock."""

    def __init__(self, clock: FakeClock):
        self.clock  = clock
        self.timers: list[FakeTimer] = []

    def arm(self, name, interval, callback):
        t = FakeTimer(name, interval, callback, self.clock.now + timedelta(seconds=interval))
        self.timers.append(t)
        return t

    def active(self, name=None):
        return [t for t in self.timers if not t.cancelled and (name is None or t.name == name)]

    async def advance(self, seconds):
        end = self.clock.now + timedelta(seconds=seconds)
        while True:
            due = [t for t in self.active() if t.due <= end]
            if not due:
                break
            t = min(due, key=lambda x: x.due)
            self.clock.now = t.due
            t.due += timedelta(seconds=t.interval)
            await t.callback()
        self.clock.now = end


class FakeSessions:
    def __init__(self):
        self.statuses = {"s1": "connected"}
        self.sent: list[tuple] = []
        self.fail_targets: set = set()
        self.raise_targets: set = set()
        self.status_error: Exception | None = None

    def get_status(self, session_id):
        if self.status_error is not None:
            raise self.status_error
        if session_id not in self.statuses:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return {"session_id": session_id, "status": self.statuses[session_id], "stats": {}}

    async def send(self, session_id, target, message):
        self.sent.append((session_id, target, message))
        if target in self.raise_targets:
            raise RuntimeError("connection reset")
        if target in self.fail_targets:
            return SendResult(False, "chat not found")
        return SendResult(True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers(clock):
    return FakeTimers(clock)


@pytest.fixture
def sessions():
    return FakeSessions()


@pytest.fixture
def store(tmp_path):
    from telebot_pro.storage.job_store import JobStore
    return JobStore(str(tmp_path / "data.json"))


@pytest.fixture
def scheduler(sessions, timers, store, clock):
    from telebot_pro.core.scheduler import JobScheduler
    return JobScheduler(sessions, timers, store, clock=clock)
