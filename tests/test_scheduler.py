from __future__ import annotations

import pytest

from telebot_pro.core.errors import (
    JobNotFoundError, JobStateError, JobValidationError,
)
from telebot_pro.core.jobs import COMPLETED, ERROR, PAUSED, RUNNING, STOPPED


def _job(scheduler, **kw):
    args = dict(session_id="s1", targets=["a", "b"], message="hi", interval=10, start_now=True)
    args.update(kw)
    return scheduler.create_job(**args)


# ── validation ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("kw", [
    {"interval": 9},
    {"interval": "soon"},
    {"targets": []},
    {"targets": " \n , "},
    {"message": "   "},
    {"session_id": "missing"},
    {"repeat_limit": -1},
])
def test_create_job_rejects_bad_input(scheduler, timers, kw):
    with pytest.raises(JobValidationError):
        _job(scheduler, **kw)
    assert scheduler.list_jobs() == []
    assert timers.timers == []


def test_create_job_rejects_disconnected_session(scheduler, sessions):
    sessions.statuses["s2"] = "disconnected"
    with pytest.raises(JobValidationError):
        _job(scheduler, session_id="s2")


def test_create_job_defaults(scheduler, timers):
    job = _job(scheduler, targets="@a\n-100123, @b", start_now=False, repeat_limit=0)
    assert job.targets == ["@a", "-100123", "@b"]
    assert job.status == PAUSED
    assert job.repeat_limit is None
    assert job.stats.total_sent == 0
    assert job.name == job.id
    assert timers.active() == []


def test_create_job_start_now_arms_timer(scheduler, timers, clock):
    job = _job(scheduler)
    assert job.status == RUNNING
    assert len(timers.active(job.id)) == 1
    assert job.stats.next_run == "2024-01-01T12:00:10"


# ── timers ────────────────────────────────────────────────────────────────────

async def test_schedule_job_is_idempotent(scheduler, timers, sessions):
    job = _job(scheduler)
    scheduler.schedule_job(job.id)
    scheduler.schedule_job(job.id)
    assert len(timers.active(job.id)) == 1

    await timers.advance(10)
    assert job.stats.total_sent == len(job.targets)


async def test_repeat_limit_completes_job(scheduler, timers):
    job = _job(scheduler, repeat_limit=2)

    await timers.advance(20)
    assert job.stats.total_sent == 4
    assert job.status == COMPLETED
    assert timers.active(job.id) == []
    assert job.stats.next_run is None

    await timers.advance(100)
    assert job.stats.total_sent == 4


async def test_pause_stops_firing(scheduler, timers):
    job = _job(scheduler)
    await timers.advance(10)
    assert job.stats.total_sent == 2

    scheduler.pause_job(job.id)
    await timers.advance(60)
    assert job.status == PAUSED
    assert job.stats.total_sent == 2
    assert timers.active(job.id) == []


async def test_resume_after_pause(scheduler, timers):
    job = _job(scheduler)
    scheduler.pause_job(job.id)
    scheduler.start_job(job.id)
    await timers.advance(10)
    assert job.stats.total_sent == 2
    assert len(timers.active(job.id)) == 1


async def test_delete_cancels_timer(scheduler, timers, sessions):
    job = _job(scheduler)
    scheduler.delete_job(job.id)

    await timers.advance(50)
    assert sessions.sent == []
    assert job.stats.total_sent == 0
    assert timers.active() == []
    with pytest.raises(JobNotFoundError):
        scheduler.get_job(job.id)


async def test_stop_job(scheduler, timers):
    job = _job(scheduler)
    scheduler.stop_job(job.id)
    await timers.advance(30)
    assert job.status == STOPPED
    assert job.stats.total_sent == 0
    with pytest.raises(JobStateError):
        scheduler.pause_job(job.id)


async def test_execute_is_noop_when_not_running(scheduler, sessions):
    job = _job(scheduler, start_now=False)
    await scheduler.execute_job(job.id)
    await scheduler.execute_job("job_unknown")
    assert sessions.sent == []


# ── failures ──────────────────────────────────────────────────────────────────

async def test_failed_target_is_counted_and_sweep_continues(scheduler, timers, sessions):
    sessions.fail_targets.add("a")
    job = _job(scheduler, targets=["a", "b", "c"])

    await timers.advance(10)
    assert [t for _, t, _ in sessions.sent] == ["a", "b", "c"]
    assert job.stats.total_sent == 3
    assert job.stats.failed == 1
    assert job.stats.successful == 2
    assert job.stats.last_error == "chat not found"
    assert job.status == RUNNING


async def test_target_exception_does_not_abort_sweep(scheduler, timers, sessions):
    sessions.raise_targets.add("b")
    job = _job(scheduler, targets=["a", "b", "c"])

    await timers.advance(10)
    assert [t for _, t, _ in sessions.sent] == ["a", "b", "c"]
    assert job.stats.failed == 1
    assert job.stats.successful == 2
    assert job.status == RUNNING


async def test_session_failure_moves_job_to_error(scheduler, timers, sessions):
    job = _job(scheduler)
    sessions.status_error = RuntimeError("session backend unreachable")

    await timers.advance(10)
    assert job.status == ERROR
    assert sessions.sent == []
    assert job.stats.total_sent == 0
    assert "unreachable" in job.stats.last_error
    assert timers.active(job.id) == []

    await timers.advance(60)
    assert sessions.sent == []


async def test_disconnected_session_moves_job_to_error(scheduler, timers, sessions):
    job = _job(scheduler)
    sessions.statuses["s1"] = "disconnected"
    await timers.advance(10)
    assert job.status == ERROR
    assert sessions.sent == []


async def test_error_is_isolated_per_job(scheduler, timers, sessions):
    sessions.statuses["s2"] = "connected"
    bad  = _job(scheduler, session_id="s2")
    good = _job(scheduler, session_id="s1")
    sessions.statuses["s2"] = "disconnected"

    await timers.advance(20)
    assert bad.status == ERROR
    assert good.status == RUNNING
    assert good.stats.total_sent == 4


async def test_error_job_can_be_restarted(scheduler, timers, sessions):
    job = _job(scheduler)
    sessions.statuses["s1"] = "disconnected"
    await timers.advance(10)
    assert job.status == ERROR

    sessions.statuses["s1"] = "connected"
    scheduler.start_job(job.id)
    await timers.advance(10)
    assert job.status == RUNNING
    assert job.stats.total_sent == 2


async def test_completed_job_cannot_be_restarted(scheduler, timers):
    job = _job(scheduler, repeat_limit=1)
    await timers.advance(10)
    assert job.status == COMPLETED
    with pytest.raises(JobStateError):
        scheduler.start_job(job.id)


async def test_delete_during_sweep_does_not_resurrect(scheduler, sessions):
    job = _job(scheduler)
    sent = []

    async def send(session_id, target, message):
        sent.append(target)
        if len(sent) == 1:
            scheduler.delete_job(job.id)
        from telebot_pro.telegram.sessions import SendResult
        return SendResult(True)

    sessions.send = send
    await scheduler.execute_job(job.id)
    assert sent == ["a", "b"]
    assert scheduler.list_jobs() == []
    assert not job.has_timer


# ── bulk + persistence ────────────────────────────────────────────────────────

def test_bulk_actions(scheduler, timers):
    a = _job(scheduler)
    b = _job(scheduler, start_now=False)
    assert scheduler.pause_all() == 1
    assert a.status == PAUSED
    assert scheduler.start_all() == 2
    assert a.status == RUNNING and b.status == RUNNING
    assert scheduler.stop_all() == 2
    assert timers.active() == []


def test_load_restores_running_jobs_paused(sessions, timers, store, clock):
    from telebot_pro.core.scheduler import JobScheduler

    first = JobScheduler(sessions, timers, store, clock=clock)
    job = first.create_job("s1", ["a"], "hi", 30, repeat_limit=3, name="morning", start_now=True)
    first.shutdown()
    assert timers.active() == []

    second = JobScheduler(sessions, timers, store, clock=clock)
    assert second.load() == 1
    restored = second.get_job(job.id)
    assert restored.status == PAUSED
    assert restored.name == "morning"
    assert restored.repeat_limit == 3
    assert restored.targets == ["a"]
    assert not restored.has_timer


async def test_sweep_records_each_delivery(scheduler, timers, sessions, store):
    sessions.fail_targets.add("b")
    job = _job(scheduler)

    await timers.advance(10)
    log = store.get_messages(session_id="s1")
    assert [(m["target"], m["status"]) for m in log] == [("b", "failed"), ("a", "sent")]
    assert all(m["job_id"] == job.id and m["type"] == "auto-text" for m in log)
    assert log[0]["error"] == "chat not found"
