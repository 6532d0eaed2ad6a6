"""Recurring auto-text jobs.

Every job owns at most one timer. Timers come from an injected backend
(``arm(name, interval, callback) -> handle`` with ``handle.cancel()``); in
production that is the bot's JobQueue, in tests a fake clock.

Sweeps run on the event loop. Within one sweep targets are sent to one after
another in list order; sweeps of different jobs may interleave while a send
is awaiting.
"""
import logging
from datetime import datetime, timedelta
from functools import partial
from typing import Callable, Iterable, Optional, Union

from telebot_pro.config import MIN_INTERVAL
from telebot_pro.core.errors import (
    JobNotFoundError, JobStateError, JobValidationError, SessionError,
)
from telebot_pro.core.jobs import (
    COMPLETED, ERROR, PAUSED, RUNNING, STOPPED, Job, new_job_id,
)

logger = logging.getLogger(__name__)

STARTABLE = (PAUSED, STOPPED, ERROR)


def parse_targets(raw: Union[str, Iterable[str]]) -> list[str]:
    if isinstance(raw, str):
        raw = raw.replace(",", "\n").splitlines()
    return [t.strip() for t in raw if t and t.strip()]


class JobScheduler:

    def __init__(self, sessions, timers, store=None,
                 clock: Optional[Callable[[], datetime]] = None,
                 min_interval: int = MIN_INTERVAL):
        self.sessions     = sessions
        self.timers       = timers
        self.store        = store
        self.clock        = clock or datetime.now
        self.min_interval = min_interval
        self._jobs: dict[str, Job] = {}

    # ── persistence ───────────────────────────────────────────────────────────

    def load(self) -> int:
        """Reload saved jobs. Jobs saved as running come back paused."""
        if self.store is None:
            return 0
        for d in self.store.get_jobs():
            job = Job.from_dict(d)
            if job.status == RUNNING:
                job.status = PAUSED
                job.stats.next_run = None
            self._jobs[job.id] = job
        if self._jobs:
            self._save()
        logger.info("Loaded %d auto-text job(s)", len(self._jobs))
        return len(self._jobs)

    def _save(self):
        if self.store is not None:
            self.store.save_jobs([j.to_dict() for j in self._jobs.values()])

    # ── queries ───────────────────────────────────────────────────────────────

    def get_job(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    def list_jobs(self, status: Optional[str] = None) -> list[Job]:
        jobs = list(self._jobs.values())
        if status:
            jobs = [j for j in jobs if j.status == status]
        return jobs

    # ── lifecycle ─────────────────────────────────────────────────────────────

    def create_job(self, session_id, targets, message, interval,
                   repeat_limit=None, name=None, start_now=False) -> Job:
        targets = parse_targets(targets)
        message = (message or "").strip()
        try:
            interval = int(interval)
        except (TypeError, ValueError):
            raise JobValidationError("Interval must be a whole number of seconds")
        if interval < self.min_interval:
            raise JobValidationError(
                f"Interval must be at least {self.min_interval} seconds")
        if not targets:
            raise JobValidationError("Please enter at least one target")
        if not message:
            raise JobValidationError("Message must not be empty")
        if repeat_limit in (0, "0", "", None):
            repeat_limit = None
        else:
            try:
                repeat_limit = int(repeat_limit)
            except (TypeError, ValueError):
                raise JobValidationError("Repeat count must be a number")
            if repeat_limit < 0:
                raise JobValidationError("Repeat count must be positive")
        self._check_session(session_id)

        job_id = new_job_id()
        job = Job(
            id=job_id, name=(name or "").strip() or job_id,
            session_id=session_id, targets=targets, message=message,
            interval=interval, repeat_limit=repeat_limit,
            status=PAUSED, created_at=self.clock().isoformat(),
        )
        self._jobs[job_id] = job
        logger.info("Job %s created: %d target(s) every %ds",
                    job_id, len(targets), interval)
        if start_now:
            self.schedule_job(job_id)
        else:
            self._save()
        return job

    def _check_session(self, session_id):
        try:
            info = self.sessions.get_status(session_id)
        except SessionError as e:
            raise JobValidationError(f"Session {session_id} not found") from e
        if info.get("status") != "connected":
            raise JobValidationError(f"Session {session_id} is not connected")

    def schedule_job(self, job_id: str) -> Job:
        job = self.get_job(job_id)
        job.swap_timer(None)
        job.swap_timer(self.timers.arm(job.id, job.interval, partial(self.execute_job, job.id)))
        job.status = RUNNING
        job.stats.next_run = (self.clock() + timedelta(seconds=job.interval)).isoformat()
        self._save()
        logger.info("Job %s scheduled every %ds", job.id, job.interval)
        return job

    def start_job(self, job_id: str) -> Job:
        job = self.get_job(job_id)
        if job.status != RUNNING and job.status not in STARTABLE:
            raise JobStateError(f"Job {job_id} is {job.status} and cannot be started")
        return self.schedule_job(job_id)

    def pause_job(self, job_id: str) -> Job:
        job = self.get_job(job_id)
        if job.status != RUNNING:
            raise JobStateError(f"Job {job_id} is {job.status}, not running")
        self._halt(job, PAUSED)
        return job

    def stop_job(self, job_id: str) -> Job:
        job = self.get_job(job_id)
        if job.status not in (RUNNING, PAUSED):
            raise JobStateError(f"Job {job_id} is already {job.status}")
        self._halt(job, STOPPED)
        return job

    def delete_job(self, job_id: str) -> None:
        job = self.get_job(job_id)
        job.swap_timer(None)
        del self._jobs[job_id]
        self._save()
        logger.info("Job %s deleted", job_id)

    def _halt(self, job: Job, status: str):
        job.swap_timer(None)
        job.status = status
        job.stats.next_run = None
        self._save()
        logger.info("Job %s %s", job.id, status)

    # ── bulk actions ──────────────────────────────────────────────────────────

    def start_all(self) -> int:
        jobs = self.list_jobs(PAUSED)
        for job in jobs:
            self.schedule_job(job.id)
        return len(jobs)

    def pause_all(self) -> int:
        jobs = self.list_jobs(RUNNING)
        for job in jobs:
            self._halt(job, PAUSED)
        return len(jobs)

    def stop_all(self) -> int:
        jobs = [j for j in self._jobs.values() if j.status in (RUNNING, PAUSED)]
        for job in jobs:
            self._halt(job, STOPPED)
        return len(jobs)

    def shutdown(self):
        for job in self._jobs.values():
            job.swap_timer(None)

    # ── sweep ─────────────────────────────────────────────────────────────────

    async def execute_job(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None or job.status != RUNNING:
            return

        try:
            self._check_sweep_session(job)
            for target in job.targets:
                try:
                    result = await self.sessions.send(job.session_id, target, job.message)
                    ok, err = result.success, result.error
                except Exception as e:
                    logger.warning("Job %s: send to %s raised: %s", job.id, target, e)
                    ok, err = False, str(e)
                job.stats.record(ok, err)
                if self.store is not None:
                    self.store.log_message(job.session_id, target, job.message, ok, err,
                                           kind="auto-text", job_id=job.id)
        except Exception as e:
            logger.exception("Job %s: sweep failed", job.id)
            job.stats.last_error = str(e)
            if self._jobs.get(job_id) is job:
                self._halt(job, ERROR)
            return

        now = self.clock()
        job.stats.last_run = now.isoformat()
        if self._jobs.get(job_id) is not job:
            return  # deleted while the sweep was in flight

        if job.status == RUNNING:
            job.stats.next_run = (now + timedelta(seconds=job.interval)).isoformat()
            if job.limit_reached():
                self._halt(job, COMPLETED)
                return
        self._save()

    def _check_sweep_session(self, job: Job):
        info = self.sessions.get_status(job.session_id)
        if info.get("status") != "connected":
            raise SessionError(f"Session {job.session_id} is not connected")
