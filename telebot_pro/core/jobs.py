import secrets
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

RUNNING   = "running"
PAUSED    = "paused"
STOPPED   = "stopped"
COMPLETED = "completed"
ERROR     = "error"

STATUSES = (RUNNING, PAUSED, STOPPED, COMPLETED, ERROR)


def new_job_id() -> str:
    return f"job_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


@dataclass
class JobStats:
    total_sent: int = 0
    successful: int = 0
    failed:     int = 0
    last_run:   Optional[str] = None
    next_run:   Optional[str] = None
    last_error: Optional[str] = None

    def record(self, ok: bool, error: Optional[str] = None) -> None:
        self.total_sent += 1
        if ok:
            self.successful += 1
        else:
            self.failed += 1
            if error:
                self.last_error = error


@dataclass
class Job:
    """One recurring auto-text task.

    The timer handle is runtime state only: it is never persisted and is
    replaced exclusively through ``swap_timer`` so a job never holds more
    than one live timer.
    """
    id:           str
    session_id:   str
    targets:      list[str]
    message:      str
    interval:     int
    repeat_limit: Optional[int] = None
    name:         str = ""
    status:       str = PAUSED
    created_at:   Optional[str] = None
    stats:        JobStats = field(default_factory=JobStats)
    _timer:       Any = field(default=None, repr=False, compare=False)

    @property
    def has_timer(self) -> bool:
        return self._timer is not None

    @property
    def sends_required(self) -> Optional[int]:
        if not self.repeat_limit:
            return None
        return self.repeat_limit * len(self.targets)

    def limit_reached(self) -> bool:
        required = self.sends_required
        return required is not None and self.stats.total_sent >= required

    def swap_timer(self, handle=None) -> None:
        old, self._timer = self._timer, None
        if old is not None:
            old.cancel()
        self._timer = handle

    def to_dict(self) -> dict:
        return {
            "id":           self.id,
            "name":         self.name,
            "session_id":   self.session_id,
            "targets":      list(self.targets),
            "message":      self.message,
            "interval":     self.interval,
            "repeat_limit": self.repeat_limit,
            "status":       self.status,
            "created_at":   self.created_at,
            "stats":        asdict(self.stats),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Job":
        stats = JobStats(**d.get("stats", {}))
        return cls(
            id=d["id"],
            session_id=d["session_id"],
            targets=list(d.get("targets", [])),
            message=d.get("message", ""),
            interval=int(d.get("interval", 60)),
            repeat_limit=d.get("repeat_limit"),
            name=d.get("name", "") or d["id"],
            status=d.get("status", PAUSED),
            created_at=d.get("created_at"),
            stats=stats,
        )
