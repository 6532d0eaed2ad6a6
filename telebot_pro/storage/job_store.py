import json
import logging
import os
import secrets
import time
from datetime import datetime

logger = logging.getLogger(__name__)

MAX_HISTORY  = 1000
MAX_AUDIT    = 1000
MAX_MESSAGES = 1000


class JobStore:
    """JSON file holding auto-text jobs, delivered messages, terminal history
    and the audit log."""

    def __init__(self, filename="telebot_data.json"):
        self.filename = filename
        self._data    = self._load()

    def _load(self):
        if os.path.exists(self.filename):
            try:
                with open(self.filename) as f:
                    return json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("Cannot read %s, starting empty: %s", self.filename, e)
        return {}

    def _save(self):
        tmp = self.filename + ".tmp"
        with open(tmp, "w") as f:
            json.dump(self._data, f, indent=2)
        os.replace(tmp, self.filename)

    # ── jobs ──────────────────────────────────────────────────────────────────

    def get_jobs(self):
        return list(self._data.get("jobs", []))

    def save_jobs(self, jobs):
        self._data["jobs"] = list(jobs)
        self._save()

    # ── terminal history ──────────────────────────────────────────────────────

    def add_history(self, command):
        history = self._data.setdefault("history", [])
        if history and history[-1] == command:
            return
        history.append(command)
        del history[:-MAX_HISTORY]
        self._save()

    def get_history(self):
        return list(self._data.get("history", []))

    def clear_history(self):
        self._data["history"] = []
        self._save()

    # ── audit ─────────────────────────────────────────────────────────────────

    def log_command(self, user, command, allowed, success=None, error=None):
        audit = self._data.setdefault("audit", [])
        audit.append({
            "timestamp": datetime.now().isoformat(),
            "user":      user,
            "command":   command,
            "allowed":   allowed,
            "success":   success,
            "error":     error,
        })
        del audit[:-MAX_AUDIT]
        self._save()

    def get_audit_log(self, limit=50):
        return self._data.get("audit", [])[-limit:]

    def clear_audit_log(self):
        self._data["audit"] = []
        self._save()

    # ── delivered messages ────────────────────────────────────────────────────

    def log_message(self, session_id, target, text, success, error=None,
                    kind="manual", job_id=None):
        record = {
            "id":         f"msg_{int(time.time() * 1000)}_{secrets.token_hex(4)}",
            "session_id": session_id,
            "target":     target,
            "text":       text[:200],
            "status":     "sent" if success else "failed",
            "error":      error,
            "type":       kind,
            "job_id":     job_id,
            "timestamp":  datetime.now().isoformat(),
        }
        messages = self._data.setdefault("messages", [])
        messages.append(record)
        del messages[:-MAX_MESSAGES]
        self._save()
        return record

    def get_messages(self, session_id=None, status=None, kind=None, limit=50):
        """Newest first, optionally filtered by session, status and type."""
        found = []
        for m in reversed(self._data.get("messages", [])):
            if session_id and m["session_id"] != session_id:
                continue
            if status and m["status"] != status:
                continue
            if kind and m["type"] != kind:
                continue
            found.append(m)
            if len(found) >= limit:
                break
        return found

    def clear_messages(self, session_id=None):
        messages = self._data.get("messages", [])
        kept = [m for m in messages if session_id and m["session_id"] != session_id]
        removed = len(messages) - len(kept)
        self._data["messages"] = kept
        self._save()
        return removed
