"""Telegram user sessions (MTProto) on top of Telethon."""
import logging
import secrets
from datetime import datetime
from typing import NamedTuple, Optional

from telethon import TelegramClient
from telethon.errors import SessionPasswordNeededError
from telethon.sessions import StringSession

from telebot_pro.core.errors import SessionError, SessionNotFoundError

logger = logging.getLogger(__name__)

DISCONNECTED      = "disconnected"
CODE_SENT         = "code_sent"
PASSWORD_REQUIRED = "password_required"
CONNECTED         = "connected"
ERROR             = "error"


class SendResult(NamedTuple):
    success: bool
    error:   Optional[str] = None


def _peer(target: str):
    t = str(target).strip()
    return int(t) if t.lstrip("-").isdigit() else t


def _default_client(api_id, api_hash):
    return TelegramClient(StringSession(), api_id, api_hash)


class UserSession:
    def __init__(self, session_id, phone, client):
        self.session_id      = session_id
        self.phone           = phone
        self.client          = client
        self.status          = DISCONNECTED
        self.user: Optional[dict] = None
        self.phone_code_hash = None
        self.created_at      = datetime.now()
        self.stats = {"messages_sent": 0, "send_errors": 0, "last_activity": None}

    def touch(self):
        self.stats["last_activity"] = datetime.now().isoformat()

    def info(self) -> dict:
        return {
            "session_id": self.session_id,
            "phone":      self.phone[:4] + "***" + self.phone[-2:] if len(self.phone) > 6 else self.phone,
            "status":     self.status,
            "user":       self.user,
            "stats":      dict(self.stats),
            "connected_since": self.created_at.isoformat(),
        }


class SessionManager:

    def __init__(self, api_id=0, api_hash="", client_factory=None):
        self.api_id         = api_id
        self.api_hash       = api_hash
        self.client_factory = client_factory or _default_client
        self._sessions: dict[str, UserSession] = {}

    def _get(self, session_id) -> UserSession:
        s = self._sessions.get(session_id)
        if s is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return s

    async def connect(self, phone, api_id=None, api_hash=None) -> str:
        """Open a client and send the login code. Returns the new session id."""
        api_id   = int(api_id or self.api_id or 0)
        api_hash = api_hash or self.api_hash
        if not api_id or not api_hash:
            raise SessionError("API id and API hash are required")
        phone = phone.strip().replace(" ", "")
        sid   = f"sess_{secrets.token_hex(8)}"
        s     = UserSession(sid, phone, self.client_factory(api_id, api_hash))
        self._sessions[sid] = s
        try:
            await s.client.connect()
            if await s.client.is_user_authorized():
                await self._finish_login(s)
                return sid
            sent = await s.client.send_code_request(phone)
            s.phone_code_hash = sent.phone_code_hash
            s.status = CODE_SENT
            logger.info("Login code sent for session %s", sid)
        except Exception as e:
            s.status = ERROR
            logger.error("Session %s connect failed: %s", sid, e)
            raise SessionError(f"Connection failed: {e}") from e
        return sid

    async def verify(self, session_id, code=None, password=None) -> dict:
        s = self._get(session_id)
        try:
            if s.status == PASSWORD_REQUIRED:
                if not password:
                    raise SessionError("Two-step verification password required")
                await s.client.sign_in(password=password)
            else:
                if not code:
                    raise SessionError("Verification code required")
                try:
                    await s.client.sign_in(s.phone, code, phone_code_hash=s.phone_code_hash)
                except SessionPasswordNeededError:
                    s.status = PASSWORD_REQUIRED
                    if not password:
                        raise SessionError("Two-step verification password required")
                    await s.client.sign_in(password=password)
        except SessionError:
            raise
        except Exception as e:
            logger.error("Session %s verification failed: %s", session_id, e)
            raise SessionError(f"Verification failed: {e}") from e
        await self._finish_login(s)
        return s.user

    async def _finish_login(self, s: UserSession):
        me = await s.client.get_me()
        s.user = {
            "id":         me.id,
            "username":   me.username,
            "phone":      me.phone,
            "first_name": me.first_name,
            "last_name":  me.last_name,
        }
        s.status = CONNECTED
        s.touch()
        logger.info("Session %s connected as %s", s.session_id, me.username or me.phone)

    async def disconnect(self, session_id):
        s = self._sessions.pop(session_id, None)
        if s is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        s.status = DISCONNECTED
        try:
            await s.client.disconnect()
        except Exception as e:
            logger.warning("Session %s disconnect: %s", session_id, e)

    async def disconnect_all(self):
        for sid in list(self._sessions):
            await self.disconnect(sid)

    def get_status(self, session_id) -> dict:
        return self._get(session_id).info()

    def list_sessions(self) -> list[dict]:
        return [s.info() for s in self._sessions.values()]

    async def get_dialogs(self, session_id, limit=50) -> list[dict]:
        s = self._get(session_id)
        if s.status != CONNECTED:
            raise SessionError(f"Session {session_id} is not connected")
        dialogs = await s.client.get_dialogs(limit=limit)
        return [{
            "id":     d.id,
            "title":  d.title,
            "type":   "user" if d.is_user else "channel" if d.is_channel else "group" if d.is_group else "unknown",
            "unread": d.unread_count,
        } for d in dialogs]

    async def send(self, session_id, target, message) -> SendResult:
        s = self._sessions.get(session_id)
        if s is None or s.status != CONNECTED:
            return SendResult(False, f"Session {session_id} is not connected")
        try:
            await s.client.send_message(_peer(target), message)
        except Exception as e:
            s.stats["send_errors"] += 1
            logger.warning("Session %s: send to %s failed: %s", session_id, target, e)
            return SendResult(False, str(e))
        s.stats["messages_sent"] += 1
        s.touch()
        return SendResult(True)
