"""Telegram bots managed from the admin bot (create, start, stop, send)."""
import logging
import re
import secrets
from datetime import datetime
from typing import Optional

from telegram import Bot
from telegram.ext import Application, CommandHandler

from telebot_pro.core.errors import BotError, BotNotFoundError

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"^\d{5,}:[A-Za-z0-9_-]{30,}$")

RUNNING = "running"
STOPPED = "stopped"


def _uptime(started: Optional[datetime]) -> str:
    if not started:
        return "0s"
    secs = int((datetime.now() - started).total_seconds())
    h, m, s = secs // 3600, (secs % 3600) // 60, secs % 60
    if h: return f"{h}h {m}m {s}s"
    if m: return f"{m}m {s}s"
    return f"{s}s"


def _default_app(token):
    return Application.builder().token(token).build()


class ManagedBot:

    def __init__(self, bot_id, token, name, owner, app_factory=None):
        self.bot_id      = bot_id
        self.token       = token
        self.name        = name
        self.owner       = owner
        self.status      = STOPPED
        self.started_at: Optional[datetime] = None
        self.app         = None
        self.app_factory = app_factory or _default_app
        self.stats = {"messages_sent": 0, "commands_received": 0, "errors": 0}

    # ── replies of the managed bot ───────────────────────────────────────────

    async def _cmd_start(self, update, context):
        self.stats["commands_received"] += 1
        await update.message.reply_text(
            f"Hello! I'm {self.name}\nStatus: {self.status}\nOwner: {self.owner}")

    async def _cmd_status(self, update, context):
        self.stats["commands_received"] += 1
        await update.message.reply_text(
            f"Bot status:\n• Status: {self.status}\n"
            f"• Messages: {self.stats['messages_sent']}\n• Uptime: {self.uptime}")

    async def _cmd_help(self, update, context):
        self.stats["commands_received"] += 1
        await update.message.reply_text(
            "Available commands:\n/start - Start bot\n/status - Check status\n/help - Show help")

    async def _on_error(self, update, context):
        self.stats["errors"] += 1
        logger.error("Bot %s error: %s", self.bot_id, context.error)

    # ── lifecycle ─────────────────────────────────────────────────────────────

    @property
    def uptime(self) -> str:
        return _uptime(self.started_at) if self.status == RUNNING else "0s"

    async def start(self):
        if self.status == RUNNING:
            raise BotError(f"Bot {self.name} already running")
        app = self.app_factory(self.token)
        app.add_handler(CommandHandler("start",  self._cmd_start))
        app.add_handler(CommandHandler("status", self._cmd_status))
        app.add_handler(CommandHandler("help",   self._cmd_help))
        app.add_error_handler(self._on_error)
        try:
            await app.initialize()
            await app.start()
            await app.updater.start_polling()
        except Exception as e:
            logger.error("Failed to start bot %s: %s", self.bot_id, e)
            raise BotError(f"Failed to start bot: {e}") from e
        self.app        = app
        self.status     = RUNNING
        self.started_at = datetime.now()
        logger.info("Bot %s started", self.bot_id)

    async def stop(self):
        if self.status != RUNNING:
            raise BotError(f"Bot {self.name} not running")
        app, self.app = self.app, None
        self.status   = STOPPED
        try:
            await app.updater.stop()
            await app.stop()
            await app.shutdown()
        except Exception as e:
            logger.error("Failed to stop bot %s cleanly: %s", self.bot_id, e)
        logger.info("Bot %s stopped", self.bot_id)

    async def send(self, chat_id, text):
        try:
            if self.app is not None:
                await self.app.bot.send_message(chat_id, text)
            else:
                async with Bot(self.token) as bot:
                    await bot.send_message(chat_id, text)
        except Exception as e:
            self.stats["errors"] += 1
            raise BotError(f"Failed to send message: {e}") from e
        self.stats["messages_sent"] += 1

    def info(self) -> dict:
        return {
            "bot_id":     self.bot_id,
            "name":       self.name,
            "owner":      self.owner,
            "status":     self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "uptime":     self.uptime,
            "stats":      dict(self.stats),
        }


class BotRegistry:

    def __init__(self, app_factory=None):
        self.app_factory = app_factory
        self._bots: dict[str, ManagedBot] = {}

    def _get(self, bot_id) -> ManagedBot:
        b = self._bots.get(bot_id)
        if b is None:
            raise BotNotFoundError(f"Bot {bot_id} not found")
        return b

    def create(self, token, name=None, owner="admin") -> ManagedBot:
        token = (token or "").strip()
        if not TOKEN_RE.match(token):
            raise BotError("Invalid bot token format")
        if any(b.token == token for b in self._bots.values()):
            raise BotError("This bot is already registered")
        bot_id = f"bot_{secrets.token_hex(4)}"
        b = ManagedBot(bot_id, token, name or bot_id, owner, self.app_factory)
        self._bots[bot_id] = b
        logger.info("Bot %s registered", bot_id)
        return b

    async def start(self, bot_id):
        await self._get(bot_id).start()

    async def stop(self, bot_id):
        await self._get(bot_id).stop()

    async def restart(self, bot_id):
        b = self._get(bot_id)
        if b.status == RUNNING:
            await b.stop()
        await b.start()

    async def send(self, bot_id, chat_id, text):
        await self._get(bot_id).send(chat_id, text)

    async def delete(self, bot_id):
        b = self._get(bot_id)
        if b.status == RUNNING:
            await b.stop()
        del self._bots[bot_id]
        logger.info("Bot %s deleted", bot_id)

    async def stop_all(self):
        for b in list(self._bots.values()):
            if b.status == RUNNING:
                await b.stop()

    def get_stats(self, bot_id) -> dict:
        return self._get(bot_id).info()

    def list_bots(self) -> list[dict]:
        return [b.info() for b in self._bots.values()]
