import logging

from telegram import Update
from telegram.ext import Application

from telebot_pro import config
from telebot_pro.core.auth import default_authenticator
from telebot_pro.core.command_gate import default_gate
from telebot_pro.core.executor import CommandExecutor
from telebot_pro.core.scheduler import JobScheduler
from telebot_pro.monitor.system import SystemMonitor
from telebot_pro.storage.job_store import JobStore
from telebot_pro.telegram.bots import BotRegistry
from telebot_pro.telegram.handlers import on_shutdown, on_startup, register_handlers
from telebot_pro.telegram.sessions import SessionManager
from telebot_pro.telegram.terminal import Terminal
from telebot_pro.telegram.timers import JobQueueTimers


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for noisy in ("httpx", "telethon", "apscheduler"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_app(token):
    app = (
        Application.builder().token(token)
        .post_init(on_startup).post_shutdown(on_shutdown)
        .build()
    )
    store    = JobStore(config.DATA_FILE)
    gate     = default_gate()
    sessions = SessionManager(config.TG_API_ID, config.TG_API_HASH)
    bots     = BotRegistry()
    monitor  = SystemMonitor()
    app.bot_data.update({
        "auth":      default_authenticator(),
        "store":     store,
        "monitor":   monitor,
        "sessions":  sessions,
        "bots":      bots,
        "scheduler": JobScheduler(sessions, JobQueueTimers(app.job_queue), store),
        "terminal":  Terminal(gate, CommandExecutor(gate), store, monitor, bots, sessions),
    })
    register_handlers(app)
    return app


def main():
    setup_logging()
    app = build_app(config.require_bot_token())
    logging.getLogger(__name__).info("TeleBot Pro started, data file: %s", config.DATA_FILE)
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
