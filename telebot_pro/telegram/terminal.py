import asyncio
import logging

from telebot_pro.telegram.formatter import (
    TERMINAL_HELP, format_bots, format_exec_result, format_history,
    format_sessions, format_system_status,
)

logger = logging.getLogger(__name__)


class Terminal:
    """Front-end of the /sh command: gate, built-ins, then the executor."""

    def __init__(self, gate, executor, store, monitor, bots, sessions):
        self.gate     = gate
        self.executor = executor
        self.store    = store
        self.monitor  = monitor
        self.bots     = bots
        self.sessions = sessions

    async def run(self, command, user="admin", auth=None) -> str:
        command = (command or "").strip()
        if not command:
            return "Usage: `/sh <command>`\nType `/sh help` to see allowed commands"

        decision = self.gate.check(command)
        if not decision.allowed:
            self.store.log_command(user, command, False)
            return f"✕ Error: {decision.reason}\nType `/sh help` to see allowed commands"

        if self.gate.is_pseudo(command):
            return await self._builtin(self.gate.normalize(command), auth)

        self.store.add_history(command)
        result = await asyncio.to_thread(self.executor.run, command)
        self.store.log_command(user, command, True, result.success, result.error)
        if not result.success:
            logger.info("Command by %s failed: %s", user, result.error)
        return format_exec_result(command, result)

    async def _builtin(self, name, auth):
        if name == "help":
            return TERMINAL_HELP
        if name == "clear":
            return "Terminal cleared"
        if name == "history":
            return format_history(self.store.get_history())
        if name == "status":
            snap = await asyncio.to_thread(self.monitor.snapshot)
            return format_system_status(snap, auth)
        if name == "bots":
            return format_bots(self.bots.list_bots())
        return format_sessions(self.sessions.list_sessions())
