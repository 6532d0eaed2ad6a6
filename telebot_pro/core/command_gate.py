"""Allow/deny gate for commands typed into the terminal.

Block patterns are always checked before anything else, so a command that
matches both lists is rejected. Everything is tested against the trimmed,
lower-cased command. Only a fixed catalogue of read-only commands gets
through: exact commands first, then a few narrowly anchored patterns whose
arguments cannot carry pipes, redirections or shell syntax.
"""
import re
from dataclasses import dataclass
from re import Pattern
from typing import Iterable, Optional

BLOCKED_PATTERNS: tuple[Pattern, ...] = tuple(re.compile(p) for p in (
    r"rm\s+(-rf|/|\.\.)",
    r"dd\s+if=",
    r"mkfs",
    r"fdisk",
    r"chmod\s+[0-7]{3,4}\s+",
    r"chown\s+root",
    r"wget\s+(http|https)://",
    r"curl\s+-o\s+",
    r"\bnc\s+",
    r"\btelnet\s+",
    r"\bssh\s+",
    r"\bscp\s+",
    r"[<>]",
    r"\$\(|`",
    r";",
    r"\|\s*$",
    r"&",
    r"\|\|",
    r"\bsudo\s+",
))

DEFAULT_COMMANDS: tuple[str, ...] = (
    "pwd", "whoami", "date", "uptime", "uptime -p", "uname -a", "uname -r", "hostname",
    "ls", "ls -la", "ls -l", "ls -lh", "ls -la | head -20",
    "ps aux | head -20", "ps aux | grep -v grep | grep -i bot", "ps aux | wc -l",
    "git status", "git branch", "git log --oneline -10", "git remote -v",
    "node --version", "npm --version", "python --version", "python3 --version",
    "curl -s https://api.ipify.org", "ping -c 1 8.8.8.8",
    "free -h", "df -h", "df -h | head -10",
)

# file arguments: plain relative or absolute paths, no spaces or shell syntax
_FILE = r"[\w./-]+"

ALLOWED_PATTERNS: tuple[Pattern, ...] = tuple(re.compile(p) for p in (
    r"^cat (package\.json|readme\.md|\.env\.example)$",
    rf"^tail -n \d+ {_FILE}\.(log|txt)$",
    rf"^head -n \d+ {_FILE}\.(js|json|md)$",
    rf"^wc -l {_FILE}\.(js|json|md)$",
    rf'^grep -i "[^"$\\]*" {_FILE}\.(js|json|md)$',
    r'^find \. -name "[\w*.-]*\.(js|json|md)" -type f \| head -\d+$',
    rf"^du -sh {_FILE}$",
    r"^echo [\w .,:!?@#%+=/-]*$",
    r"^date \+[%\w:./-]+$",
))

# answered by the terminal itself, never handed to the executor
PSEUDO_COMMANDS = frozenset({"clear", "help", "history", "status", "bots", "userbots"})

REASON_BLOCKED     = "Command contains dangerous patterns"
REASON_PATTERN     = "Command matches allowed pattern"
REASON_LISTED      = "Command is in allowed list"
REASON_NOT_ALLOWED = "Command not in allowed list"


@dataclass(frozen=True)
class CommandDecision:
    allowed: bool
    reason: str


class CommandGate:
    """Pure decision function over immutable command tables."""

    def __init__(
        self,
        blocked: Iterable[Pattern] = BLOCKED_PATTERNS,
        allowed: Iterable[Pattern] = ALLOWED_PATTERNS,
        commands: Optional[Iterable[str]] = DEFAULT_COMMANDS,
    ) -> None:
        self.blocked  = tuple(blocked)
        self.allowed  = tuple(allowed)
        self.commands = frozenset(c.strip().lower() for c in (commands or ()) if c.strip())

    @staticmethod
    def normalize(command: str) -> str:
        return (command or "").strip().lower()

    def check(self, command: str) -> CommandDecision:
        cmd = self.normalize(command)
        if not cmd:
            return CommandDecision(False, REASON_NOT_ALLOWED)

        for pattern in self.blocked:
            if pattern.search(cmd):
                return CommandDecision(False, REASON_BLOCKED)

        if cmd in PSEUDO_COMMANDS or cmd in self.commands:
            return CommandDecision(True, REASON_LISTED)

        for pattern in self.allowed:
            if pattern.search(cmd):
                return CommandDecision(True, REASON_PATTERN)

        return CommandDecision(False, REASON_NOT_ALLOWED)

    def is_allowed(self, command: str) -> bool:
        return self.check(command).allowed

    def is_pseudo(self, command: str) -> bool:
        return self.normalize(command) in PSEUDO_COMMANDS


def default_gate() -> CommandGate:
    """Built-in catalogue plus the exact commands listed in ``ALLOWED_COMMANDS``."""
    from telebot_pro.config import ALLOWED_COMMANDS
    return CommandGate(commands=DEFAULT_COMMANDS + tuple(ALLOWED_COMMANDS))
