import logging
import os
import re
import subprocess
from typing import NamedTuple, Optional

from telebot_pro.config import COMMAND_TIMEOUT

logger = logging.getLogger(__name__)

SAFE_PATH = "/usr/local/bin:/usr/bin:/bin:/usr/sbin:/sbin"
MAX_OUTPUT = 1024 * 1024

SENSITIVE_PATTERNS = (
    re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}"),
    re.compile(r"(api[_-]?key|token|secret|password)=[^\s]+", re.I),
    re.compile(r"(bearer\s+)[a-zA-Z0-9._-]+", re.I),
    re.compile(r"(-----BEGIN[^-]+-----)[^-]+(-----END[^-]+-----)", re.S),
)


class ExecResult(NamedTuple):
    success: bool
    output:  str
    error:   Optional[str] = None


def sanitize_output(text: str) -> str:
    if not text:
        return ""
    for pattern in SENSITIVE_PATTERNS:
        text = pattern.sub("[REDACTED]", text)
    return text


class CommandExecutor:
    """Runs commands the gate already allowed, in a throwaway environment."""

    def __init__(self, gate, cwd="/tmp", timeout=COMMAND_TIMEOUT):
        self.gate    = gate
        self.cwd     = cwd
        self.timeout = timeout

    def _env(self):
        env = dict(os.environ)
        env.update(PATH=SAFE_PATH, HOME=self.cwd)
        return env

    def run(self, command: str) -> ExecResult:
        if self.gate.is_pseudo(command) or not self.gate.is_allowed(command):
            return ExecResult(False, "", "Command not allowed")
        try:
            r = subprocess.run(
                command.strip(), shell=True, executable="/bin/bash",
                cwd=self.cwd, env=self._env(),
                capture_output=True, text=True, timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %ss: %.30s", self.timeout, command)
            return ExecResult(False, "", f"Command timed out after {self.timeout}s")
        except OSError as e:
            logger.error("Command execution failed: %s", e)
            return ExecResult(False, "", f"Command execution failed: {e}")

        stdout = sanitize_output(r.stdout[:MAX_OUTPUT])
        stderr = sanitize_output(r.stderr[:MAX_OUTPUT])
        output = stdout
        if stderr:
            output += "\nERROR:\n" + stderr
        if not output.strip():
            output = "(No output)"
        logger.info("Command executed (rc=%s): %.30s", r.returncode, command)
        if r.returncode != 0:
            return ExecResult(False, output, f"Exit code {r.returncode}")
        return ExecResult(True, output)
