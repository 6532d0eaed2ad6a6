# telebot_pro/config.py
# Configuration is read from the .env file; secrets never live in code

import os
from dotenv import load_dotenv

load_dotenv()


def _require(key: str) -> str:
    val = os.getenv(key, "").strip()
    if not val or val.startswith("PUT_"):
        raise RuntimeError(
            f"\n\n❌ Variable {key} is not configured!\n"
            f"   Copy .env.example → .env and fill in the values.\n"
        )
    return val


def _parse_ids(raw: str) -> list[int]:
    result = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit():
            result.append(int(part))
    return result


def _parse_list(raw: str) -> list[str]:
    return [p.strip().lower() for p in raw.split(",") if p.strip()]


BOT_TOKEN: str = os.getenv("BOT_TOKEN", "").strip()
ADMIN_IDS: list[int] = _parse_ids(os.getenv("ADMIN_IDS", ""))

ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")
ADMIN_PASSWORD_HASH: str = os.getenv("ADMIN_PASSWORD_HASH", "")
JWT_SECRET: str = os.getenv("JWT_SECRET", "")
TOKEN_EXPIRY_HOURS: int = int(os.getenv("TOKEN_EXPIRY_HOURS", "8"))

TG_API_ID: int = int(os.getenv("TG_API_ID", "0") or 0)
TG_API_HASH: str = os.getenv("TG_API_HASH", "")

DATA_FILE: str = os.getenv("DATA_FILE", "telebot_data.json")
MIN_INTERVAL: int = int(os.getenv("MIN_INTERVAL", "10"))
COMMAND_TIMEOUT: int = int(os.getenv("COMMAND_TIMEOUT", "30"))
ALLOWED_COMMANDS: list[str] = _parse_list(os.getenv("ALLOWED_COMMANDS", ""))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


def require_bot_token() -> str:
    return _require("BOT_TOKEN")
