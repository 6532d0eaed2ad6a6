import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

import bcrypt
import jwt

from telebot_pro.core.errors import AuthenticationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class AuthToken(NamedTuple):
    token:      str
    expires_at: datetime


class TokenCheck(NamedTuple):
    valid:  bool
    claims: Optional[dict] = None


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


class Authenticator:
    """Single admin account, HS256 tokens."""

    def __init__(self, username, password_hash, secret, expiry_hours=8):
        if not secret:
            secret = secrets.token_hex(32)
            logger.warning("JWT_SECRET not set, tokens will not survive a restart")
        self.username      = username
        self.password_hash = password_hash.encode() if password_hash else b""
        self.secret        = secret
        self.expiry        = timedelta(hours=expiry_hours)
        self._revoked: set[str] = set()

    def authenticate(self, username: str, password: str) -> AuthToken:
        if not username or not password:
            raise AuthenticationError("Both username and password are required")
        ok = (
            secrets.compare_digest(username.encode(), self.username.encode())
            and bool(self.password_hash)
            and bcrypt.checkpw(password.encode(), self.password_hash)
        )
        if not ok:
            logger.info("Failed login for %r", username)
            raise AuthenticationError("Username or password is incorrect")

        now     = datetime.now(timezone.utc)
        expires = now + self.expiry
        token   = jwt.encode(
            {"sid": secrets.token_hex(16), "user": username, "iat": now, "exp": expires},
            self.secret, algorithm=ALGORITHM,
        )
        logger.info("Login successful for %s", username)
        return AuthToken(token, expires)

    def verify(self, token: Optional[str]) -> TokenCheck:
        if not token or not token.strip():
            return TokenCheck(False)
        try:
            claims = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except jwt.InvalidTokenError:
            return TokenCheck(False)
        if claims.get("sid") in self._revoked:
            return TokenCheck(False)
        return TokenCheck(True, claims)

    def revoke(self, token: str) -> None:
        check = self.verify(token)
        if check.valid:
            self._revoked.add(check.claims["sid"])


def default_authenticator() -> Authenticator:
    from telebot_pro.config import (
        ADMIN_PASSWORD, ADMIN_PASSWORD_HASH, ADMIN_USERNAME,
        JWT_SECRET, TOKEN_EXPIRY_HOURS,
    )
    pw_hash = ADMIN_PASSWORD_HASH or (hash_password(ADMIN_PASSWORD) if ADMIN_PASSWORD else "")
    if not pw_hash:
        logger.warning("No ADMIN_PASSWORD configured, /login is disabled")
    return Authenticator(ADMIN_USERNAME, pw_hash, JWT_SECRET, TOKEN_EXPIRY_HOURS)
