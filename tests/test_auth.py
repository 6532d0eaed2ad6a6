from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from telebot_pro.core.auth import Authenticator, hash_password
from telebot_pro.core.errors import AuthenticationError

SECRET = "test-secret"


@pytest.fixture(scope="module")
def pw_hash():
    return hash_password("hunter2")


@pytest.fixture
def auth(pw_hash):
    return Authenticator("admin", pw_hash, SECRET, expiry_hours=8)


def test_login_issues_verifiable_token(auth):
    tok = auth.authenticate("admin", "hunter2")
    check = auth.verify(tok.token)
    assert check.valid is True
    assert check.claims["user"] == "admin"
    assert check.claims["sid"]
    assert tok.expires_at - datetime.now(timezone.utc) > timedelta(hours=7)


@pytest.mark.parametrize("user,pw", [("admin", "wrong"), ("root", "hunter2"), ("", ""), ("admin", "")])
def test_bad_credentials(auth, user, pw):
    with pytest.raises(AuthenticationError):
        auth.authenticate(user, pw)


def test_login_disabled_without_hash():
    auth = Authenticator("admin", "", SECRET)
    with pytest.raises(AuthenticationError):
        auth.authenticate("admin", "anything")


def test_verify_rejects_garbage_and_foreign_tokens(auth):
    assert auth.verify(None).valid is False
    assert auth.verify("   ").valid is False
    assert auth.verify("not.a.jwt").valid is False
    foreign = jwt.encode({"sid": "x", "user": "admin"}, "other-secret", algorithm="HS256")
    assert auth.verify(foreign).valid is False


def test_expired_token(auth):
    past = datetime.now(timezone.utc) - timedelta(hours=9)
    token = jwt.encode(
        {"sid": "old", "user": "admin", "iat": past, "exp": past + timedelta(hours=8)},
        SECRET, algorithm="HS256",
    )
    assert auth.verify(token).valid is False


def test_revoke(auth):
    first  = auth.authenticate("admin", "hunter2").token
    second = auth.authenticate("admin", "hunter2").token
    auth.revoke(first)
    assert auth.verify(first).valid is False
    assert auth.verify(second).valid is True


def test_missing_secret_still_works(pw_hash):
    auth = Authenticator("admin", pw_hash, "")
    assert auth.verify(auth.authenticate("admin", "hunter2").token).valid


def test_non_ascii_username_is_rejected_cleanly(auth):
    with pytest.raises(AuthenticationError):
        auth.authenticate("jörg", "hunter2")


def test_non_ascii_admin_name(pw_hash):
    auth = Authenticator("jörg", pw_hash, SECRET)
    assert auth.verify(auth.authenticate("jörg", "hunter2").token).valid
