"""Unit tests for password hashing and session helpers."""

from unittest.mock import MagicMock

from society_portal.models.resident import Resident
from society_portal.services.identity import (
    SESSION_KEY,
    hash_password,
    is_authenticated,
    login,
    logout,
    verify_password,
)


def test_hash_and_verify_password():
    hashed = hash_password("correct-horse")

    assert hashed != "correct-horse"
    assert verify_password("correct-horse", hashed) is True
    assert verify_password("wrong-horse", hashed) is False


def test_hash_is_salted():
    assert hash_password("same-password") != hash_password("same-password")


def test_long_password_truncated_to_bcrypt_limit():
    base = "x" * 72
    hashed = hash_password(base + "ignored")
    assert verify_password(base, hashed) is True


def test_malformed_hash_does_not_verify():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_login_and_logout_manage_session():
    request = MagicMock()
    request.session = {"stale": "value"}
    resident = Resident(id=7, username="r@example.com")

    login(request, resident)
    assert request.session == {SESSION_KEY: 7}
    assert is_authenticated(request) is True

    logout(request)
    assert request.session == {}
    assert is_authenticated(request) is False
