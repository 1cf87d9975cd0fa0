"""
Tests for password hashing, tokens, users and the default-user bootstrap.
"""
from __future__ import annotations

import pytest
from jose import jwt

from backend import config
from backend.auth import ALGORITHM, create_access_token, decode_token, hash_password, verify_password
from backend.errors import ValidationError
from backend.persistence.repositories import UserRepository
from backend.services.bootstrap import ensure_default_user


def test_hash_and_verify_password():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", "")


def test_token_round_trip():
    token = create_access_token(42, "alice")
    assert decode_token(token) == 42
    claims = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[ALGORITHM])
    assert claims["username"] == "alice"


def test_invalid_tokens_decode_to_none():
    assert decode_token("not-a-token") is None
    forged = jwt.encode({"sub": "1"}, "some-other-secret", algorithm=ALGORITHM)
    assert decode_token(forged) is None


def test_username_is_unique_and_case_sensitive(db_conn, alice):
    repo = UserRepository()
    with pytest.raises(ValidationError):
        repo.create(db_conn, "alice", "h")
    other = repo.create(db_conn, "Alice", "h")
    assert other.id != alice.id
    assert repo.get_by_username(db_conn, "Alice").id == other.id
    assert repo.get(db_conn, alice.id).username == "alice"
    assert repo.get(db_conn, 999) is None
    assert repo.count(db_conn) == 2


def test_default_user_created_once(db_conn):
    user = ensure_default_user(db_conn, "admin", "admin123")
    assert user is not None
    assert verify_password("admin123", user.password_hash)
    assert ensure_default_user(db_conn, "admin", "admin123") is None
    assert UserRepository().count(db_conn) == 1


def test_default_user_skipped_when_users_exist(db_conn, alice):
    assert ensure_default_user(db_conn) is None
    assert UserRepository().get_by_username(db_conn, config.DEFAULT_USERNAME) is None


def test_duplicate_username_rejected_without_prior_lookup(db_conn, alice, monkeypatch):
    # A concurrent signup can insert the name after any read-side check.
    monkeypatch.setattr(UserRepository, "get_by_username", lambda self, conn, username: None)
    with pytest.raises(ValidationError, match="Username already taken"):
        UserRepository().create(db_conn, "alice", "h")
    assert UserRepository().count(db_conn) == 1
