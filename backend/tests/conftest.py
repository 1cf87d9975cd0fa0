"""
Shared fixtures: a fresh SQLite file per test, two users, repositories.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.persistence.db import get_connection, init_db, set_db_path
from backend.persistence.repositories import PlayerRepository, TeamRepository, UserRepository


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "roster_test.db"
    set_db_path(path)
    init_db(db_path=path)
    return path


@pytest.fixture
def db_conn(db_path):
    """Temporary DB with the full schema."""
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def team_repo():
    return TeamRepository()


@pytest.fixture
def player_repo():
    return PlayerRepository()


@pytest.fixture
def alice(db_conn):
    return UserRepository().create(db_conn, "alice", "hash-a")


@pytest.fixture
def bob(db_conn):
    return UserRepository().create(db_conn, "bob", "hash-b")
