"""
Tests for schema provisioning: idempotency, foreign key actions, all-or-nothing setup,
and the legacy players migration.
"""
from __future__ import annotations

import sqlite3

import pytest

from backend.persistence import db as db_module
from backend.persistence.db import (
    describe_team_id_column,
    ensure_schema,
    get_connection,
    init_db,
    migrate_global_players,
    migration_needed,
)
from backend.persistence.schema import users_schema


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {r[0] for r in rows}


def _indexes(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'").fetchall()
    return {r[0] for r in rows}


def _fk_actions(conn: sqlite3.Connection, table: str) -> dict[str, str]:
    rows = conn.execute(f"PRAGMA foreign_key_list({table})").fetchall()
    return {r["from"]: r["on_delete"] for r in rows}


def test_ensure_schema_creates_tables_and_indexes(db_conn):
    assert {"users", "teams", "players"} <= _tables(db_conn)
    assert {"ix_players_owner", "ix_players_team", "ix_teams_owner"} <= _indexes(db_conn)


def test_ensure_schema_is_idempotent(db_conn, alice, team_repo):
    team_repo.create(db_conn, "Lions", None, None, None, alice.id)
    ensure_schema(db_conn)
    ensure_schema(db_conn)
    assert team_repo.count_by_owner(db_conn, alice.id) == 1


def test_foreign_key_actions(db_conn):
    assert _fk_actions(db_conn, "players") == {"team_id": "SET NULL", "owner_id": "CASCADE"}
    assert _fk_actions(db_conn, "teams") == {"owner_id": "CASCADE"}


def test_connections_enforce_foreign_keys(db_conn):
    assert db_conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1


def test_ensure_schema_rolls_back_on_failure(tmp_path, monkeypatch):
    monkeypatch.setattr(
        db_module,
        "all_schema_statements",
        lambda: users_schema() + ["CREATE TABLE broken ("],
    )
    conn = get_connection(tmp_path / "broken.db")
    try:
        with pytest.raises(sqlite3.Error):
            ensure_schema(conn)
        assert "users" not in _tables(conn)
        assert not conn.in_transaction
    finally:
        conn.close()


def test_deleting_user_cascades_to_teams_and_players(db_conn, alice, bob, team_repo, player_repo):
    team = team_repo.create(db_conn, "Lions", None, None, None, alice.id)
    player_repo.create(db_conn, "Amy", None, None, team.id, alice.id)
    player_repo.create(db_conn, "Zed", None, None, None, alice.id)
    player_repo.create(db_conn, "Bea", None, None, None, bob.id)
    db_conn.execute("DELETE FROM users WHERE id = ?", (alice.id,))
    assert team_repo.count_by_owner(db_conn, alice.id) == 0
    assert player_repo.count_by_owner(db_conn, alice.id) == 0
    assert player_repo.count_by_owner(db_conn, bob.id) == 1


# ---------- legacy migration ----------

_LEGACY_DDL = [
    "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, username TEXT NOT NULL UNIQUE, "
    "password_hash TEXT NOT NULL, created_at TEXT NOT NULL)",
    "CREATE TABLE teams (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, logo TEXT, "
    "color TEXT DEFAULT '#0ea5e9', description TEXT, owner_id INTEGER NOT NULL, created_at TEXT NOT NULL, "
    "updated_at TEXT NOT NULL, FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE)",
    "CREATE TABLE players (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, position TEXT, "
    "jersey_number INTEGER, team_id INTEGER NOT NULL, owner_id INTEGER NOT NULL, created_at TEXT NOT NULL, "
    "updated_at TEXT NOT NULL, FOREIGN KEY (team_id) REFERENCES teams(id) ON DELETE CASCADE, "
    "FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE)",
    "INSERT INTO users (id, username, password_hash, created_at) VALUES (1, 'alice', 'h', '2024-01-01T00:00:00')",
    "INSERT INTO teams (id, name, owner_id, created_at, updated_at) "
    "VALUES (1, 'Lions', 1, '2024-01-01T00:00:00', '2024-01-01T00:00:00')",
    "INSERT INTO players (id, name, position, jersey_number, team_id, owner_id, created_at, updated_at) "
    "VALUES (1, 'Amy', 'GK', 1, 1, 1, '2024-01-01T00:00:00', '2024-01-01T00:00:00')",
]


@pytest.fixture
def legacy_db(tmp_path):
    path = tmp_path / "legacy.db"
    conn = get_connection(path)
    try:
        for stmt in _LEGACY_DDL:
            conn.execute(stmt)
    finally:
        conn.close()
    return path


def test_legacy_schema_needs_migration(legacy_db):
    conn = get_connection(legacy_db)
    try:
        assert migration_needed(conn)
        info = describe_team_id_column(conn)
        assert info == {"column": "team_id", "nullable": False, "on_delete": "CASCADE"}
    finally:
        conn.close()


def test_migrate_global_players_rebuilds_players(legacy_db):
    conn = get_connection(legacy_db)
    try:
        result = migrate_global_players(conn)
        assert result == {"column": "team_id", "nullable": True, "on_delete": "SET NULL"}
        assert not migration_needed(conn)
        row = conn.execute("SELECT name, position, jersey_number, team_id FROM players WHERE id = 1").fetchone()
        assert tuple(row) == ("Amy", "GK", 1, 1)
        assert {"ix_players_owner", "ix_players_team"} <= _indexes(conn)
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        conn.execute("DELETE FROM teams WHERE id = 1")
        row = conn.execute("SELECT team_id FROM players WHERE id = 1").fetchone()
        assert row["team_id"] is None
    finally:
        conn.close()


def test_init_db_migrates_legacy_database(legacy_db):
    init_db(db_path=legacy_db)
    conn = get_connection(legacy_db)
    try:
        assert not migration_needed(conn)
        assert conn.execute("SELECT COUNT(*) FROM players").fetchone()[0] == 1
    finally:
        conn.close()


def test_migration_is_noop_on_current_schema(db_conn):
    assert not migration_needed(db_conn)
    assert migrate_global_players(db_conn)["on_delete"] == "SET NULL"
