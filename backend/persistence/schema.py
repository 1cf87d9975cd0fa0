"""
SQLite schema for users, teams and players.
Migration-friendly: each table created with IF NOT EXISTS.
Statements are returned as lists so ensure_schema can run them inside one transaction
(executescript would commit implicitly).
"""
from __future__ import annotations


def users_schema() -> list[str]:
    return [
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """,
    ]


def teams_schema() -> list[str]:
    """Deleting a user removes their teams."""
    return [
        """
        CREATE TABLE IF NOT EXISTS teams (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            logo TEXT,
            color TEXT DEFAULT '#0ea5e9',
            description TEXT,
            owner_id INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """,
        "CREATE INDEX IF NOT EXISTS ix_teams_owner ON teams(owner_id)",
    ]


def players_table_sql(table: str = "players") -> str:
    """
    team_id is nullable and SET NULL on team delete: players outlive their team as global players.
    Deleting a user removes their players.
    """
    return f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            position TEXT,
            jersey_number INTEGER,
            team_id INTEGER,
            owner_id INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (team_id) REFERENCES teams(id) ON DELETE SET NULL,
            FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """


def players_indexes() -> list[str]:
    return [
        "CREATE INDEX IF NOT EXISTS ix_players_owner ON players(owner_id)",
        "CREATE INDEX IF NOT EXISTS ix_players_team ON players(team_id)",
    ]


def players_schema() -> list[str]:
    return [players_table_sql()] + players_indexes()


def all_schema_statements() -> list[str]:
    """Users first (teams and players reference it), then teams, then players."""
    return users_schema() + teams_schema() + players_schema()
