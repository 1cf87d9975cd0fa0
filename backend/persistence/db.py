"""
Database connection, execution primitive and schema provisioning.
"""
from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generator, Sequence

from backend import config
from backend.errors import InfrastructureError

from .schema import all_schema_statements, players_indexes, players_table_sql

logger = logging.getLogger(__name__)

_RETRYABLE_MARKERS = ("locked", "busy", "unable to open", "disk i/o")


@dataclass
class QueryResult:
    rows: list[sqlite3.Row] = field(default_factory=list)
    rowcount: int = 0
    lastrowid: int | None = None


def _to_infrastructure_error(exc: sqlite3.Error) -> InfrastructureError:
    msg = str(exc).lower()
    retryable = isinstance(exc, sqlite3.OperationalError) and any(m in msg for m in _RETRYABLE_MARKERS)
    return InfrastructureError("Database operation failed", retryable=retryable)


def execute(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> QueryResult:
    """
    Run one parameterized statement (? placeholders only) and return its rows and rowcount.
    sqlite3 errors surface as InfrastructureError; slow statements are logged.
    """
    start = time.perf_counter()
    try:
        cur = conn.execute(sql, tuple(params))
        rows = cur.fetchall()
    except sqlite3.Error as e:
        logger.error("Query error: %s | sql=%s", e, " ".join(sql.split()), exc_info=True)
        raise _to_infrastructure_error(e) from e
    duration_ms = (time.perf_counter() - start) * 1000
    if duration_ms > config.SLOW_QUERY_MS:
        logger.warning("Slow query (%.1f ms, %d rows): %s", duration_ms, cur.rowcount, " ".join(sql.split()))
    return QueryResult(rows=rows, rowcount=cur.rowcount, lastrowid=cur.lastrowid)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """
    All-or-nothing block: BEGIN, COMMIT on success, ROLLBACK and re-raise on any error.
    Joins the enclosing transaction if one is already open.
    """
    if conn.in_transaction:
        yield conn
        return
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        # SQLite may already have rolled back (e.g. SQLITE_FULL)
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


# Default DB path (config / env DATABASE_PATH)
_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path."""
    if _db_path is not None:
        return _db_path
    return config.DATABASE_PATH


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection with foreign keys enforced.
    Autocommit mode: each statement commits unless wrapped in transaction().
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path) if db_path else get_db_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path), timeout=config.DB_TIMEOUT_SECONDS, isolation_level=None)
    except (OSError, sqlite3.Error) as e:
        logger.error("Could not open database %s: %s", path, e)
        raise InfrastructureError("Database unavailable", retryable=True) from e
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    # NOCASE and LIKE only fold ASCII; casefold() covers the rest of Unicode
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    return conn


def _casefold(value: Any) -> Any:
    return value.casefold() if isinstance(value, str) else value


def foreign_keys_enabled(conn: sqlite3.Connection) -> bool:
    return bool(conn.execute("PRAGMA foreign_keys").fetchone()[0])


# ---------- Schema Manager ----------


def ensure_schema(conn: sqlite3.Connection) -> None:
    """
    Create users, teams, players and their lookup indexes if absent.
    One transaction: on any failure nothing is kept and the error propagates.
    """
    try:
        with transaction(conn):
            for stmt in all_schema_statements():
                conn.execute(stmt)
    except sqlite3.Error as e:
        logger.error("Database initialization error: %s", e)
        raise
    logger.info("Database tables initialized")


def _players_team_fk(conn: sqlite3.Connection) -> dict[str, Any] | None:
    for row in conn.execute("PRAGMA foreign_key_list(players)").fetchall():
        if row["table"] == "teams" and row["from"] == "team_id":
            return dict(row)
    return None


def describe_team_id_column(conn: sqlite3.Connection) -> dict[str, Any]:
    """Current shape of players.team_id: nullability and ON DELETE action."""
    nullable = True
    for row in conn.execute("PRAGMA table_info(players)").fetchall():
        if row["name"] == "team_id":
            nullable = not row["notnull"]
    fk = _players_team_fk(conn)
    return {
        "column": "team_id",
        "nullable": nullable,
        "on_delete": fk["on_delete"] if fk else None,
    }


def migration_needed(conn: sqlite3.Connection) -> bool:
    """True when a legacy players table has NOT NULL team_id or a non SET NULL foreign key."""
    info = describe_team_id_column(conn)
    return not info["nullable"] or info["on_delete"] != "SET NULL"


def migrate_global_players(conn: sqlite3.Connection) -> dict[str, Any]:
    """
    Rebuild players so team_id is nullable with ON DELETE SET NULL.
    SQLite cannot alter a column constraint in place: copy, drop, rename, re-index in one
    transaction with foreign key enforcement paused. Returns the post-migration column shape.
    """
    if not migration_needed(conn):
        logger.info("players.team_id already nullable with ON DELETE SET NULL; nothing to migrate")
        return describe_team_id_column(conn)
    cols = "id, name, position, jersey_number, team_id, owner_id, created_at, updated_at"
    conn.execute("PRAGMA foreign_keys = OFF")
    try:
        with transaction(conn):
            conn.execute("DROP TABLE IF EXISTS players_new")
            conn.execute(players_table_sql("players_new"))
            conn.execute(f"INSERT INTO players_new ({cols}) SELECT {cols} FROM players")
            conn.execute("DROP TABLE players")
            conn.execute("ALTER TABLE players_new RENAME TO players")
            for stmt in players_indexes():
                conn.execute(stmt)
            violations = conn.execute("PRAGMA foreign_key_check(players)").fetchall()
            if violations:
                raise sqlite3.IntegrityError(
                    f"players has {len(violations)} rows with dangling references"
                )
    except sqlite3.Error as e:
        logger.error("Migration failed: %s", e)
        raise
    finally:
        conn.execute("PRAGMA foreign_keys = ON")
    result = describe_team_id_column(conn)
    logger.info("Migrated players.team_id: %s", result)
    return result


def init_db(db_path: str | Path | None = None) -> None:
    """
    Create or ensure all tables exist, then bring a legacy players table up to date.
    """
    conn = get_connection(db_path)
    try:
        ensure_schema(conn)
        if migration_needed(conn):
            migrate_global_players(conn)
    finally:
        conn.close()
