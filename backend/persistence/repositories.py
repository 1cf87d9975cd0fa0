"""
Repository interfaces for roster data.
Every team and player operation takes owner_id and filters on it: a row owned by another
user is indistinguishable from a missing row (NotFoundError).
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone

from backend.errors import NotFoundError, ValidationError
from backend.models import Player, PlayerWithTeam, Team, TeamHierarchy, TeamWithCount, User
from backend.validation import (
    clean_jersey_number,
    clean_name,
    clean_optional,
    clean_search_query,
    clean_team_fields,
    like_pattern,
)

from .db import execute, foreign_keys_enabled, transaction

logger = logging.getLogger(__name__)

# Roster order: players with a position first (position asc), then by name.
_ROSTER_ORDER = """
    CASE WHEN position IS NULL THEN 1 ELSE 0 END,
    casefold(position) ASC,
    casefold(name) ASC,
    id ASC
"""

# Owner-wide order: global players first, then by team name (nulls first), then player name.
_OWNER_ORDER = """
    CASE WHEN p.team_id IS NULL THEN 0 ELSE 1 END,
    casefold(t.name) ASC NULLS FIRST,
    casefold(p.name) ASC,
    p.id ASC
"""

_TEAM_COLS = "id, owner_id, name, logo, color, description, created_at, updated_at"
_PLAYER_COLS = "id, owner_id, name, position, jersey_number, team_id, created_at, updated_at"
_PLAYER_WITH_TEAM_COLS = """
    p.id, p.owner_id, p.name, p.position, p.jersey_number, p.team_id,
    p.created_at, p.updated_at,
    t.name AS team_name, t.color AS team_color, t.logo AS team_logo
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _row_to_team(r: sqlite3.Row) -> Team:
    return Team(
        id=r["id"],
        owner_id=r["owner_id"],
        name=r["name"],
        logo=r["logo"],
        color=r["color"],
        description=r["description"],
        created_at=_parse_datetime(r["created_at"]),
        updated_at=_parse_datetime(r["updated_at"]),
    )


def _row_to_team_with_count(r: sqlite3.Row) -> TeamWithCount:
    return TeamWithCount(
        id=r["id"],
        owner_id=r["owner_id"],
        name=r["name"],
        logo=r["logo"],
        color=r["color"],
        description=r["description"],
        created_at=_parse_datetime(r["created_at"]),
        updated_at=_parse_datetime(r["updated_at"]),
        player_count=int(r["player_count"]),
    )


def _row_to_player(r: sqlite3.Row) -> Player:
    return Player(
        id=r["id"],
        owner_id=r["owner_id"],
        name=r["name"],
        position=r["position"],
        jersey_number=r["jersey_number"],
        team_id=r["team_id"],
        created_at=_parse_datetime(r["created_at"]),
        updated_at=_parse_datetime(r["updated_at"]),
    )


def _row_to_player_with_team(r: sqlite3.Row) -> PlayerWithTeam:
    return PlayerWithTeam(
        id=r["id"],
        owner_id=r["owner_id"],
        name=r["name"],
        position=r["position"],
        jersey_number=r["jersey_number"],
        team_id=r["team_id"],
        created_at=_parse_datetime(r["created_at"]),
        updated_at=_parse_datetime(r["updated_at"]),
        team_name=r["team_name"],
        team_color=r["team_color"],
        team_logo=r["team_logo"],
    )


def _team_owned_by(conn: sqlite3.Connection, team_id: int, owner_id: int) -> bool:
    res = execute(conn, "SELECT 1 FROM teams WHERE id = ? AND owner_id = ?", (team_id, owner_id))
    return bool(res.rows)


def _require_owned_team(conn: sqlite3.Connection, team_id: int | None, owner_id: int) -> None:
    """A non-null team_id must name a team of the same owner."""
    if team_id is None:
        return
    if not _team_owned_by(conn, team_id, owner_id):
        raise ValidationError("Team not owned by caller.")


# ---------- UserRepository ----------


class UserRepository:
    """CRUD for users. username unique and case-sensitive; password_hash only."""

    def create(self, conn: sqlite3.Connection, username: str, password_hash: str) -> User:
        username = clean_name(username, "User")
        now = _now()
        # A duplicate username inserts nothing (rowcount 0)
        res = execute(
            conn,
            "INSERT INTO users (username, password_hash, created_at) VALUES (?, ?, ?) "
            "ON CONFLICT(username) DO NOTHING",
            (username, password_hash, now),
        )
        if res.rowcount == 0:
            raise ValidationError("Username already taken")
        logger.info("Created user %s (id=%s)", username, res.lastrowid)
        return User(
            id=res.lastrowid,
            username=username,
            created_at=_parse_datetime(now),
            password_hash=password_hash,
        )

    def get(self, conn: sqlite3.Connection, user_id: int) -> User | None:
        res = execute(
            conn,
            "SELECT id, username, password_hash, created_at FROM users WHERE id = ?",
            (user_id,),
        )
        if not res.rows:
            return None
        r = res.rows[0]
        return User(
            id=r["id"],
            username=r["username"],
            created_at=_parse_datetime(r["created_at"]),
            password_hash=r["password_hash"],
        )

    def get_by_username(self, conn: sqlite3.Connection, username: str) -> User | None:
        res = execute(
            conn,
            "SELECT id, username, password_hash, created_at FROM users WHERE username = ?",
            (username,),
        )
        if not res.rows:
            return None
        r = res.rows[0]
        return User(
            id=r["id"],
            username=r["username"],
            created_at=_parse_datetime(r["created_at"]),
            password_hash=r["password_hash"],
        )

    def count(self, conn: sqlite3.Connection) -> int:
        return execute(conn, "SELECT COUNT(*) AS count FROM users").rows[0]["count"]


# ---------- TeamRepository ----------


class TeamRepository:
    """CRUD and aggregates for teams, scoped to the owning user."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        logo: str | None,
        color: str | None,
        description: str | None,
        owner_id: int,
    ) -> Team:
        name, logo, color, description = clean_team_fields(name, logo, color, description)
        now = _now()
        res = execute(
            conn,
            "INSERT INTO teams (name, logo, color, description, owner_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (name, logo, color, description, owner_id, now, now),
        )
        return Team(
            id=res.lastrowid,
            owner_id=owner_id,
            name=name,
            logo=logo,
            color=color,
            description=description,
            created_at=_parse_datetime(now),
            updated_at=_parse_datetime(now),
        )

    def list_by_owner(self, conn: sqlite3.Connection, owner_id: int) -> list[Team]:
        res = execute(
            conn,
            f"SELECT {_TEAM_COLS} FROM teams WHERE owner_id = ? ORDER BY casefold(name) ASC, id ASC",
            (owner_id,),
        )
        return [_row_to_team(r) for r in res.rows]

    def list_by_owner_with_player_count(self, conn: sqlite3.Connection, owner_id: int) -> list[TeamWithCount]:
        """Every team of the owner with its player count (0 for empty teams), by name."""
        res = execute(
            conn,
            """
            SELECT t.id, t.owner_id, t.name, t.logo, t.color, t.description,
                   t.created_at, t.updated_at, COUNT(p.id) AS player_count
            FROM teams t
            LEFT JOIN players p ON p.team_id = t.id
            WHERE t.owner_id = ?
            GROUP BY t.id
            ORDER BY casefold(t.name) ASC, t.id ASC
            """,
            (owner_id,),
        )
        return [_row_to_team_with_count(r) for r in res.rows]

    def get_by_id(self, conn: sqlite3.Connection, team_id: int, owner_id: int) -> Team:
        res = execute(
            conn,
            f"SELECT {_TEAM_COLS} FROM teams WHERE id = ? AND owner_id = ?",
            (team_id, owner_id),
        )
        if not res.rows:
            raise NotFoundError("Team not found.")
        return _row_to_team(res.rows[0])

    def get_by_id_with_player_count(self, conn: sqlite3.Connection, team_id: int, owner_id: int) -> TeamWithCount:
        res = execute(
            conn,
            """
            SELECT t.id, t.owner_id, t.name, t.logo, t.color, t.description,
                   t.created_at, t.updated_at, COUNT(p.id) AS player_count
            FROM teams t
            LEFT JOIN players p ON p.team_id = t.id
            WHERE t.id = ? AND t.owner_id = ?
            GROUP BY t.id
            """,
            (team_id, owner_id),
        )
        if not res.rows:
            raise NotFoundError("Team not found.")
        return _row_to_team_with_count(res.rows[0])

    def update(
        self,
        conn: sqlite3.Connection,
        team_id: int,
        name: str,
        logo: str | None,
        color: str | None,
        description: str | None,
        owner_id: int,
    ) -> None:
        """Replace all mutable fields and refresh updated_at."""
        name, logo, color, description = clean_team_fields(name, logo, color, description)
        res = execute(
            conn,
            "UPDATE teams SET name = ?, logo = ?, color = ?, description = ?, updated_at = ? "
            "WHERE id = ? AND owner_id = ?",
            (name, logo, color, description, _now(), team_id, owner_id),
        )
        if res.rowcount == 0:
            raise NotFoundError("Team not found.")

    def delete(self, conn: sqlite3.Connection, team_id: int, owner_id: int) -> None:
        """
        Delete the team; its players survive as global players.
        With foreign keys enforced the store nulls players.team_id (ON DELETE SET NULL).
        Otherwise null them explicitly, then delete, in one transaction.
        """
        if foreign_keys_enabled(conn):
            res = execute(conn, "DELETE FROM teams WHERE id = ? AND owner_id = ?", (team_id, owner_id))
            if res.rowcount == 0:
                raise NotFoundError("Team not found.")
            return
        with transaction(conn):
            if not _team_owned_by(conn, team_id, owner_id):
                raise NotFoundError("Team not found.")
            execute(
                conn,
                "UPDATE players SET team_id = NULL, updated_at = ? WHERE team_id = ?",
                (_now(), team_id),
            )
            execute(conn, "DELETE FROM teams WHERE id = ? AND owner_id = ?", (team_id, owner_id))

    def get_hierarchy(self, conn: sqlite3.Connection, team_id: int, owner_id: int) -> TeamHierarchy:
        """Team with its players: positioned players first (by position), then by name."""
        team = self.get_by_id(conn, team_id, owner_id)
        res = execute(
            conn,
            f"SELECT {_PLAYER_COLS} FROM players WHERE team_id = ? AND owner_id = ? ORDER BY {_ROSTER_ORDER}",
            (team_id, owner_id),
        )
        return TeamHierarchy(team=team, players=[_row_to_player(r) for r in res.rows])

    def count_by_owner(self, conn: sqlite3.Connection, owner_id: int) -> int:
        return execute(
            conn, "SELECT COUNT(*) AS count FROM teams WHERE owner_id = ?", (owner_id,)
        ).rows[0]["count"]


# ---------- PlayerRepository ----------


class PlayerRepository:
    """
    CRUD, listing and search for players, including global (team_id NULL) players.
    Team references are checked against the owner before any write.
    """

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        position: str | None,
        jersey_number: int | None,
        team_id: int | None,
        owner_id: int,
    ) -> Player:
        name = clean_name(name, "Player")
        position = clean_optional(position)
        jersey_number = clean_jersey_number(jersey_number)
        _require_owned_team(conn, team_id, owner_id)
        now = _now()
        res = execute(
            conn,
            "INSERT INTO players (name, position, jersey_number, team_id, owner_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (name, position, jersey_number, team_id, owner_id, now, now),
        )
        return Player(
            id=res.lastrowid,
            owner_id=owner_id,
            name=name,
            position=position,
            jersey_number=jersey_number,
            team_id=team_id,
            created_at=_parse_datetime(now),
            updated_at=_parse_datetime(now),
        )

    def list_by_owner(self, conn: sqlite3.Connection, owner_id: int) -> list[PlayerWithTeam]:
        res = execute(
            conn,
            f"""
            SELECT {_PLAYER_WITH_TEAM_COLS}
            FROM players p
            LEFT JOIN teams t ON p.team_id = t.id
            WHERE p.owner_id = ?
            ORDER BY {_OWNER_ORDER}
            """,
            (owner_id,),
        )
        return [_row_to_player_with_team(r) for r in res.rows]

    def list_global_by_owner(self, conn: sqlite3.Connection, owner_id: int) -> list[Player]:
        res = execute(
            conn,
            f"SELECT {_PLAYER_COLS} FROM players WHERE owner_id = ? AND team_id IS NULL "
            "ORDER BY casefold(name) ASC, id ASC",
            (owner_id,),
        )
        return [_row_to_player(r) for r in res.rows]

    def list_by_team(self, conn: sqlite3.Connection, team_id: int, owner_id: int) -> list[Player]:
        res = execute(
            conn,
            f"SELECT {_PLAYER_COLS} FROM players WHERE team_id = ? AND owner_id = ? ORDER BY {_ROSTER_ORDER}",
            (team_id, owner_id),
        )
        return [_row_to_player(r) for r in res.rows]

    def get_by_id(self, conn: sqlite3.Connection, player_id: int, owner_id: int) -> PlayerWithTeam:
        """
        Player with team info via an INNER join: a global player is NotFoundError here.
        Use get_owned or list_global_by_owner to read global players.
        """
        res = execute(
            conn,
            f"""
            SELECT {_PLAYER_WITH_TEAM_COLS}
            FROM players p
            JOIN teams t ON p.team_id = t.id
            WHERE p.id = ? AND p.owner_id = ?
            """,
            (player_id, owner_id),
        )
        if not res.rows:
            raise NotFoundError("Player not found.")
        return _row_to_player_with_team(res.rows[0])

    def get_owned(self, conn: sqlite3.Connection, player_id: int, owner_id: int) -> PlayerWithTeam:
        """Player with optional team info (outer join); global players included."""
        res = execute(
            conn,
            f"""
            SELECT {_PLAYER_WITH_TEAM_COLS}
            FROM players p
            LEFT JOIN teams t ON p.team_id = t.id
            WHERE p.id = ? AND p.owner_id = ?
            """,
            (player_id, owner_id),
        )
        if not res.rows:
            raise NotFoundError("Player not found.")
        return _row_to_player_with_team(res.rows[0])

    def update(
        self,
        conn: sqlite3.Connection,
        player_id: int,
        name: str,
        position: str | None,
        jersey_number: int | None,
        team_id: int | None,
        owner_id: int,
    ) -> None:
        """Replace all mutable fields; team_id None makes the player global."""
        name = clean_name(name, "Player")
        position = clean_optional(position)
        jersey_number = clean_jersey_number(jersey_number)
        _require_owned_team(conn, team_id, owner_id)
        res = execute(
            conn,
            "UPDATE players SET name = ?, position = ?, jersey_number = ?, team_id = ?, updated_at = ? "
            "WHERE id = ? AND owner_id = ?",
            (name, position, jersey_number, team_id, _now(), player_id, owner_id),
        )
        if res.rowcount == 0:
            raise NotFoundError("Player not found.")

    def assign_to_team(self, conn: sqlite3.Connection, player_id: int, team_id: int, owner_id: int) -> None:
        if team_id is None:
            raise ValidationError("Team ID is required.")
        _require_owned_team(conn, team_id, owner_id)
        res = execute(
            conn,
            "UPDATE players SET team_id = ?, updated_at = ? WHERE id = ? AND owner_id = ?",
            (team_id, _now(), player_id, owner_id),
        )
        if res.rowcount == 0:
            raise NotFoundError("Player not found.")

    def unassign_from_team(self, conn: sqlite3.Connection, player_id: int, owner_id: int) -> None:
        """Make the player global. Idempotent for players already global."""
        res = execute(
            conn,
            "UPDATE players SET team_id = NULL, updated_at = ? WHERE id = ? AND owner_id = ?",
            (_now(), player_id, owner_id),
        )
        if res.rowcount == 0:
            raise NotFoundError("Player not found.")

    def delete(self, conn: sqlite3.Connection, player_id: int, owner_id: int) -> None:
        res = execute(conn, "DELETE FROM players WHERE id = ? AND owner_id = ?", (player_id, owner_id))
        if res.rowcount == 0:
            raise NotFoundError("Player not found.")

    def count_by_owner(self, conn: sqlite3.Connection, owner_id: int) -> int:
        return execute(
            conn, "SELECT COUNT(*) AS count FROM players WHERE owner_id = ?", (owner_id,)
        ).rows[0]["count"]

    def count_by_team(self, conn: sqlite3.Connection, team_id: int, owner_id: int) -> int:
        return execute(
            conn,
            "SELECT COUNT(*) AS count FROM players WHERE team_id = ? AND owner_id = ?",
            (team_id, owner_id),
        ).rows[0]["count"]

    def search(self, conn: sqlite3.Connection, text: str, owner_id: int) -> list[PlayerWithTeam]:
        """Case-insensitive substring match on player name or team name; owner-wide order."""
        pattern = like_pattern(clean_search_query(text).casefold())
        res = execute(
            conn,
            f"""
            SELECT {_PLAYER_WITH_TEAM_COLS}
            FROM players p
            LEFT JOIN teams t ON p.team_id = t.id
            WHERE p.owner_id = ?
              AND (casefold(p.name) LIKE ? ESCAPE '\\' OR casefold(t.name) LIKE ? ESCAPE '\\')
            ORDER BY {_OWNER_ORDER}
            """,
            (owner_id, pattern, pattern),
        )
        return [_row_to_player_with_team(r) for r in res.rows]
