"""
Data models for the roster backend.
Domain objects only; no persistence or API logic.

Every Team and Player belongs to exactly one User (owner_id).
A Player with team_id None is a global (unassigned) player.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


# ---------- User ----------
@dataclass
class User:
    """
    An app user. username is unique and case-sensitive; password_hash never plain text.
    """
    id: int
    username: str
    created_at: datetime
    password_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Team ----------
@dataclass
class Team:
    """
    A user's team. Deleting it never deletes players; their team_id becomes None.
    """
    id: int
    owner_id: int
    name: str
    logo: str
    color: str
    description: str | None
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "logo": self.logo,
            "color": self.color,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class TeamWithCount(Team):
    """Team annotated with its current number of players."""
    player_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["player_count"] = self.player_count
        return d


# ---------- Player ----------
@dataclass
class Player:
    """
    A player. owner_id is fixed at creation; team_id is None for global players.
    """
    id: int
    owner_id: int
    name: str
    position: str | None
    jersey_number: int | None
    team_id: int | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_global(self) -> bool:
        return self.team_id is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "jersey_number": self.jersey_number,
            "team_id": self.team_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class PlayerWithTeam(Player):
    """Player joined with its team's display fields (all None for global players)."""
    team_name: str | None = None
    team_color: str | None = None
    team_logo: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["team_name"] = self.team_name
        d["team_color"] = self.team_color
        d["team_logo"] = self.team_logo
        return d


# ---------- TeamHierarchy ----------
@dataclass
class TeamHierarchy:
    """A team with its full ordered roster."""
    team: Team
    players: list[Player] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = self.team.to_dict()
        d["players"] = [p.to_dict() for p in self.players]
        return d
