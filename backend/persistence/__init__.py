"""
Persistence layer for roster data.
No HTTP and no auth, only schema and owner-scoped read/write interfaces.
"""
from .db import ensure_schema, execute, get_connection, init_db, transaction
from .repositories import (
    UserRepository,
    TeamRepository,
    PlayerRepository,
)

__all__ = [
    "ensure_schema",
    "execute",
    "get_connection",
    "init_db",
    "transaction",
    "UserRepository",
    "TeamRepository",
    "PlayerRepository",
]
