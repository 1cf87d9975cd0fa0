"""
Startup bootstrap: schema provisioning and the default account.
"""
from __future__ import annotations

import logging
import sqlite3

from backend import config
from backend.auth import hash_password
from backend.models import User
from backend.persistence import UserRepository, init_db
from backend.persistence.db import get_db_path

logger = logging.getLogger(__name__)


def ensure_default_user(
    conn: sqlite3.Connection,
    username: str | None = None,
    password: str | None = None,
) -> User | None:
    """Create the default user when no users exist. Returns it, or None if users already exist."""
    repo = UserRepository()
    if repo.count(conn) > 0:
        return None
    username = username or config.DEFAULT_USERNAME
    password = password or config.DEFAULT_PASSWORD
    user = repo.create(conn, username, hash_password(password))
    logger.info("Default user created: %s", username)
    logger.warning("Please change the default password after first login")
    return user


def initialize_app(conn_factory) -> None:
    """
    Provision the schema and the default user. Any failure propagates: startup is fatal.
    conn_factory: zero-argument callable returning a new connection.
    """
    init_db(db_path=get_db_path())
    conn = conn_factory()
    try:
        ensure_default_user(conn)
    finally:
        conn.close()
