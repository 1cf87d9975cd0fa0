#!/usr/bin/env python3
"""
One-off migration for databases created before global players existed:
makes players.team_id nullable with ON DELETE SET NULL.
Run from project root: python3 scripts/migrate_global_players.py [--db PATH]
"""
from __future__ import annotations

import argparse
import logging
import sqlite3
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from backend.persistence.db import get_connection, get_db_path, migrate_global_players, migration_needed

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("migrate_global_players")


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--db", type=Path, default=None, help="SQLite file (default: DATABASE_PATH)")
    args = parser.parse_args()

    db_path = args.db or get_db_path()
    if not db_path.exists():
        logger.error("Database not found: %s", db_path)
        return 1

    conn = get_connection(db_path)
    try:
        if not migration_needed(conn):
            logger.info("Nothing to do: players.team_id already supports global players")
            return 0
        result = migrate_global_players(conn)
    except sqlite3.Error as e:
        logger.error("Migration failed: %s", e)
        return 1
    finally:
        conn.close()

    if result["nullable"] and result["on_delete"] == "SET NULL":
        logger.info("Migration completed successfully: %s", result)
        return 0
    logger.warning("team_id might still be NOT NULL: %s", result)
    return 1


if __name__ == "__main__":
    sys.exit(main())
