#!/usr/bin/env python3
"""
Vertical slice: Create user → teams → players → delete a team → read back global players.
Run from project root: python3 scripts/vertical_slice.py
"""
from __future__ import annotations

import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from backend.auth import hash_password
from backend.persistence import init_db, get_connection, UserRepository, TeamRepository, PlayerRepository
from backend.persistence.db import set_db_path


def main() -> None:
    # Use data/vertical_slice.db for demo (distinct from app.db)
    db_path = PROJECT_ROOT / "data" / "vertical_slice.db"
    if db_path.exists():
        db_path.unlink()
    set_db_path(db_path)
    init_db(db_path=db_path)

    conn = get_connection()
    try:
        user_repo = UserRepository()
        team_repo = TeamRepository()
        player_repo = PlayerRepository()

        # 1. User
        user = user_repo.create(conn, "slice-demo", hash_password("slice-demo"))
        print(f"Created user: {user.username} (id={user.id})")

        # 2. Two teams
        lions = team_repo.create(conn, "Lions", "🦁", "#f59e0b", "Demo team", user.id)
        bears = team_repo.create(conn, "Bears", "🐻", None, None, user.id)
        print(f"Created teams: {lions.name} (id={lions.id}), {bears.name} (id={bears.id})")

        # 3. Players: two per team plus one global
        player_repo.create(conn, "Amy", "Goalkeeper", 1, lions.id, user.id)
        player_repo.create(conn, "Ben", None, 9, lions.id, user.id)
        player_repo.create(conn, "Cal", "Defender", 4, bears.id, user.id)
        player_repo.create(conn, "Zed", None, None, None, user.id)

        for t in team_repo.list_by_owner_with_player_count(conn, user.id):
            print(f"  {t.logo} {t.name}: {t.player_count} players")

        # 4. Delete a team; its players become global
        team_repo.delete(conn, lions.id, user.id)
        print(f"Deleted team {lions.name}")

        print("All players (global first):")
        for p in player_repo.list_by_owner(conn, user.id):
            print(f"  {p.name:<4} team={p.team_name or '-'}")

        global_names = [p.name for p in player_repo.list_global_by_owner(conn, user.id)]
        assert global_names == ["Amy", "Ben", "Zed"], global_names
        print("\nVertical slice complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
