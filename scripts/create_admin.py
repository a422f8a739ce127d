#!/usr/bin/env python3
"""
Create an admin user (with their default team) or promote an existing user.
Run from project root: python3 scripts/create_admin.py --username admin --password secret123
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from gameweek_backend.auth import hash_password
from gameweek_backend.logging_config import setup_logging
from gameweek_backend.persistence import get_connection, init_db, UserRepository
from gameweek_backend.persistence.db import set_db_path
from gameweek_backend.services.league_service import LeagueService

logger = logging.getLogger("create_admin")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or promote a gameweek admin user.")
    parser.add_argument("--username", required=True)
    parser.add_argument("--password", help="Required when creating a new user")
    parser.add_argument("--db", type=Path, default=None, help="SQLite path (default: GAMEWEEK_DB_PATH)")
    args = parser.parse_args()

    setup_logging()
    if args.db:
        set_db_path(args.db)
    init_db()

    conn = get_connection()
    try:
        user_repo = UserRepository()
        user = user_repo.get_by_username(conn, args.username)
        if user is not None:
            user_repo.set_admin(conn, user.id, True)
            logger.info("Promoted %s to admin", user.username)
            return
        if not args.password or len(args.password) < 6:
            raise SystemExit("--password (at least 6 characters) is required for a new user")
        user, team = LeagueService().register_user(
            conn, args.username, hash_password(args.password), is_admin=True
        )
        logger.info("Created admin %s (team %s)", user.username, team.id)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
