#!/usr/bin/env python3
"""
Demo: seed matches, players, scores and a few teams → regenerate gameweeks → finalize → print standings.
Run from project root: python3 scripts/demo_gameweek.py
"""
from __future__ import annotations

import argparse
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from gameweek_backend.logging_config import setup_logging
from gameweek_backend.models import Position, RosterEntry
from gameweek_backend.persistence import (
    get_connection,
    init_db,
    GameweekScoreRepository,
    PlayerRepository,
    RealMatchRepository,
)
from gameweek_backend.persistence.db import set_db_path
from gameweek_backend.services.gameweek_service import GameweekService
from gameweek_backend.services.league_service import LeagueService

# 1 GK, 4 DEF, 4 MID, 2 FWD starters; one bench player per position
_SQUAD_SHAPE = [
    (Position.GK, 1, 1), (Position.DEF, 4, 1), (Position.MID, 4, 1), (Position.FWD, 2, 1),
]


def _seed(conn, rng: random.Random, managers: list[str]) -> None:
    players = PlayerRepository()
    scores = GameweekScoreRepository()
    matches = RealMatchRepository()
    league_svc = LeagueService()

    kickoff = datetime(2025, 1, 15, 19, 0, tzinfo=timezone.utc)
    for i in range(5):
        matches.create(
            conn, gameweek=1, home_team=f"Club {2 * i}", away_team=f"Club {2 * i + 1}",
            match_date=kickoff + timedelta(hours=3 * i), status="completed",
            home_score=rng.randint(0, 4), away_score=rng.randint(0, 4),
        )

    for manager in managers:
        _, team = league_svc.register_user(conn, manager, password_hash="")
        entries: list[RosterEntry] = []
        for position, n_start, n_bench in _SQUAD_SHAPE:
            for k in range(n_start + n_bench):
                p = players.create(conn, f"{manager}-{position.value}-{k}", position.value)
                played = rng.random() > 0.15
                scores.upsert(
                    conn, p.id, 1,
                    minutes_played=rng.randint(1, 90) if played else 0,
                    total_points=rng.randint(1, 12) if played else 0,
                )
                entries.append(RosterEntry(fantasy_team_id=team.id, player_id=p.id, is_starter=k < n_start))
        starters = [e for e in entries if e.is_starter]
        starters[-1].is_captain = True
        starters[-2].is_vice_captain = True
        league_svc.set_roster(conn, team.id, entries)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed one gameweek and finalize it.")
    parser.add_argument("--seed", type=int, default=7, help="RNG seed for reproducibility")
    parser.add_argument("--managers", nargs="+", default=["alice", "bob", "carol"])
    args = parser.parse_args()

    setup_logging()
    db_path = PROJECT_ROOT / "data" / "demo_gameweek.db"
    if db_path.exists():
        db_path.unlink()
    set_db_path(db_path)
    init_db(db_path)

    conn = get_connection()
    try:
        _seed(conn, random.Random(args.seed), args.managers)
        gameweeks = GameweekService()
        generated = gameweeks.generate_gameweeks_from_matches(conn)
        print(f"Generated {len(generated)} gameweek(s): {[gw.status for gw in generated]}")
        # Matches are all completed, so regeneration marks the gameweek finalized; reopen it to score.
        gameweeks.set_gameweek_status(conn, 1, "locked", force=True)
        result = gameweeks.finalize_gameweek(conn, 1)

        league = LeagueService().setup_general_league(conn)
        print(f"\n{league.name} after gameweek {result.gameweek}")
        print("-" * 48)
        for row in LeagueService().standings(conn, league.id):
            print(f"  {row['rank']:>2}. {row['team_name']:<24} {row['total_points']:>4} pts")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
