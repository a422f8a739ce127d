"""
Persistence layer for gameweek data.
Read/write interfaces only; scoring lives in services.
"""
from .db import get_connection, get_db_path, init_db, transaction
from .repositories import (
    UserRepository,
    LeagueRepository,
    FantasyTeamRepository,
    PlayerRepository,
    RosterRepository,
    RealMatchRepository,
    GameweekScoreRepository,
    GameweekRepository,
    GameweekPointsRepository,
)

__all__ = [
    "get_connection",
    "get_db_path",
    "init_db",
    "transaction",
    "UserRepository",
    "LeagueRepository",
    "FantasyTeamRepository",
    "PlayerRepository",
    "RosterRepository",
    "RealMatchRepository",
    "GameweekScoreRepository",
    "GameweekRepository",
    "GameweekPointsRepository",
]
