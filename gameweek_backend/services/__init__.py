"""
Service layer: scoring, gameweek state machine, finalization, league provisioning.
Scoring does no persistence writes; gameweek_service and league_service orchestrate persistence.
"""
from .scoring_service import ScoringService, score_roster
from .gameweek_service import (
    GameweekService,
    GameweekNotFoundError,
    InvalidGameweekStatusError,
    GameweekTransitionError,
)
from .league_service import (
    LeagueService,
    LeagueFullError,
    RosterValidationError,
    TeamNotFoundError,
)

__all__ = [
    "ScoringService",
    "score_roster",
    "GameweekService",
    "GameweekNotFoundError",
    "InvalidGameweekStatusError",
    "GameweekTransitionError",
    "LeagueService",
    "LeagueFullError",
    "RosterValidationError",
    "TeamNotFoundError",
]
