"""
Data models for the gameweek backend.
Domain objects only; no persistence or API logic.

Users own fantasy teams; fantasy teams play in leagues; gameweeks are scoring
periods whose player scores come from real-world match data.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- Gameweek status (state machine) ----------
class GameweekStatus(str, Enum):
    """Gameweek lifecycle: upcoming → active → locked → finalized."""
    UPCOMING = "upcoming"    # Before first kickoff, transfers open until deadline
    ACTIVE = "active"        # Matches in progress
    LOCKED = "locked"        # Matches over, awaiting finalization
    FINALIZED = "finalized"  # Points computed; terminal

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]


# ---------- Real match status ----------
class RealMatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"


# ---------- Player position ----------
class Position(str, Enum):
    GK = "GK"
    DEF = "DEF"
    MID = "MID"
    FWD = "FWD"


# ---------- User ----------
@dataclass
class User:
    """An app user. is_admin gates the gameweek administration endpoints."""
    id: str
    username: str
    name: str
    created_at: datetime
    password_hash: str | None = None
    is_admin: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "is_admin": self.is_admin,
            "created_at": self.created_at.isoformat(),
        }


# ---------- League ----------
@dataclass
class League:
    """Groups fantasy teams; caps participant count."""
    id: str
    name: str
    max_participants: int
    current_participants: int
    status: str
    created_at: datetime

    @property
    def is_full(self) -> bool:
        return self.current_participants >= self.max_participants

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "max_participants": self.max_participants,
            "current_participants": self.current_participants,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


# ---------- FantasyTeam ----------
@dataclass
class FantasyTeam:
    """
    A user's fantasy team within a league.
    total_points is the sum of all finalized gameweek points; gameweek_points is the
    most recently finalized gameweek; rank is the cumulative rank in the league.
    """
    id: str
    user_id: str
    league_id: str | None
    team_name: str
    total_points: int
    gameweek_points: int
    rank: int | None
    created_at: datetime
    budget_remaining: int = 100
    transfers_remaining: int = 2
    transfers_made_this_gw: int = 0
    transfers_banked: int = 0
    current_gameweek: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "league_id": self.league_id,
            "team_name": self.team_name,
            "total_points": self.total_points,
            "gameweek_points": self.gameweek_points,
            "rank": self.rank,
            "budget_remaining": self.budget_remaining,
            "transfers_remaining": self.transfers_remaining,
            "transfers_made_this_gw": self.transfers_made_this_gw,
            "transfers_banked": self.transfers_banked,
            "current_gameweek": self.current_gameweek,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Player ----------
@dataclass
class Player:
    id: str
    name: str
    position: str  # Position value
    team_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "position": self.position, "team_name": self.team_name}


# ---------- RosterEntry ----------
@dataclass
class RosterEntry:
    """
    Links a fantasy team to a player. Starters score; bench players only score as
    auto-substitutes. At most one captain and one vice-captain per team, distinct.
    position is filled in when read joined with players.
    """
    fantasy_team_id: str
    player_id: str
    is_starter: bool
    is_captain: bool = False
    is_vice_captain: bool = False
    slot: int | None = None
    position: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "fantasy_team_id": self.fantasy_team_id,
            "player_id": self.player_id,
            "is_starter": self.is_starter,
            "is_captain": self.is_captain,
            "is_vice_captain": self.is_vice_captain,
        }
        if self.slot is not None:
            d["slot"] = self.slot
        if self.position is not None:
            d["position"] = self.position
        return d


# ---------- RealMatch ----------
@dataclass
class RealMatch:
    """A real-world fixture from the data feed. Read-only for this backend."""
    id: str
    gameweek: int
    home_team: str
    away_team: str
    match_date: datetime | None
    status: str  # RealMatchStatus value
    home_score: int | None = None
    away_score: int | None = None


# ---------- GameweekScore ----------
@dataclass
class GameweekScore:
    """Per player, per gameweek snapshot from the data feed."""
    player_id: str
    gameweek: int
    minutes_played: int
    total_points: int


# ---------- Gameweek ----------
@dataclass
class Gameweek:
    """
    Scoring period. gameweek_number is unique. Status is the canonical lifecycle
    state; current/next are derived from status and time windows.
    """
    id: int
    gameweek_number: int
    name: str
    start_time: datetime
    end_time: datetime
    deadline_time: datetime
    status: str  # GameweekStatus value
    created_at: datetime
    finalized_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameweek_id": self.id,
            "gameweek_number": self.gameweek_number,
            "name": self.name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "deadline_time": self.deadline_time.isoformat(),
            "status": self.status,
            "finalized_at": self.finalized_at.isoformat() if self.finalized_at else None,
            "created_at": self.created_at.isoformat(),
        }


# ---------- FantasyTeamGameweekPoints ----------
@dataclass
class FantasyTeamGameweekPoints:
    """One computed row per (team, gameweek)."""
    fantasy_team_id: str
    gameweek: int
    points: int
    rank_in_league: int | None
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "fantasy_team_id": self.fantasy_team_id,
            "gameweek": self.gameweek,
            "points": self.points,
            "rank_in_league": self.rank_in_league,
        }


# ---------- Scoring breakdown ----------
@dataclass
class StarterScore:
    """How one starter slot was scored (after auto-substitution)."""
    player_id: str
    position: str
    minutes_played: int
    points: int  # points counted for this slot
    substitute_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "position": self.position,
            "minutes_played": self.minutes_played,
            "points": self.points,
            "substitute_id": self.substitute_id,
        }


@dataclass
class TeamScoreBreakdown:
    fantasy_team_id: str
    gameweek: int
    starters: list[StarterScore] = field(default_factory=list)
    captain_id: str | None = None
    vice_captain_id: str | None = None
    bonus_player_id: str | None = None
    captain_bonus: int = 0

    @property
    def starter_points(self) -> int:
        return sum(s.points for s in self.starters)

    @property
    def total(self) -> int:
        return max(self.starter_points + self.captain_bonus, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fantasy_team_id": self.fantasy_team_id,
            "gameweek": self.gameweek,
            "starters": [s.to_dict() for s in self.starters],
            "captain_id": self.captain_id,
            "vice_captain_id": self.vice_captain_id,
            "bonus_player_id": self.bonus_player_id,
            "captain_bonus": self.captain_bonus,
            "starter_points": self.starter_points,
            "total": self.total,
        }


# ---------- Gameweek stats (admin console) ----------
@dataclass
class GameweekStats:
    gameweek: int
    status: str  # GameweekStatus value
    total_matches: int
    completed_matches: int
    total_teams: int
    calculated_teams: int

    @property
    def can_finalize(self) -> bool:
        if self.status not in (GameweekStatus.ACTIVE, GameweekStatus.LOCKED):
            return False
        return self.total_matches > 0 and self.completed_matches == self.total_matches

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameweek": self.gameweek,
            "status": self.status,
            "total_matches": self.total_matches,
            "completed_matches": self.completed_matches,
            "total_teams": self.total_teams,
            "calculated_teams": self.calculated_teams,
            "can_finalize": self.can_finalize,
        }
