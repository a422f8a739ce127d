"""
League and team provisioning: General League, default team on signup, roster rules,
transfer banking between gameweeks, standings.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Any

from gameweek_backend.config import Config, get_config
from gameweek_backend.models import FantasyTeam, League, RosterEntry, User
from gameweek_backend.persistence.db import transaction
from gameweek_backend.persistence.repositories import (
    FantasyTeamRepository,
    GameweekPointsRepository,
    LeagueRepository,
    PlayerRepository,
    RosterRepository,
    UserRepository,
)
from gameweek_backend.services.gameweek_service import GameweekService

logger = logging.getLogger(__name__)

# ---------- Exceptions ----------


class LeagueFullError(ValueError):
    """League has reached max_participants."""


class RosterValidationError(ValueError):
    """Roster breaks captaincy or membership rules."""


class TeamNotFoundError(ValueError):
    """No fantasy team with the given id."""


# ---------- LeagueService ----------


class LeagueService:
    """
    Domain logic for leagues and fantasy teams.
    Persistence is delegated to repositories.
    """

    def __init__(self, config: Config | None = None) -> None:
        self._config = config or get_config()
        self._league_repo = LeagueRepository()
        self._team_repo = FantasyTeamRepository()
        self._user_repo = UserRepository()
        self._player_repo = PlayerRepository()
        self._roster_repo = RosterRepository()
        self._points_repo = GameweekPointsRepository()
        self._gameweeks = GameweekService(self._config)

    # ---------- General League & default team ----------

    def setup_general_league(self, conn: sqlite3.Connection, commit: bool = True) -> League:
        """Create the General League if it does not exist; return it."""
        league = self._league_repo.get_by_name(conn, self._config.general_league_name)
        if league is not None:
            return league
        league = self._league_repo.create(
            conn,
            self._config.general_league_name,
            max_participants=self._config.general_league_max_participants,
            commit=commit,
        )
        logger.info("Created %s (%s)", league.name, league.id)
        return league

    def create_default_fantasy_team(
        self, conn: sqlite3.Connection, user_id: str, commit: bool = True
    ) -> FantasyTeam:
        """
        Give a new user a team in the General League: "<username>'s Team", zero points,
        rank 1, default budget and transfers. Raises LeagueFullError when the league is capped.
        """
        league = self.setup_general_league(conn, commit=commit)
        if league.is_full:
            raise LeagueFullError(
                f"{league.name} is full ({league.current_participants}/{league.max_participants})"
            )
        user = self._user_repo.get(conn, user_id)
        username = user.username if user else "Team"
        team = self._team_repo.create(
            conn,
            user_id=user_id,
            team_name=f"{username}'s Team",
            league_id=league.id,
            budget_remaining=self._config.default_team_budget,
            transfers_remaining=self._config.default_transfers,
            rank=1,
            commit=False,
        )
        self._league_repo.increment_participants(conn, league.id, commit=commit)
        return team

    def register_user(
        self,
        conn: sqlite3.Connection,
        username: str,
        password_hash: str,
        is_admin: bool = False,
    ) -> tuple[User, FantasyTeam]:
        """Create a user and their default team atomically."""
        with transaction(conn):
            user = self._user_repo.create_with_password(
                conn, username, password_hash, name=username, is_admin=is_admin, commit=False
            )
            team = self.create_default_fantasy_team(conn, user.id, commit=False)
        logger.info("Registered user %s with team %s", user.username, team.id)
        return user, team

    # ---------- Rosters ----------

    def set_roster(
        self, conn: sqlite3.Connection, fantasy_team_id: str, entries: list[RosterEntry]
    ) -> list[RosterEntry]:
        """
        Replace a team's roster.
        At most one captain and one vice-captain; they must be different players.
        Every player must exist and appear once.
        """
        if self._team_repo.get(conn, fantasy_team_id) is None:
            raise TeamNotFoundError(f"Fantasy team not found: {fantasy_team_id}")
        player_ids = [e.player_id for e in entries]
        if len(set(player_ids)) != len(player_ids):
            raise RosterValidationError("A player can appear on the roster only once")
        captains = [e for e in entries if e.is_captain]
        vices = [e for e in entries if e.is_vice_captain]
        if len(captains) > 1:
            raise RosterValidationError("At most one captain allowed")
        if len(vices) > 1:
            raise RosterValidationError("At most one vice-captain allowed")
        if captains and vices and captains[0].player_id == vices[0].player_id:
            raise RosterValidationError("Captain and vice-captain must be different players")
        missing = set(player_ids) - self._player_repo.existing_ids(conn, player_ids)
        if missing:
            raise RosterValidationError(f"Unknown players: {sorted(missing)}")

        normalized = [
            RosterEntry(
                fantasy_team_id=fantasy_team_id,
                player_id=e.player_id,
                is_starter=e.is_starter,
                is_captain=e.is_captain,
                is_vice_captain=e.is_vice_captain,
                slot=e.slot if e.slot is not None else i,
            )
            for i, e in enumerate(entries, start=1)
        ]
        with transaction(conn):
            self._roster_repo.replace(conn, fantasy_team_id, normalized, commit=False)
        return self._roster_repo.list_by_team(conn, fantasy_team_id)

    # ---------- Transfers ----------

    def reset_transfers_for_gameweek(self, conn: sqlite3.Connection) -> int:
        """
        Roll every team behind the current gameweek forward by one: bank one unused
        free transfer (never more than one banked) and clear transfers made.
        Returns the number of teams updated; 0 when no gameweek is current.
        """
        current = self._gameweeks.current_gameweek(conn)
        if current is None:
            return 0
        updated = self._team_repo.reset_transfers_behind(conn, current.gameweek_number)
        logger.info("Reset transfers for %d teams (gameweek %d)", updated, current.gameweek_number)
        return updated

    # ---------- Standings ----------

    def standings(self, conn: sqlite3.Connection, league_id: str) -> list[dict[str, Any]]:
        """Teams ordered by stored cumulative rank (unranked last), with per-gameweek history."""
        if self._league_repo.get(conn, league_id) is None:
            raise ValueError(f"League not found: {league_id}")
        teams = self._team_repo.list_by_league(conn, league_id)
        teams.sort(key=lambda t: (t.rank is None, t.rank or 0, -t.total_points, t.id))
        return [
            {
                "team_id": t.id,
                "team_name": t.team_name,
                "rank": t.rank,
                "total_points": t.total_points,
                "gameweek_points": t.gameweek_points,
                "history": [p.to_dict() for p in self._points_repo.list_by_team(conn, t.id)],
            }
            for t in teams
        ]
