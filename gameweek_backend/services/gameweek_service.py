"""
Gameweek lifecycle: status state machine, clock-driven transitions, transfer window,
finalization (scoring + ranking) and regeneration from real match data.

The status enum is the single source of truth. "Current" and "next" gameweeks are
derived from it and from the stored time windows; they are never stored as flags.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from gameweek_backend.config import Config, get_config
from gameweek_backend.models import Gameweek, GameweekStats, GameweekStatus, RealMatchStatus
from gameweek_backend.persistence.db import transaction
from gameweek_backend.persistence.repositories import (
    FantasyTeamRepository,
    GameweekPointsRepository,
    GameweekRepository,
    RealMatchRepository,
)
from gameweek_backend.services.scoring_service import ScoringService

logger = logging.getLogger(__name__)

# ---------- Exceptions ----------


class GameweekNotFoundError(ValueError):
    """No gameweek with the given number."""


class InvalidGameweekStatusError(ValueError):
    """Status value is not one of upcoming, active, locked, finalized."""


class GameweekTransitionError(ValueError):
    """Status change not allowed (e.g. leaving finalized without force)."""


# ---------- Valid admin transitions ----------

_OPEN_STATES = {GameweekStatus.UPCOMING, GameweekStatus.ACTIVE, GameweekStatus.LOCKED}

_ADMIN_TRANSITIONS: dict[str, set[str]] = {
    GameweekStatus.UPCOMING: _OPEN_STATES,
    GameweekStatus.ACTIVE: _OPEN_STATES,
    GameweekStatus.LOCKED: _OPEN_STATES,
    GameweekStatus.FINALIZED: set(),  # terminal unless forced
}

# ---------- Finalization locks (one per gameweek number) ----------
# Never pruned; bounded by the number of gameweeks in a season.

_finalize_locks: dict[int, threading.Lock] = {}
_finalize_locks_guard = threading.Lock()


def _finalize_lock(gameweek_number: int) -> threading.Lock:
    with _finalize_locks_guard:
        return _finalize_locks.setdefault(gameweek_number, threading.Lock())


def assign_ranks(points_by_team: dict[str, int]) -> dict[str, int]:
    """
    Rank teams by points descending: 1..N with no gaps.
    Equal points get sequential ranks, lower team id first.
    """
    ordered = sorted(points_by_team.items(), key=lambda kv: (-kv[1], kv[0]))
    return {team_id: i for i, (team_id, _) in enumerate(ordered, start=1)}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


@dataclass
class FinalizeResult:
    gameweek: int
    team_points: dict[str, int] = field(default_factory=dict)
    gameweek_ranks: dict[str, int] = field(default_factory=dict)
    overall_ranks: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameweek": self.gameweek,
            "teams_scored": len(self.team_points),
            "team_points": self.team_points,
            "gameweek_ranks": self.gameweek_ranks,
            "overall_ranks": self.overall_ranks,
        }


# ---------- GameweekService ----------


class GameweekService:
    """
    Domain logic for gameweeks: transitions, finalization, regeneration, transfer window.
    Persistence is delegated to repositories.
    """

    def __init__(self, config: Config | None = None) -> None:
        self._config = config or get_config()
        self._gameweek_repo = GameweekRepository()
        self._points_repo = GameweekPointsRepository()
        self._team_repo = FantasyTeamRepository()
        self._match_repo = RealMatchRepository()
        self._scoring = ScoringService()

    # ---------- Reads ----------

    def list_gameweeks(self, conn: sqlite3.Connection) -> list[Gameweek]:
        return self._gameweek_repo.list_all(conn)

    def get_gameweek(self, conn: sqlite3.Connection, gameweek_number: int) -> Gameweek:
        gw = self._gameweek_repo.get_by_number(conn, gameweek_number)
        if gw is None:
            raise GameweekNotFoundError(f"Gameweek {gameweek_number} does not exist")
        return gw

    def gameweek_stats(self, conn: sqlite3.Connection, gameweek_number: int) -> GameweekStats:
        """
        Match completion and team counts. can_finalize is true only for an active or locked
        gameweek whose matches are all completed.
        """
        gw = self.get_gameweek(conn, gameweek_number)
        total, completed = self._match_repo.count_by_gameweek(conn, gameweek_number)
        return GameweekStats(
            gameweek=gameweek_number,
            status=gw.status,
            total_matches=total,
            completed_matches=completed,
            total_teams=self._team_repo.count_in_leagues(conn),
            calculated_teams=self._points_repo.count_by_gameweek(conn, gameweek_number),
        )

    def current_gameweek(self, conn: sqlite3.Connection) -> Gameweek | None:
        """Lowest-numbered gameweek that is active or locked."""
        live = self._gameweek_repo.list_by_status(conn, [GameweekStatus.ACTIVE.value, GameweekStatus.LOCKED.value])
        return live[0] if live else None

    def next_gameweek(self, conn: sqlite3.Connection, now: datetime | None = None) -> Gameweek | None:
        """Lowest-numbered upcoming gameweek that has not started yet (else lowest upcoming)."""
        now = _as_utc(now or _utcnow())
        upcoming = self._gameweek_repo.list_by_status(conn, [GameweekStatus.UPCOMING.value])
        for gw in upcoming:
            if gw.start_time > now:
                return gw
        return upcoming[0] if upcoming else None

    def _relevant_gameweek(self, conn: sqlite3.Connection, now: datetime) -> Gameweek | None:
        candidates = [gw for gw in (self.current_gameweek(conn), self.next_gameweek(conn, now)) if gw]
        if not candidates:
            return None
        return min(candidates, key=lambda gw: gw.gameweek_number)

    # ---------- Transfer window ----------

    def transfers_allowed(self, conn: sqlite3.Connection, now: datetime | None = None) -> bool:
        """
        Transfers are allowed before the relevant gameweek's deadline and outside its
        start/end window. No current or next gameweek means no restriction.
        """
        now = _as_utc(now or _utcnow())
        gw = self._relevant_gameweek(conn, now)
        if gw is None:
            return True
        deadline_passed = now > gw.deadline_time
        in_window = gw.start_time <= now <= gw.end_time
        return not (deadline_passed or in_window)

    def status_summary(self, conn: sqlite3.Connection, now: datetime | None = None) -> dict[str, Any]:
        """Current/next gameweeks, transfer window and countdowns (seconds, None once passed)."""
        now = _as_utc(now or _utcnow())
        current = self.current_gameweek(conn)
        nxt = self.next_gameweek(conn, now)
        relevant = current or nxt

        def _until(t: datetime) -> float | None:
            seconds = (t - now).total_seconds()
            return seconds if seconds > 0 else None

        return {
            "current": current.to_dict() if current else None,
            "next": nxt.to_dict() if nxt else None,
            "transfers_allowed": self.transfers_allowed(conn, now),
            "time_until_deadline": _until(relevant.deadline_time) if relevant else None,
            "time_until_start": _until(relevant.start_time) if relevant else None,
            "time_until_end": _until(relevant.end_time) if relevant else None,
            "is_gameweek_active": bool(relevant and relevant.start_time <= now <= relevant.end_time),
        }

    # ---------- Status transitions ----------

    def set_gameweek_status(
        self,
        conn: sqlite3.Connection,
        gameweek_number: int,
        status: str,
        force: bool = False,
    ) -> Gameweek:
        """
        Administrator-driven status change.
        upcoming/active/locked may be set in any direction. finalized is only entered through
        finalize_gameweek and is terminal; force=True lets an admin reset it.
        """
        if status not in GameweekStatus.values():
            raise InvalidGameweekStatusError(
                f"Invalid status: {status}. Expected one of {GameweekStatus.values()}"
            )
        new_status = GameweekStatus(status)
        gw = self.get_gameweek(conn, gameweek_number)
        current = GameweekStatus(gw.status)
        if new_status == GameweekStatus.FINALIZED:
            raise GameweekTransitionError(
                f"Gameweek {gameweek_number} can only be finalized through finalize_gameweek"
            )
        if new_status not in _ADMIN_TRANSITIONS[current] and not force:
            raise GameweekTransitionError(
                f"Invalid transition: {current.value} -> {new_status.value}. "
                f"Gameweek {gameweek_number} is finalized; pass force to reset it"
            )
        self._gameweek_repo.update_status(conn, gameweek_number, new_status.value)
        logger.info(
            "Gameweek %d status set to %s", gameweek_number, new_status.value,
            extra={"gameweek": gameweek_number, "from_status": current.value, "forced": force},
        )
        return self.get_gameweek(conn, gameweek_number)

    def update_gameweek_status(self, conn: sqlite3.Connection, now: datetime | None = None) -> list[int]:
        """
        Clock-driven forward transitions: upcoming -> active once started, active -> locked
        once ended. Finalized gameweeks are never touched and nothing moves backwards.
        Returns the gameweek numbers that changed.
        """
        now = _as_utc(now or _utcnow())
        changed: list[int] = []
        with transaction(conn):
            for gw in self._gameweek_repo.list_by_status(conn, [GameweekStatus.UPCOMING.value, GameweekStatus.ACTIVE.value]):
                target = gw.status
                if gw.status == GameweekStatus.UPCOMING and now >= gw.start_time:
                    target = GameweekStatus.ACTIVE.value
                if target == GameweekStatus.ACTIVE and now > gw.end_time:
                    target = GameweekStatus.LOCKED.value
                if target != gw.status:
                    self._gameweek_repo.update_status(conn, gw.gameweek_number, target, commit=False)
                    changed.append(gw.gameweek_number)
        if changed:
            logger.info("Clock-driven status update changed gameweeks %s", changed)
        return changed

    # ---------- Finalization ----------

    def finalize_gameweek(self, conn: sqlite3.Connection, gameweek_number: int) -> FinalizeResult:
        """
        Score every team in a league, persist per-gameweek points, recompute cumulative totals
        from the full points history, rank within each league, and mark the gameweek finalized.
        Runs as one transaction; concurrent calls for the same gameweek are serialized.
        """
        result = FinalizeResult(gameweek=gameweek_number)
        with _finalize_lock(gameweek_number):
            with transaction(conn):
                gw = self._gameweek_repo.get_by_number(conn, gameweek_number)
                if gw is None:
                    raise GameweekNotFoundError(f"Gameweek {gameweek_number} does not exist")
                if gw.status == GameweekStatus.FINALIZED:
                    raise GameweekTransitionError(f"Gameweek {gameweek_number} is already finalized")

                teams = self._team_repo.list_in_leagues(conn)
                gw_points_by_league: dict[str, dict[str, int]] = defaultdict(dict)
                totals_by_league: dict[str, dict[str, int]] = defaultdict(dict)

                for team in teams:
                    points = self._scoring.calculate_team_points(conn, team.id, gameweek_number)
                    self._points_repo.upsert(conn, team.id, gameweek_number, points, commit=False)
                    total = self._points_repo.sum_for_team(conn, team.id)
                    self._team_repo.update_points(conn, team.id, total, points, commit=False)
                    result.team_points[team.id] = points
                    gw_points_by_league[team.league_id][team.id] = points
                    totals_by_league[team.league_id][team.id] = total

                for league_id in sorted(gw_points_by_league):
                    gw_ranks = assign_ranks(gw_points_by_league[league_id])
                    for team_id, rank in gw_ranks.items():
                        self._points_repo.update_rank(conn, team_id, gameweek_number, rank, commit=False)
                    overall_ranks = assign_ranks(totals_by_league[league_id])
                    for team_id, rank in overall_ranks.items():
                        self._team_repo.update_rank(conn, team_id, rank, commit=False)
                    result.gameweek_ranks.update(gw_ranks)
                    result.overall_ranks.update(overall_ranks)

                self._gameweek_repo.update_status(
                    conn, gameweek_number, GameweekStatus.FINALIZED.value, commit=False
                )

        logger.info(
            "Gameweek %d finalized successfully", gameweek_number,
            extra={"gameweek": gameweek_number, "teams": len(result.team_points), "leagues": len(gw_points_by_league)},
        )
        return result

    # ---------- Regeneration ----------

    def generate_gameweeks_from_matches(self, conn: sqlite3.Connection) -> list[Gameweek]:
        """
        Destructively rebuild all gameweeks from real matches that have a date.
        Window = earliest..latest match; deadline = start - deadline_offset_minutes.
        Status is finalized when every match is completed, else upcoming.
        """
        by_gameweek: dict[int, list] = defaultdict(list)
        for match in self._match_repo.list_dated(conn):
            by_gameweek[match.gameweek].append(match)

        offset = timedelta(minutes=self._config.deadline_offset_minutes)
        with transaction(conn):
            self._gameweek_repo.delete_all(conn, commit=False)
            for number in sorted(by_gameweek):
                matches = by_gameweek[number]
                dates = [_as_utc(m.match_date) for m in matches]
                start, end = min(dates), max(dates)
                all_done = all(m.status == RealMatchStatus.COMPLETED for m in matches)
                self._gameweek_repo.create(
                    conn,
                    gameweek_number=number,
                    start_time=start,
                    end_time=end,
                    deadline_time=start - offset,
                    status=(GameweekStatus.FINALIZED if all_done else GameweekStatus.UPCOMING).value,
                    commit=False,
                )

        gameweeks = self._gameweek_repo.list_all(conn)
        logger.info("Generated %d gameweeks from real_matches", len(gameweeks))
        return gameweeks
