"""
Fantasy team scoring for one gameweek: starter points, auto-substitution, captain bonus.
Pure computation in score_roster(); ScoringService only loads inputs. No persistence writes.
"""
from __future__ import annotations

import logging
import sqlite3

from gameweek_backend.models import GameweekScore, RosterEntry, StarterScore, TeamScoreBreakdown
from gameweek_backend.persistence.repositories import GameweekScoreRepository, RosterRepository

logger = logging.getLogger(__name__)

_NO_SCORE = GameweekScore(player_id="", gameweek=0, minutes_played=0, total_points=0)


def pick_substitute(
    position: str,
    bench: list[RosterEntry],
    scores: dict[str, GameweekScore],
    used: set[str],
) -> str | None:
    """
    Best available bench player for a starter who did not play:
    same position, minutes > 0, not already used, highest points.
    Ties go to the lowest player id.
    """
    candidates: list[tuple[int, str]] = []
    for entry in bench:
        if entry.position != position or entry.player_id in used:
            continue
        score = scores.get(entry.player_id)
        if score is None or score.minutes_played <= 0:
            continue
        candidates.append((score.total_points, entry.player_id))
    if not candidates:
        return None
    # Highest points first, then lowest id
    candidates.sort(key=lambda c: (-c[0], c[1]))
    return candidates[0][1]


def score_roster(
    fantasy_team_id: str,
    gameweek: int,
    roster: list[RosterEntry],
    scores: dict[str, GameweekScore],
) -> TeamScoreBreakdown:
    """
    Score a roster for a gameweek.

    Starters are visited in roster order. A starter with zero minutes is replaced by
    pick_substitute(); each bench player can come on once. Missing score rows count as
    zero points and zero minutes. Captain bonus: the captain's slot points are added
    again if positive, else the vice-captain's if positive, else nothing.
    """
    starters = [e for e in roster if e.is_starter]
    bench = [e for e in roster if not e.is_starter]
    captain_id = next((e.player_id for e in roster if e.is_captain), None)
    vice_captain_id = next((e.player_id for e in roster if e.is_vice_captain), None)

    breakdown = TeamScoreBreakdown(
        fantasy_team_id=fantasy_team_id,
        gameweek=gameweek,
        captain_id=captain_id,
        vice_captain_id=vice_captain_id,
    )
    used_subs: set[str] = set()
    captain_points = 0
    vice_captain_points = 0

    for starter in starters:
        score = scores.get(starter.player_id, _NO_SCORE)
        points = score.total_points
        substitute_id = None
        if score.minutes_played == 0:
            substitute_id = pick_substitute(starter.position or "", bench, scores, used_subs)
            if substitute_id is not None:
                used_subs.add(substitute_id)
                points = scores[substitute_id].total_points
        breakdown.starters.append(StarterScore(
            player_id=starter.player_id,
            position=starter.position or "",
            minutes_played=score.minutes_played,
            points=points,
            substitute_id=substitute_id,
        ))
        if starter.player_id == captain_id:
            captain_points = points
        elif starter.player_id == vice_captain_id:
            vice_captain_points = points

    if captain_points > 0:
        breakdown.captain_bonus = captain_points
        breakdown.bonus_player_id = captain_id
    elif vice_captain_points > 0:
        breakdown.captain_bonus = vice_captain_points
        breakdown.bonus_player_id = vice_captain_id

    return breakdown


class ScoringService:
    """Loads a team's roster and gameweek scores and runs score_roster()."""

    def __init__(self) -> None:
        self._roster_repo = RosterRepository()
        self._score_repo = GameweekScoreRepository()

    def score_team(self, conn: sqlite3.Connection, fantasy_team_id: str, gameweek: int) -> TeamScoreBreakdown:
        roster = self._roster_repo.list_by_team(conn, fantasy_team_id)
        scores = self._score_repo.get_many(conn, [e.player_id for e in roster], gameweek)
        breakdown = score_roster(fantasy_team_id, gameweek, roster, scores)
        logger.debug(
            "Scored team %s for gameweek %d: %d (bonus %d)",
            fantasy_team_id, gameweek, breakdown.total, breakdown.captain_bonus,
        )
        return breakdown

    def calculate_team_points(self, conn: sqlite3.Connection, fantasy_team_id: str, gameweek: int) -> int:
        """Non-negative point total for a team in a gameweek."""
        return self.score_team(conn, fantasy_team_id, gameweek).total
