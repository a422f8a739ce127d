"""
Tests for the gameweek service: status transitions, clock-driven updates, transfer window,
finalization and regeneration from real matches.
"""
from __future__ import annotations

import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from gameweek_backend.config import get_config
from gameweek_backend.models import GameweekStatus, RosterEntry
from gameweek_backend.persistence.db import get_connection, init_db, set_db_path, transaction
from gameweek_backend.persistence.repositories import (
    FantasyTeamRepository,
    GameweekPointsRepository,
    GameweekRepository,
    GameweekScoreRepository,
    PlayerRepository,
    RealMatchRepository,
    RosterRepository,
    UserRepository,
)
from gameweek_backend.services.gameweek_service import (
    GameweekNotFoundError,
    GameweekService,
    GameweekTransitionError,
    InvalidGameweekStatusError,
    assign_ranks,
)
from gameweek_backend.services.league_service import LeagueService
from gameweek_backend.services.scoring_service import ScoringService

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "gameweek_test.db"
    set_db_path(path)
    init_db(db_path=path)
    return path


@pytest.fixture
def db_conn(db_path):
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def service():
    return GameweekService()


@pytest.fixture
def league(db_conn):
    return LeagueService().setup_general_league(db_conn)


def add_gameweek(conn, number, status="upcoming", start=None, end=None, deadline=None):
    start = start or NOW + timedelta(days=number)
    end = end or start + timedelta(hours=6)
    deadline = deadline or start - timedelta(minutes=90)
    return GameweekRepository().create(conn, number, start, end, deadline, status=status)


def add_team(conn, league_id, team_id, gw_points, gameweek=1):
    """A team in league_id whose single starter scores gw_points in gameweek."""
    user = UserRepository().create_with_password(conn, f"user-{team_id}", "")
    team = FantasyTeamRepository().create(conn, user.id, f"Team {team_id}", league_id=league_id, id=team_id)
    player = PlayerRepository().create(conn, f"Player {team_id}", "MID", id=f"pl-{team_id}")
    RosterRepository().replace(conn, team.id, [RosterEntry(team.id, player.id, is_starter=True, slot=1)])
    GameweekScoreRepository().upsert(conn, player.id, gameweek, minutes_played=90, total_points=gw_points)
    return team


# ---------- Ranking ----------


class TestAssignRanks:
    def test_descending_points(self):
        assert assign_ranks({"a": 10, "b": 30, "c": 20}) == {"b": 1, "c": 2, "a": 3}

    def test_ties_sequential_by_lowest_team_id(self):
        assert assign_ranks({"t3": 5, "t1": 5, "t2": 9}) == {"t2": 1, "t1": 2, "t3": 3}

    def test_empty(self):
        assert assign_ranks({}) == {}


# ---------- Status transitions ----------


def test_set_status_between_open_states(db_conn, service):
    add_gameweek(db_conn, 1)
    assert service.set_gameweek_status(db_conn, 1, "active").status == GameweekStatus.ACTIVE
    assert service.set_gameweek_status(db_conn, 1, "locked").status == GameweekStatus.LOCKED
    assert service.set_gameweek_status(db_conn, 1, "upcoming").status == GameweekStatus.UPCOMING


def test_set_status_rejects_unknown_value(db_conn, service):
    add_gameweek(db_conn, 1)
    with pytest.raises(InvalidGameweekStatusError):
        service.set_gameweek_status(db_conn, 1, "paused")
    assert service.get_gameweek(db_conn, 1).status == "upcoming"


def test_set_status_unknown_gameweek(db_conn, service):
    with pytest.raises(GameweekNotFoundError):
        service.set_gameweek_status(db_conn, 42, "active")


def test_set_status_cannot_enter_finalized_directly(db_conn, service):
    add_gameweek(db_conn, 1, status="locked")
    with pytest.raises(GameweekTransitionError):
        service.set_gameweek_status(db_conn, 1, "finalized")
    assert service.get_gameweek(db_conn, 1).status == "locked"


def test_finalized_is_terminal_without_force(db_conn, service):
    add_gameweek(db_conn, 1, status="finalized")
    with pytest.raises(GameweekTransitionError):
        service.set_gameweek_status(db_conn, 1, "locked")
    gw = service.set_gameweek_status(db_conn, 1, "locked", force=True)
    assert gw.status == "locked"
    assert gw.finalized_at is None


# ---------- Clock-driven updates ----------


def test_update_gameweek_status_moves_forward_only(db_conn, service):
    add_gameweek(db_conn, 1, status="upcoming", start=NOW - timedelta(hours=1), end=NOW + timedelta(hours=1))
    add_gameweek(db_conn, 2, status="active", start=NOW - timedelta(days=2), end=NOW - timedelta(days=1))
    add_gameweek(db_conn, 3, status="upcoming", start=NOW + timedelta(days=3))
    add_gameweek(db_conn, 4, status="upcoming", start=NOW - timedelta(days=5), end=NOW - timedelta(days=4))
    add_gameweek(db_conn, 5, status="finalized", start=NOW - timedelta(days=9), end=NOW - timedelta(days=8))
    add_gameweek(db_conn, 6, status="locked", start=NOW + timedelta(days=9))

    changed = service.update_gameweek_status(db_conn, now=NOW)

    assert sorted(changed) == [1, 2, 4]
    statuses = {gw.gameweek_number: gw.status for gw in service.list_gameweeks(db_conn)}
    assert statuses == {1: "active", 2: "locked", 3: "upcoming", 4: "locked", 5: "finalized", 6: "locked"}
    assert service.update_gameweek_status(db_conn, now=NOW) == []


# ---------- Current / next and transfer window ----------


def test_transfers_allowed_without_gameweeks(db_conn, service):
    assert service.transfers_allowed(db_conn, now=NOW) is True


def test_transfers_allowed_before_deadline(db_conn, service):
    add_gameweek(db_conn, 1, start=NOW + timedelta(days=1))
    assert service.transfers_allowed(db_conn, now=NOW) is True


def test_transfers_closed_after_deadline(db_conn, service):
    add_gameweek(db_conn, 1, start=NOW + timedelta(minutes=30))
    assert service.transfers_allowed(db_conn, now=NOW) is False


def test_transfers_closed_during_active_gameweek(db_conn, service):
    add_gameweek(db_conn, 1, status="active", start=NOW - timedelta(hours=1), end=NOW + timedelta(hours=2))
    add_gameweek(db_conn, 2, start=NOW + timedelta(days=7))
    assert service.transfers_allowed(db_conn, now=NOW) is False


def test_transfers_open_once_previous_gameweek_finalized(db_conn, service):
    add_gameweek(db_conn, 1, status="locked", start=NOW - timedelta(days=2), end=NOW - timedelta(days=1))
    add_gameweek(db_conn, 2, start=NOW + timedelta(days=5))
    assert service.current_gameweek(db_conn).gameweek_number == 1
    assert service.transfers_allowed(db_conn, now=NOW) is False

    service.finalize_gameweek(db_conn, 1)
    assert service.current_gameweek(db_conn) is None
    assert service.next_gameweek(db_conn, now=NOW).gameweek_number == 2
    assert service.transfers_allowed(db_conn, now=NOW) is True


def test_next_gameweek_prefers_unstarted(db_conn, service):
    add_gameweek(db_conn, 1, start=NOW - timedelta(days=1))
    add_gameweek(db_conn, 2, start=NOW + timedelta(days=6))
    assert service.next_gameweek(db_conn, now=NOW).gameweek_number == 2


def test_status_summary(db_conn, service):
    add_gameweek(db_conn, 1, start=NOW + timedelta(days=1))
    summary = service.status_summary(db_conn, now=NOW)
    assert summary["current"] is None
    assert summary["next"]["gameweek_number"] == 1
    assert summary["transfers_allowed"] is True
    assert summary["time_until_start"] == pytest.approx(86400.0)
    assert summary["time_until_deadline"] == pytest.approx(86400.0 - 90 * 60)
    assert summary["is_gameweek_active"] is False


# ---------- Finalization ----------


def test_finalize_scores_every_league_team(db_conn, service, league):
    add_gameweek(db_conn, 1, status="locked")
    add_team(db_conn, league.id, "team-a", 12)
    add_team(db_conn, league.id, "team-b", 30)
    add_team(db_conn, league.id, "team-c", 7)

    result = service.finalize_gameweek(db_conn, 1)

    assert result.team_points == {"team-a": 12, "team-b": 30, "team-c": 7}
    rows = GameweekPointsRepository().list_by_gameweek(db_conn, 1)
    assert len(rows) == 3
    assert [(r.fantasy_team_id, r.rank_in_league) for r in rows] == [("team-b", 1), ("team-a", 2), ("team-c", 3)]

    team_repo = FantasyTeamRepository()
    b = team_repo.get(db_conn, "team-b")
    assert b.total_points == 30
    assert b.gameweek_points == 30
    assert b.rank == 1
    gw = service.get_gameweek(db_conn, 1)
    assert gw.status == "finalized"
    assert gw.finalized_at is not None


def test_finalize_ties_get_sequential_ranks(db_conn, service, league):
    add_gameweek(db_conn, 1, status="locked")
    add_team(db_conn, league.id, "team-b", 10)
    add_team(db_conn, league.id, "team-a", 10)
    add_team(db_conn, league.id, "team-c", 4)

    service.finalize_gameweek(db_conn, 1)

    ranks = {r.fantasy_team_id: r.rank_in_league for r in GameweekPointsRepository().list_by_gameweek(db_conn, 1)}
    assert ranks == {"team-a": 1, "team-b": 2, "team-c": 3}
    assert sorted(ranks.values()) == [1, 2, 3]


def test_finalize_ignores_teams_outside_leagues(db_conn, service, league):
    add_gameweek(db_conn, 1, status="locked")
    add_team(db_conn, league.id, "team-a", 5)
    add_team(db_conn, None, "loner", 50)

    result = service.finalize_gameweek(db_conn, 1)

    assert set(result.team_points) == {"team-a"}
    assert GameweekPointsRepository().get(db_conn, "loner", 1) is None


def test_finalize_unknown_gameweek_changes_nothing(db_conn, service, league):
    add_team(db_conn, league.id, "team-a", 5)
    with pytest.raises(GameweekNotFoundError):
        service.finalize_gameweek(db_conn, 9)
    assert GameweekPointsRepository().count_by_gameweek(db_conn, 9) == 0
    assert FantasyTeamRepository().get(db_conn, "team-a").total_points == 0


def test_finalize_failure_rolls_back_every_write(db_conn, service, league, monkeypatch):
    add_gameweek(db_conn, 1, status="locked")
    add_team(db_conn, league.id, "team-a", 6)
    add_team(db_conn, league.id, "team-b", 9)
    real_calculate = ScoringService.calculate_team_points
    calls = []

    def flaky_calculate(self, conn, team_id, gameweek):
        calls.append(team_id)
        if len(calls) == 2:
            raise RuntimeError("score feed unavailable")
        return real_calculate(self, conn, team_id, gameweek)

    monkeypatch.setattr(ScoringService, "calculate_team_points", flaky_calculate)

    with pytest.raises(RuntimeError):
        service.finalize_gameweek(db_conn, 1)

    assert calls == ["team-a", "team-b"]
    assert GameweekPointsRepository().count_by_gameweek(db_conn, 1) == 0
    team_repo = FantasyTeamRepository()
    assert [team_repo.get(db_conn, t).total_points for t in ("team-a", "team-b")] == [0, 0]
    assert service.get_gameweek(db_conn, 1).status == "locked"

    monkeypatch.undo()
    assert service.finalize_gameweek(db_conn, 1).team_points == {"team-a": 6, "team-b": 9}


def test_refinalize_is_rejected(db_conn, service, league):
    add_gameweek(db_conn, 1, status="locked")
    add_team(db_conn, league.id, "team-a", 8)
    service.finalize_gameweek(db_conn, 1)

    with pytest.raises(GameweekTransitionError):
        service.finalize_gameweek(db_conn, 1)
    assert FantasyTeamRepository().get(db_conn, "team-a").total_points == 8
    assert GameweekPointsRepository().count_by_gameweek(db_conn, 1) == 1


def test_force_reset_and_refinalize_does_not_double_count(db_conn, service, league):
    add_gameweek(db_conn, 1, status="locked")
    add_team(db_conn, league.id, "team-a", 8)
    service.finalize_gameweek(db_conn, 1)

    # Late score correction
    GameweekScoreRepository().upsert(db_conn, "pl-team-a", 1, minutes_played=90, total_points=11)
    service.set_gameweek_status(db_conn, 1, "locked", force=True)
    service.finalize_gameweek(db_conn, 1)

    team = FantasyTeamRepository().get(db_conn, "team-a")
    assert team.total_points == 11
    assert GameweekPointsRepository().count_by_gameweek(db_conn, 1) == 1


def test_totals_accumulate_across_gameweeks(db_conn, service, league):
    add_gameweek(db_conn, 1, status="locked")
    add_gameweek(db_conn, 2, status="locked")
    add_team(db_conn, league.id, "team-a", 6, gameweek=1)
    add_team(db_conn, league.id, "team-b", 9, gameweek=1)
    GameweekScoreRepository().upsert(db_conn, "pl-team-a", 2, minutes_played=90, total_points=10)
    GameweekScoreRepository().upsert(db_conn, "pl-team-b", 2, minutes_played=90, total_points=1)

    service.finalize_gameweek(db_conn, 1)
    result = service.finalize_gameweek(db_conn, 2)

    team_repo = FantasyTeamRepository()
    a, b = team_repo.get(db_conn, "team-a"), team_repo.get(db_conn, "team-b")
    assert (a.total_points, a.gameweek_points, a.rank) == (16, 10, 1)
    assert (b.total_points, b.gameweek_points, b.rank) == (10, 1, 2)
    assert result.gameweek_ranks == {"team-a": 1, "team-b": 2}


def test_concurrent_finalize_scores_once(db_path, db_conn, service, league):
    add_gameweek(db_conn, 1, status="locked")
    for i in range(5):
        add_team(db_conn, league.id, f"team-{i}", i * 3)

    outcomes: list[str] = []

    def run():
        conn = get_connection(db_path)
        try:
            GameweekService().finalize_gameweek(conn, 1)
            outcomes.append("ok")
        except GameweekTransitionError:
            outcomes.append("rejected")
        finally:
            conn.close()

    threads = [threading.Thread(target=run) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["ok", "rejected"]
    assert GameweekPointsRepository().count_by_gameweek(db_conn, 1) == 5


# ---------- Stats ----------


def test_gameweek_stats(db_conn, service, league):
    add_gameweek(db_conn, 1, status="locked")
    matches = RealMatchRepository()
    matches.create(db_conn, 1, "Reds", "Blues", NOW, status="completed")
    matches.create(db_conn, 1, "Greens", "Whites", NOW, status="live")
    add_team(db_conn, league.id, "team-a", 3)

    stats = service.gameweek_stats(db_conn, 1)
    assert (stats.total_matches, stats.completed_matches) == (2, 1)
    assert (stats.total_teams, stats.calculated_teams) == (1, 0)
    assert stats.can_finalize is False

    with pytest.raises(GameweekNotFoundError):
        service.gameweek_stats(db_conn, 2)


def test_can_finalize_requires_active_or_locked_status(db_conn, service, league):
    add_gameweek(db_conn, 1, status="locked")
    add_gameweek(db_conn, 2, status="upcoming")
    add_gameweek(db_conn, 3, status="active")
    matches = RealMatchRepository()
    for number in (1, 2, 3):
        matches.create(db_conn, number, "Reds", "Blues", NOW, status="completed")
    add_team(db_conn, league.id, "team-a", 3)

    assert service.gameweek_stats(db_conn, 1).can_finalize is True
    assert service.gameweek_stats(db_conn, 2).can_finalize is False
    assert service.gameweek_stats(db_conn, 3).can_finalize is True

    service.finalize_gameweek(db_conn, 1)
    stats = service.gameweek_stats(db_conn, 1)
    assert stats.status == "finalized"
    assert stats.can_finalize is False
    assert stats.to_dict()["can_finalize"] is False


# ---------- Regeneration ----------


def _seed_matches(conn):
    matches = RealMatchRepository()
    kickoff = datetime(2025, 2, 8, 15, 0, tzinfo=timezone.utc)
    matches.create(conn, 1, "Reds", "Blues", kickoff, status="completed")
    matches.create(conn, 1, "Greens", "Whites", kickoff + timedelta(days=1), status="completed")
    matches.create(conn, 2, "Reds", "Greens", kickoff + timedelta(days=7), status="completed")
    matches.create(conn, 2, "Blues", "Whites", kickoff + timedelta(days=8, hours=2), status="scheduled")
    matches.create(conn, 3, "Reds", "Whites", None)
    return kickoff


def test_generate_gameweeks_from_matches(db_conn, service):
    kickoff = _seed_matches(db_conn)

    gameweeks = service.generate_gameweeks_from_matches(db_conn)

    assert [gw.gameweek_number for gw in gameweeks] == [1, 2]
    gw1, gw2 = gameweeks
    assert gw1.id == 1
    assert gw1.start_time == kickoff
    assert gw1.end_time == kickoff + timedelta(days=1)
    offset = timedelta(minutes=get_config().deadline_offset_minutes)
    assert gw1.deadline_time == kickoff - offset
    assert gw1.status == "finalized"
    assert gw2.status == "upcoming"
    assert gw2.end_time == kickoff + timedelta(days=8, hours=2)


def test_generate_is_idempotent_and_replaces_existing(db_conn, service, league):
    _seed_matches(db_conn)
    add_gameweek(db_conn, 7, status="active")
    add_team(db_conn, league.id, "team-a", 4, gameweek=7)
    service.finalize_gameweek(db_conn, 7)

    first = [gw.to_dict() for gw in service.generate_gameweeks_from_matches(db_conn)]
    second = [gw.to_dict() for gw in service.generate_gameweeks_from_matches(db_conn)]

    for row in first + second:
        row.pop("created_at")
    assert first == second
    assert 7 not in [gw["gameweek_number"] for gw in second]
    # Points history survives regeneration
    assert GameweekPointsRepository().get(db_conn, "team-a", 7).points == 4


# ---------- Transactions ----------


def test_transaction_refuses_pending_work(db_conn):
    db_conn.execute("UPDATE leagues SET status = 'closed'")
    assert db_conn.in_transaction
    with pytest.raises(RuntimeError):
        with transaction(db_conn):
            pass
    db_conn.rollback()
    with transaction(db_conn):
        db_conn.execute("UPDATE leagues SET status = 'active'")
    assert not db_conn.in_transaction
