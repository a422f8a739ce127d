"""
Repository interfaces for gameweek data.
No business logic, only read/write operations.

Write methods commit by default; pass commit=False when the caller owns the
transaction (see persistence.db.transaction).
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Iterable

from gameweek_backend.models import (
    FantasyTeam,
    FantasyTeamGameweekPoints,
    Gameweek,
    GameweekScore,
    League,
    Player,
    RealMatch,
    RosterEntry,
    User,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_optional_datetime(s: str | None) -> datetime | None:
    return _parse_datetime(s) if s else None


def _maybe_commit(conn: sqlite3.Connection, commit: bool) -> None:
    if commit:
        conn.commit()


# ---------- UserRepository ----------


class UserRepository:
    """CRUD for users. Passwords are stored hashed."""

    def create_with_password(
        self,
        conn: sqlite3.Connection,
        username: str,
        password_hash: str,
        name: str | None = None,
        is_admin: bool = False,
        id: str | None = None,
        commit: bool = True,
    ) -> User:
        uid = id or str(uuid.uuid4())
        now = _now_iso()
        display_name = name or username
        conn.execute(
            "INSERT INTO users (id, username, password_hash, name, is_admin, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (uid, username, password_hash, display_name, int(is_admin), now),
        )
        _maybe_commit(conn, commit)
        return User(
            id=uid, username=username, name=display_name, created_at=_parse_datetime(now),
            password_hash=password_hash, is_admin=is_admin,
        )

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute(
            "SELECT id, username, password_hash, name, is_admin, created_at FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
        return self._from_row(row) if row else None

    def get_by_username(self, conn: sqlite3.Connection, username: str) -> User | None:
        row = conn.execute(
            "SELECT id, username, password_hash, name, is_admin, created_at FROM users WHERE username = ?",
            (username,),
        ).fetchone()
        return self._from_row(row) if row else None

    def set_admin(self, conn: sqlite3.Connection, user_id: str, is_admin: bool) -> None:
        conn.execute("UPDATE users SET is_admin = ? WHERE id = ?", (int(is_admin), user_id))
        conn.commit()

    @staticmethod
    def _from_row(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            name=row["name"],
            created_at=_parse_datetime(row["created_at"]),
            password_hash=row["password_hash"],
            is_admin=bool(row["is_admin"]),
        )


# ---------- LeagueRepository ----------


class LeagueRepository:
    """CRUD for leagues. No business logic."""

    _COLS = "id, name, max_participants, current_participants, status, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        max_participants: int,
        status: str = "active",
        id: str | None = None,
        commit: bool = True,
    ) -> League:
        lid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO leagues (id, name, max_participants, current_participants, status, created_at) VALUES (?, ?, ?, 0, ?, ?)",
            (lid, name, max_participants, status, now),
        )
        _maybe_commit(conn, commit)
        return League(
            id=lid, name=name, max_participants=max_participants, current_participants=0,
            status=status, created_at=_parse_datetime(now),
        )

    def get(self, conn: sqlite3.Connection, league_id: str) -> League | None:
        row = conn.execute(f"SELECT {self._COLS} FROM leagues WHERE id = ?", (league_id,)).fetchone()
        return self._from_row(row) if row else None

    def get_by_name(self, conn: sqlite3.Connection, name: str) -> League | None:
        row = conn.execute(f"SELECT {self._COLS} FROM leagues WHERE name = ?", (name,)).fetchone()
        return self._from_row(row) if row else None

    def list_all(self, conn: sqlite3.Connection) -> list[League]:
        rows = conn.execute(f"SELECT {self._COLS} FROM leagues ORDER BY created_at, id").fetchall()
        return [self._from_row(r) for r in rows]

    def increment_participants(self, conn: sqlite3.Connection, league_id: str, commit: bool = True) -> None:
        conn.execute(
            "UPDATE leagues SET current_participants = current_participants + 1 WHERE id = ?",
            (league_id,),
        )
        _maybe_commit(conn, commit)

    @staticmethod
    def _from_row(row: sqlite3.Row) -> League:
        return League(
            id=row["id"],
            name=row["name"],
            max_participants=row["max_participants"],
            current_participants=row["current_participants"],
            status=row["status"],
            created_at=_parse_datetime(row["created_at"]),
        )


# ---------- FantasyTeamRepository ----------


class FantasyTeamRepository:
    """CRUD for fantasy_teams. Totals and ranks are written by the gameweek finalizer."""

    _COLS = (
        "id, user_id, league_id, team_name, total_points, gameweek_points, rank, budget_remaining, "
        "transfers_remaining, transfers_made_this_gw, transfers_banked, current_gameweek, created_at"
    )

    def create(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        team_name: str,
        league_id: str | None = None,
        budget_remaining: int = 100,
        transfers_remaining: int = 2,
        rank: int | None = 1,
        id: str | None = None,
        commit: bool = True,
    ) -> FantasyTeam:
        tid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO fantasy_teams (id, user_id, league_id, team_name, total_points, gameweek_points, rank, "
            "budget_remaining, transfers_remaining, created_at) VALUES (?, ?, ?, ?, 0, 0, ?, ?, ?, ?)",
            (tid, user_id, league_id, team_name, rank, budget_remaining, transfers_remaining, now),
        )
        _maybe_commit(conn, commit)
        return FantasyTeam(
            id=tid, user_id=user_id, league_id=league_id, team_name=team_name,
            total_points=0, gameweek_points=0, rank=rank, created_at=_parse_datetime(now),
            budget_remaining=budget_remaining, transfers_remaining=transfers_remaining,
        )

    def get(self, conn: sqlite3.Connection, team_id: str) -> FantasyTeam | None:
        row = conn.execute(f"SELECT {self._COLS} FROM fantasy_teams WHERE id = ?", (team_id,)).fetchone()
        return self._from_row(row) if row else None

    def list_by_user(self, conn: sqlite3.Connection, user_id: str) -> list[FantasyTeam]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM fantasy_teams WHERE user_id = ? ORDER BY created_at, id",
            (user_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[FantasyTeam]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM fantasy_teams WHERE league_id = ? ORDER BY id",
            (league_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_in_leagues(self, conn: sqlite3.Connection) -> list[FantasyTeam]:
        """All teams that belong to some league, ordered by id."""
        rows = conn.execute(
            f"SELECT {self._COLS} FROM fantasy_teams WHERE league_id IS NOT NULL ORDER BY id"
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_league_ids(self, conn: sqlite3.Connection) -> list[str]:
        rows = conn.execute(
            "SELECT DISTINCT league_id FROM fantasy_teams WHERE league_id IS NOT NULL ORDER BY league_id"
        ).fetchall()
        return [r["league_id"] for r in rows]

    def count_in_leagues(self, conn: sqlite3.Connection) -> int:
        row = conn.execute("SELECT COUNT(*) AS n FROM fantasy_teams WHERE league_id IS NOT NULL").fetchone()
        return int(row["n"])

    def update_points(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        total_points: int,
        gameweek_points: int,
        commit: bool = True,
    ) -> None:
        conn.execute(
            "UPDATE fantasy_teams SET total_points = ?, gameweek_points = ? WHERE id = ?",
            (total_points, gameweek_points, team_id),
        )
        _maybe_commit(conn, commit)

    def update_rank(self, conn: sqlite3.Connection, team_id: str, rank: int, commit: bool = True) -> None:
        conn.execute("UPDATE fantasy_teams SET rank = ? WHERE id = ?", (rank, team_id))
        _maybe_commit(conn, commit)

    def reset_transfers_behind(
        self, conn: sqlite3.Connection, gameweek_number: int, commit: bool = True
    ) -> int:
        """
        Bank unused transfers (at most 1 banked) and move teams whose current_gameweek
        is behind gameweek_number forward by one. Returns the number of teams updated.
        """
        cur = conn.execute(
            """
            UPDATE fantasy_teams
            SET transfers_banked = MIN(transfers_banked + MAX(1 - transfers_made_this_gw, 0), 1),
                transfers_made_this_gw = 0,
                current_gameweek = current_gameweek + 1
            WHERE current_gameweek < ?
            """,
            (gameweek_number,),
        )
        _maybe_commit(conn, commit)
        return cur.rowcount

    @staticmethod
    def _from_row(row: sqlite3.Row) -> FantasyTeam:
        return FantasyTeam(
            id=row["id"],
            user_id=row["user_id"],
            league_id=row["league_id"],
            team_name=row["team_name"],
            total_points=row["total_points"],
            gameweek_points=row["gameweek_points"],
            rank=row["rank"],
            created_at=_parse_datetime(row["created_at"]),
            budget_remaining=row["budget_remaining"],
            transfers_remaining=row["transfers_remaining"],
            transfers_made_this_gw=row["transfers_made_this_gw"],
            transfers_banked=row["transfers_banked"],
            current_gameweek=row["current_gameweek"],
        )


# ---------- PlayerRepository ----------


class PlayerRepository:
    """Players come from the data feed; create exists for seeding and tests."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        position: str,
        team_name: str | None = None,
        id: str | None = None,
        commit: bool = True,
    ) -> Player:
        pid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO players (id, name, position, team_name) VALUES (?, ?, ?, ?)",
            (pid, name, position, team_name),
        )
        _maybe_commit(conn, commit)
        return Player(id=pid, name=name, position=position, team_name=team_name)

    def get(self, conn: sqlite3.Connection, player_id: str) -> Player | None:
        row = conn.execute(
            "SELECT id, name, position, team_name FROM players WHERE id = ?", (player_id,)
        ).fetchone()
        if row is None:
            return None
        return Player(id=row["id"], name=row["name"], position=row["position"], team_name=row["team_name"])

    def existing_ids(self, conn: sqlite3.Connection, player_ids: Iterable[str]) -> set[str]:
        ids = list(player_ids)
        if not ids:
            return set()
        placeholders = ", ".join("?" for _ in ids)
        rows = conn.execute(f"SELECT id FROM players WHERE id IN ({placeholders})", ids).fetchall()
        return {r["id"] for r in rows}


# ---------- RosterRepository ----------


class RosterRepository:
    """Roster entries (team ↔ player) with starter/bench and captaincy flags."""

    def replace(
        self,
        conn: sqlite3.Connection,
        fantasy_team_id: str,
        entries: list[RosterEntry],
        commit: bool = True,
    ) -> None:
        """Replace a team's roster. Validation happens in the service layer."""
        conn.execute("DELETE FROM rosters WHERE fantasy_team_id = ?", (fantasy_team_id,))
        conn.executemany(
            "INSERT INTO rosters (fantasy_team_id, player_id, is_starter, is_captain, is_vice_captain, slot) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            [
                (fantasy_team_id, e.player_id, int(e.is_starter), int(e.is_captain), int(e.is_vice_captain), e.slot)
                for e in entries
            ],
        )
        _maybe_commit(conn, commit)

    def list_by_team(self, conn: sqlite3.Connection, fantasy_team_id: str) -> list[RosterEntry]:
        """Roster joined with player position; ordered by slot (unslotted last), then player id."""
        rows = conn.execute(
            """
            SELECT r.fantasy_team_id, r.player_id, r.is_starter, r.is_captain, r.is_vice_captain, r.slot,
                   p.position
            FROM rosters r
            JOIN players p ON p.id = r.player_id
            WHERE r.fantasy_team_id = ?
            ORDER BY r.slot IS NULL, r.slot, r.player_id
            """,
            (fantasy_team_id,),
        ).fetchall()
        return [
            RosterEntry(
                fantasy_team_id=r["fantasy_team_id"],
                player_id=r["player_id"],
                is_starter=bool(r["is_starter"]),
                is_captain=bool(r["is_captain"]),
                is_vice_captain=bool(r["is_vice_captain"]),
                slot=r["slot"],
                position=r["position"],
            )
            for r in rows
        ]


# ---------- RealMatchRepository ----------


class RealMatchRepository:
    """Real-world fixtures. Written by the data feed; create exists for seeding and tests."""

    _COLS = "id, gameweek, home_team, away_team, match_date, status, home_score, away_score"

    def create(
        self,
        conn: sqlite3.Connection,
        gameweek: int,
        home_team: str,
        away_team: str,
        match_date: datetime | None,
        status: str = "scheduled",
        home_score: int | None = None,
        away_score: int | None = None,
        id: str | None = None,
        commit: bool = True,
    ) -> RealMatch:
        mid = id or str(uuid.uuid4())
        conn.execute(
            f"INSERT INTO real_matches ({self._COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                mid, gameweek, home_team, away_team,
                match_date.isoformat() if match_date else None,
                status, home_score, away_score,
            ),
        )
        _maybe_commit(conn, commit)
        return RealMatch(
            id=mid, gameweek=gameweek, home_team=home_team, away_team=away_team,
            match_date=match_date, status=status, home_score=home_score, away_score=away_score,
        )

    def update_status(self, conn: sqlite3.Connection, match_id: str, status: str) -> None:
        conn.execute("UPDATE real_matches SET status = ? WHERE id = ?", (status, match_id))
        conn.commit()

    def list_by_gameweek(self, conn: sqlite3.Connection, gameweek: int) -> list[RealMatch]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM real_matches WHERE gameweek = ? ORDER BY match_date, id",
            (gameweek,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_dated(self, conn: sqlite3.Connection) -> list[RealMatch]:
        """All matches with a match date, ordered by gameweek then date."""
        rows = conn.execute(
            f"SELECT {self._COLS} FROM real_matches WHERE match_date IS NOT NULL ORDER BY gameweek, match_date, id"
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def count_by_gameweek(self, conn: sqlite3.Connection, gameweek: int) -> tuple[int, int]:
        """(total, completed) match counts for a gameweek."""
        row = conn.execute(
            "SELECT COUNT(*) AS total, "
            "COALESCE(SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END), 0) AS completed "
            "FROM real_matches WHERE gameweek = ?",
            (gameweek,),
        ).fetchone()
        return int(row["total"]), int(row["completed"])

    @staticmethod
    def _from_row(row: sqlite3.Row) -> RealMatch:
        return RealMatch(
            id=row["id"],
            gameweek=row["gameweek"],
            home_team=row["home_team"],
            away_team=row["away_team"],
            match_date=_parse_optional_datetime(row["match_date"]),
            status=row["status"],
            home_score=row["home_score"],
            away_score=row["away_score"],
        )


# ---------- GameweekScoreRepository ----------


class GameweekScoreRepository:
    """Per-player gameweek snapshots. Read-only for scoring; upsert exists for the feed and tests."""

    def upsert(
        self,
        conn: sqlite3.Connection,
        player_id: str,
        gameweek: int,
        minutes_played: int,
        total_points: int,
        commit: bool = True,
    ) -> GameweekScore:
        conn.execute(
            """
            INSERT INTO gameweek_scores (player_id, gameweek, minutes_played, total_points)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (player_id, gameweek)
            DO UPDATE SET minutes_played = excluded.minutes_played, total_points = excluded.total_points
            """,
            (player_id, gameweek, minutes_played, total_points),
        )
        _maybe_commit(conn, commit)
        return GameweekScore(
            player_id=player_id, gameweek=gameweek, minutes_played=minutes_played, total_points=total_points,
        )

    def get(self, conn: sqlite3.Connection, player_id: str, gameweek: int) -> GameweekScore | None:
        row = conn.execute(
            "SELECT player_id, gameweek, minutes_played, total_points FROM gameweek_scores "
            "WHERE player_id = ? AND gameweek = ?",
            (player_id, gameweek),
        ).fetchone()
        if row is None:
            return None
        return GameweekScore(
            player_id=row["player_id"],
            gameweek=row["gameweek"],
            minutes_played=row["minutes_played"] or 0,
            total_points=row["total_points"] or 0,
        )

    def get_many(
        self, conn: sqlite3.Connection, player_ids: Iterable[str], gameweek: int
    ) -> dict[str, GameweekScore]:
        ids = list(player_ids)
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = conn.execute(
            f"SELECT player_id, gameweek, minutes_played, total_points FROM gameweek_scores "
            f"WHERE gameweek = ? AND player_id IN ({placeholders})",
            [gameweek, *ids],
        ).fetchall()
        return {
            r["player_id"]: GameweekScore(
                player_id=r["player_id"],
                gameweek=r["gameweek"],
                minutes_played=r["minutes_played"] or 0,
                total_points=r["total_points"] or 0,
            )
            for r in rows
        }


# ---------- GameweekRepository ----------


class GameweekRepository:
    """CRUD for gameweeks. No business logic."""

    _COLS = "id, gameweek_number, name, start_time, end_time, deadline_time, status, finalized_at, created_at"

    def create(
        self,
        conn: sqlite3.Connection,
        gameweek_number: int,
        start_time: datetime,
        end_time: datetime,
        deadline_time: datetime,
        status: str = "upcoming",
        name: str | None = None,
        commit: bool = True,
    ) -> Gameweek:
        now = _now_iso()
        gw_name = name or f"Gameweek {gameweek_number}"
        conn.execute(
            f"INSERT INTO gameweeks ({self._COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, NULL, ?)",
            (
                gameweek_number, gameweek_number, gw_name,
                start_time.isoformat(), end_time.isoformat(), deadline_time.isoformat(),
                status, now,
            ),
        )
        _maybe_commit(conn, commit)
        return Gameweek(
            id=gameweek_number, gameweek_number=gameweek_number, name=gw_name,
            start_time=start_time, end_time=end_time, deadline_time=deadline_time,
            status=status, created_at=_parse_datetime(now),
        )

    def get_by_number(self, conn: sqlite3.Connection, gameweek_number: int) -> Gameweek | None:
        row = conn.execute(
            f"SELECT {self._COLS} FROM gameweeks WHERE gameweek_number = ?", (gameweek_number,)
        ).fetchone()
        return self._from_row(row) if row else None

    def list_all(self, conn: sqlite3.Connection) -> list[Gameweek]:
        rows = conn.execute(f"SELECT {self._COLS} FROM gameweeks ORDER BY gameweek_number").fetchall()
        return [self._from_row(r) for r in rows]

    def list_by_status(self, conn: sqlite3.Connection, statuses: Iterable[str]) -> list[Gameweek]:
        wanted = list(statuses)
        placeholders = ", ".join("?" for _ in wanted)
        rows = conn.execute(
            f"SELECT {self._COLS} FROM gameweeks WHERE status IN ({placeholders}) ORDER BY gameweek_number",
            wanted,
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def update_status(
        self, conn: sqlite3.Connection, gameweek_number: int, status: str, commit: bool = True
    ) -> bool:
        """Returns False if no such gameweek. Clears finalized_at when leaving finalized."""
        if status == "finalized":
            cur = conn.execute(
                "UPDATE gameweeks SET status = ?, finalized_at = ? WHERE gameweek_number = ?",
                (status, _now_iso(), gameweek_number),
            )
        else:
            cur = conn.execute(
                "UPDATE gameweeks SET status = ?, finalized_at = NULL WHERE gameweek_number = ?",
                (status, gameweek_number),
            )
        _maybe_commit(conn, commit)
        return cur.rowcount > 0

    def delete_all(self, conn: sqlite3.Connection, commit: bool = True) -> int:
        cur = conn.execute("DELETE FROM gameweeks")
        _maybe_commit(conn, commit)
        return cur.rowcount

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Gameweek:
        return Gameweek(
            id=row["id"],
            gameweek_number=row["gameweek_number"],
            name=row["name"],
            start_time=_parse_datetime(row["start_time"]),
            end_time=_parse_datetime(row["end_time"]),
            deadline_time=_parse_datetime(row["deadline_time"]),
            status=row["status"],
            finalized_at=_parse_optional_datetime(row["finalized_at"]),
            created_at=_parse_datetime(row["created_at"]),
        )


# ---------- GameweekPointsRepository ----------


class GameweekPointsRepository:
    """fantasy_team_gameweek_points: one row per (team, gameweek)."""

    def upsert(
        self,
        conn: sqlite3.Connection,
        fantasy_team_id: str,
        gameweek: int,
        points: int,
        commit: bool = True,
    ) -> None:
        conn.execute(
            """
            INSERT INTO fantasy_team_gameweek_points (id, fantasy_team_id, gameweek, points, rank_in_league, created_at)
            VALUES (?, ?, ?, ?, NULL, ?)
            ON CONFLICT (fantasy_team_id, gameweek) DO UPDATE SET points = excluded.points
            """,
            (str(uuid.uuid4()), fantasy_team_id, gameweek, points, _now_iso()),
        )
        _maybe_commit(conn, commit)

    def update_rank(
        self,
        conn: sqlite3.Connection,
        fantasy_team_id: str,
        gameweek: int,
        rank: int,
        commit: bool = True,
    ) -> None:
        conn.execute(
            "UPDATE fantasy_team_gameweek_points SET rank_in_league = ? WHERE fantasy_team_id = ? AND gameweek = ?",
            (rank, fantasy_team_id, gameweek),
        )
        _maybe_commit(conn, commit)

    def get(self, conn: sqlite3.Connection, fantasy_team_id: str, gameweek: int) -> FantasyTeamGameweekPoints | None:
        row = conn.execute(
            "SELECT fantasy_team_id, gameweek, points, rank_in_league, created_at "
            "FROM fantasy_team_gameweek_points WHERE fantasy_team_id = ? AND gameweek = ?",
            (fantasy_team_id, gameweek),
        ).fetchone()
        return self._from_row(row) if row else None

    def list_by_gameweek(self, conn: sqlite3.Connection, gameweek: int) -> list[FantasyTeamGameweekPoints]:
        rows = conn.execute(
            "SELECT fantasy_team_id, gameweek, points, rank_in_league, created_at "
            "FROM fantasy_team_gameweek_points WHERE gameweek = ? ORDER BY rank_in_league, fantasy_team_id",
            (gameweek,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_by_team(self, conn: sqlite3.Connection, fantasy_team_id: str) -> list[FantasyTeamGameweekPoints]:
        rows = conn.execute(
            "SELECT fantasy_team_id, gameweek, points, rank_in_league, created_at "
            "FROM fantasy_team_gameweek_points WHERE fantasy_team_id = ? ORDER BY gameweek",
            (fantasy_team_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def count_by_gameweek(self, conn: sqlite3.Connection, gameweek: int) -> int:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM fantasy_team_gameweek_points WHERE gameweek = ?", (gameweek,)
        ).fetchone()
        return int(row["n"])

    def sum_for_team(self, conn: sqlite3.Connection, fantasy_team_id: str) -> int:
        row = conn.execute(
            "SELECT COALESCE(SUM(points), 0) AS total FROM fantasy_team_gameweek_points WHERE fantasy_team_id = ?",
            (fantasy_team_id,),
        ).fetchone()
        return int(row["total"])

    @staticmethod
    def _from_row(row: sqlite3.Row) -> FantasyTeamGameweekPoints:
        return FantasyTeamGameweekPoints(
            fantasy_team_id=row["fantasy_team_id"],
            gameweek=row["gameweek"],
            points=row["points"],
            rank_in_league=row["rank_in_league"],
            created_at=_parse_datetime(row["created_at"]),
        )
