"""
SQLite schema for gameweek entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL,
        password_hash TEXT NOT NULL DEFAULT '',
        name TEXT NOT NULL,
        is_admin INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_users_username ON users(username);
    """


def leagues_schema() -> str:
    """Groups fantasy teams. max_participants caps current_participants."""
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        max_participants INTEGER NOT NULL,
        current_participants INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'active',
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_leagues_name ON leagues(name);
    """


def fantasy_teams_schema() -> str:
    """One row per user team. total_points is recomputed from fantasy_team_gameweek_points on finalize."""
    return """
    CREATE TABLE IF NOT EXISTS fantasy_teams (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        league_id TEXT,
        team_name TEXT NOT NULL,
        total_points INTEGER NOT NULL DEFAULT 0,
        gameweek_points INTEGER NOT NULL DEFAULT 0,
        rank INTEGER,
        budget_remaining INTEGER NOT NULL DEFAULT 100,
        transfers_remaining INTEGER NOT NULL DEFAULT 2,
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (league_id) REFERENCES leagues(id)
    );
    CREATE INDEX IF NOT EXISTS ix_fantasy_teams_league ON fantasy_teams(league_id);
    CREATE INDEX IF NOT EXISTS ix_fantasy_teams_user ON fantasy_teams(user_id);
    """
    # Transfer columns added via migration


def players_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        position TEXT NOT NULL CHECK (position IN ('GK', 'DEF', 'MID', 'FWD')),
        team_name TEXT
    );
    CREATE INDEX IF NOT EXISTS ix_players_position ON players(position);
    """


def rosters_schema() -> str:
    """At most one captain and one vice-captain per team (partial unique indexes)."""
    return """
    CREATE TABLE IF NOT EXISTS rosters (
        fantasy_team_id TEXT NOT NULL,
        player_id TEXT NOT NULL,
        is_starter INTEGER NOT NULL DEFAULT 1,
        is_captain INTEGER NOT NULL DEFAULT 0,
        is_vice_captain INTEGER NOT NULL DEFAULT 0,
        slot INTEGER,
        PRIMARY KEY (fantasy_team_id, player_id),
        FOREIGN KEY (fantasy_team_id) REFERENCES fantasy_teams(id) ON DELETE CASCADE,
        FOREIGN KEY (player_id) REFERENCES players(id),
        CHECK (NOT (is_captain = 1 AND is_vice_captain = 1))
    );
    CREATE INDEX IF NOT EXISTS ix_rosters_player ON rosters(player_id);
    CREATE UNIQUE INDEX IF NOT EXISTS ix_rosters_one_captain ON rosters(fantasy_team_id) WHERE is_captain = 1;
    CREATE UNIQUE INDEX IF NOT EXISTS ix_rosters_one_vice ON rosters(fantasy_team_id) WHERE is_vice_captain = 1;
    """


def real_matches_schema() -> str:
    """Real-world fixtures written by the data feed. status: scheduled | live | completed."""
    return """
    CREATE TABLE IF NOT EXISTS real_matches (
        id TEXT PRIMARY KEY,
        gameweek INTEGER NOT NULL,
        home_team TEXT NOT NULL,
        away_team TEXT NOT NULL,
        match_date TEXT,
        status TEXT NOT NULL DEFAULT 'scheduled',
        home_score INTEGER,
        away_score INTEGER
    );
    CREATE INDEX IF NOT EXISTS ix_real_matches_gameweek ON real_matches(gameweek);
    """


def gameweek_scores_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS gameweek_scores (
        player_id TEXT NOT NULL,
        gameweek INTEGER NOT NULL,
        minutes_played INTEGER NOT NULL DEFAULT 0,
        total_points INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (player_id, gameweek),
        FOREIGN KEY (player_id) REFERENCES players(id)
    );
    CREATE INDEX IF NOT EXISTS ix_gameweek_scores_gameweek ON gameweek_scores(gameweek);
    """


def gameweeks_schema() -> str:
    """Scoring periods. status: upcoming | active | locked | finalized. id mirrors gameweek_number."""
    return """
    CREATE TABLE IF NOT EXISTS gameweeks (
        id INTEGER PRIMARY KEY,
        gameweek_number INTEGER NOT NULL UNIQUE,
        name TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        deadline_time TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'upcoming'
            CHECK (status IN ('upcoming', 'active', 'locked', 'finalized')),
        finalized_at TEXT,
        created_at TEXT NOT NULL
    );
    """


def fantasy_team_gameweek_points_schema() -> str:
    """
    Computed result per (team, gameweek). gameweek is a plain number, not a foreign key,
    so regenerating gameweeks keeps the points history.
    """
    return """
    CREATE TABLE IF NOT EXISTS fantasy_team_gameweek_points (
        id TEXT PRIMARY KEY,
        fantasy_team_id TEXT NOT NULL,
        gameweek INTEGER NOT NULL,
        points INTEGER NOT NULL DEFAULT 0,
        rank_in_league INTEGER,
        created_at TEXT NOT NULL,
        FOREIGN KEY (fantasy_team_id) REFERENCES fantasy_teams(id) ON DELETE CASCADE,
        UNIQUE (fantasy_team_id, gameweek)
    );
    CREATE INDEX IF NOT EXISTS ix_ftgp_gameweek ON fantasy_team_gameweek_points(gameweek);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Referenced tables come first."""
    return "\n".join([
        users_schema(),
        leagues_schema(),
        fantasy_teams_schema(),
        players_schema(),
        rosters_schema(),
        real_matches_schema(),
        gameweek_scores_schema(),
        gameweeks_schema(),
        fantasy_team_gameweek_points_schema(),
    ])
