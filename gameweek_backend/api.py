"""
REST API for the gameweek administration console.
Thin wrappers around the service layer; the /rpc routes mirror the console's remote procedure calls.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncGenerator, Generator, NoReturn

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from gameweek_backend.auth import (
    create_access_token,
    hash_password,
    require_admin,
    require_user,
    verify_password,
)
from gameweek_backend.config import get_config
from gameweek_backend.logging_config import setup_logging
from gameweek_backend.models import GameweekStatus, RosterEntry, User
from gameweek_backend.persistence import (
    get_connection,
    get_db_path,
    init_db,
    FantasyTeamRepository,
    UserRepository,
)
from gameweek_backend.services.gameweek_service import (
    GameweekNotFoundError,
    GameweekService,
    GameweekTransitionError,
    InvalidGameweekStatusError,
)
from gameweek_backend.services.league_service import (
    LeagueFullError,
    LeagueService,
    RosterValidationError,
    TeamNotFoundError,
)
from gameweek_backend.services.scoring_service import ScoringService

logger = logging.getLogger(__name__)

@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging(get_config())
    init_db()
    with db_conn() as conn:
        LeagueService().setup_general_league(conn)
    logger.info("Gameweek API ready (db=%s)", get_db_path())
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Gameweek Admin API",
    description="Gameweek lifecycle, scoring and finalization for the fantasy league",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------- Request models ----------


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    username: str
    password: str


class SetGameweekStatusRequest(BaseModel):
    gameweek: int = Field(..., ge=1)
    status: str = Field(..., description="One of: upcoming, active, locked")
    force: bool = Field(False, description="Allow resetting a finalized gameweek")


class FinalizeGameweekRequest(BaseModel):
    gameweek: int = Field(..., ge=1)


class RosterSlot(BaseModel):
    player_id: str
    is_starter: bool = True
    is_captain: bool = False
    is_vice_captain: bool = False
    slot: int | None = Field(None, ge=1)


class SetRosterRequest(BaseModel):
    roster: list[RosterSlot]


def _raise_http(e: ValueError) -> NoReturn:
    """Map service-layer errors to HTTP errors. State is unchanged when these are raised."""
    if isinstance(e, (GameweekNotFoundError, TeamNotFoundError)):
        raise HTTPException(status_code=404, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


# ---------- Auth endpoints ----------


@app.post("/signup")
def signup(req: SignupRequest) -> dict[str, Any]:
    """Create account and its default team in the General League."""
    with db_conn() as conn:
        if UserRepository().get_by_username(conn, req.username):
            raise HTTPException(status_code=400, detail="Username already taken")
        try:
            user, team = LeagueService().register_user(conn, req.username, hash_password(req.password))
        except LeagueFullError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except sqlite3.IntegrityError:
            # Lost a race with a concurrent signup for the same username
            raise HTTPException(status_code=400, detail="Username already taken")
        token = create_access_token(user.id)
        return {"user_id": user.id, "username": user.username, "token": token, "team": team.to_dict()}


@app.post("/login")
def login(req: LoginRequest) -> dict[str, Any]:
    """Returns JWT token."""
    with db_conn() as conn:
        user = UserRepository().get_by_username(conn, req.username)
        if user is None or not verify_password(req.password, user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid username or password")
        token = create_access_token(user.id)
        return {"user_id": user.id, "username": user.username, "token": token, "is_admin": user.is_admin}


# ---------- Gameweek reads ----------


@app.get("/gameweeks")
def list_gameweeks() -> dict[str, Any]:
    """All gameweeks ordered by number."""
    with db_conn() as conn:
        return {"gameweeks": [gw.to_dict() for gw in GameweekService().list_gameweeks(conn)]}


@app.get("/gameweeks/status")
def gameweek_status() -> dict[str, Any]:
    """Current and next gameweek, transfer window, countdowns."""
    with db_conn() as conn:
        return GameweekService().status_summary(conn)


@app.get("/gameweeks/{gameweek}")
def get_gameweek(gameweek: int) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            return GameweekService().get_gameweek(conn, gameweek).to_dict()
        except ValueError as e:
            _raise_http(e)


@app.get("/gameweeks/{gameweek}/stats")
def get_gameweek_stats(gameweek: int) -> dict[str, Any]:
    """Match completion and team counts for the finalize button."""
    with db_conn() as conn:
        try:
            return GameweekService().gameweek_stats(conn, gameweek).to_dict()
        except ValueError as e:
            _raise_http(e)


# ---------- Remote procedures ----------


@app.post("/rpc/generate_gameweeks_from_matches")
def rpc_generate_gameweeks(_: User = Depends(require_admin)) -> dict[str, Any]:
    """Destructively rebuild gameweeks from real match data."""
    with db_conn() as conn:
        gameweeks = GameweekService().generate_gameweeks_from_matches(conn)
        return {"generated": len(gameweeks), "gameweeks": [gw.to_dict() for gw in gameweeks]}


@app.post("/rpc/set_gameweek_status")
def rpc_set_gameweek_status(req: SetGameweekStatusRequest, _: User = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            gw = GameweekService().set_gameweek_status(conn, req.gameweek, req.status, force=req.force)
        except (InvalidGameweekStatusError, GameweekNotFoundError, GameweekTransitionError) as e:
            _raise_http(e)
        return gw.to_dict()


@app.post("/rpc/finalize_gameweek")
def rpc_finalize_gameweek(req: FinalizeGameweekRequest, _: User = Depends(require_admin)) -> dict[str, Any]:
    """Compute and persist all team points and ranks; mark the gameweek finalized."""
    with db_conn() as conn:
        try:
            result = GameweekService().finalize_gameweek(conn, req.gameweek)
        except (GameweekNotFoundError, GameweekTransitionError) as e:
            _raise_http(e)
        return result.to_dict()


@app.post("/rpc/update_gameweek_status")
def rpc_update_gameweek_status(_: User = Depends(require_admin)) -> dict[str, Any]:
    """Apply clock-driven transitions (upcoming -> active -> locked)."""
    with db_conn() as conn:
        return {"changed": GameweekService().update_gameweek_status(conn)}


@app.post("/rpc/reset_transfers_for_gameweek")
def rpc_reset_transfers(_: User = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return {"teams_updated": LeagueService().reset_transfers_for_gameweek(conn)}


@app.get("/rpc/transfers_allowed")
def rpc_transfers_allowed() -> dict[str, Any]:
    with db_conn() as conn:
        return {"transfers_allowed": GameweekService().transfers_allowed(conn)}


# ---------- Teams & leagues ----------


@app.get("/teams/{team_id}")
def get_team(team_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        team = FantasyTeamRepository().get(conn, team_id)
        if team is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return team.to_dict()


@app.put("/teams/{team_id}/roster")
def set_team_roster(
    team_id: str,
    req: SetRosterRequest,
    user: User = Depends(require_user),
) -> dict[str, Any]:
    """Replace a team's roster. Owner or admin only."""
    with db_conn() as conn:
        team = FantasyTeamRepository().get(conn, team_id)
        if team is None:
            raise HTTPException(status_code=404, detail="Team not found")
        if team.user_id != user.id and not user.is_admin:
            raise HTTPException(status_code=403, detail="Team must belong to you")
        entries = [
            RosterEntry(
                fantasy_team_id=team_id,
                player_id=r.player_id,
                is_starter=r.is_starter,
                is_captain=r.is_captain,
                is_vice_captain=r.is_vice_captain,
                slot=r.slot,
            )
            for r in req.roster
        ]
        try:
            roster = LeagueService().set_roster(conn, team_id, entries)
        except (RosterValidationError, TeamNotFoundError) as e:
            _raise_http(e)
        return {"team_id": team_id, "roster": [e.to_dict() for e in roster]}


@app.get("/teams/{team_id}/points/{gameweek}")
def get_team_points(team_id: str, gameweek: int) -> dict[str, Any]:
    """Scoring breakdown for a team in a gameweek. Nothing is persisted."""
    with db_conn() as conn:
        if FantasyTeamRepository().get(conn, team_id) is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return ScoringService().score_team(conn, team_id, gameweek).to_dict()


@app.get("/leagues/{league_id}/standings")
def get_league_standings(league_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            rows = LeagueService().standings(conn, league_id)
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"league_id": league_id, "standings": rows}


@app.get("/statuses")
def list_statuses() -> dict[str, Any]:
    """Gameweek status values, for console dropdowns."""
    return {"statuses": GameweekStatus.values()}


# ---------- Run with: uvicorn gameweek_backend.api:app --reload ----------
