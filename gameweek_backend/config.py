"""
Configuration for the gameweek backend.

Loads configuration from environment variables (and a project-root .env) with sensible defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(PROJECT_ROOT / ".env")


def _default_cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS")
    if raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]


@dataclass
class Config:
    """Application configuration."""

    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    # Persistence
    db_path: str = field(
        default_factory=lambda: os.getenv("GAMEWEEK_DB_PATH", str(PROJECT_ROOT / "data" / "app.db"))
    )

    # Auth
    jwt_secret_key: str = field(
        default_factory=lambda: os.getenv("JWT_SECRET_KEY", "dev-secret-change-in-production")
    )
    access_token_expire_minutes: int = field(
        default_factory=lambda: int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))
    )

    # Gameweek generation: deadline is this many minutes before the first match
    deadline_offset_minutes: int = field(
        default_factory=lambda: int(os.getenv("DEADLINE_OFFSET_MINUTES", "90"))
    )

    # General League (every new user's team lands here)
    general_league_name: str = field(
        default_factory=lambda: os.getenv("GENERAL_LEAGUE_NAME", "General League")
    )
    general_league_max_participants: int = field(
        default_factory=lambda: int(os.getenv("GENERAL_LEAGUE_MAX_PARTICIPANTS", "1000"))
    )
    default_team_budget: int = field(default_factory=lambda: int(os.getenv("DEFAULT_TEAM_BUDGET", "100")))
    default_transfers: int = field(default_factory=lambda: int(os.getenv("DEFAULT_TRANSFERS", "2")))

    # HTTP
    cors_origins: list[str] = field(default_factory=_default_cors_origins)

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "text"))  # json or text

    def validate(self) -> bool:
        """Validate configuration."""
        errors = []

        if not self.jwt_secret_key:
            errors.append("JWT_SECRET_KEY must not be empty")
        if self.deadline_offset_minutes < 0:
            errors.append("DEADLINE_OFFSET_MINUTES must be >= 0")
        if self.general_league_max_participants < 1:
            errors.append("GENERAL_LEAGUE_MAX_PARTICIPANTS must be >= 1")
        if self.log_format not in ("json", "text"):
            errors.append("LOG_FORMAT must be 'json' or 'text'")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True

    def __post_init__(self) -> None:
        self.validate()


_config: Config | None = None


def get_config() -> Config:
    """Return the process-wide config, built on first use."""
    global _config
    if _config is None:
        _config = Config()
    return _config
