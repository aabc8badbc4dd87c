"""
Runtime configuration for the FollowTrain API.

All settings come from environment variables and are read once through
`get_settings()`. Live profile integrations are enabled simply by providing
their credential; an unset credential means lookups for that platform go
straight to the generated fallback profile.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./followtrain.db"
DEFAULT_ALLOWED_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _split_csv(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    log_level: str = "INFO"
    database_url: str = DEFAULT_DATABASE_URL
    instagram_access_token: Optional[str] = None
    twitter_bearer_token: Optional[str] = None
    linkedin_access_token: Optional[str] = None
    profile_lookup_timeout: float = 5.0
    allowed_origins: List[str] = field(
        default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS)
    )
    host: str = "0.0.0.0"
    port: int = 3001

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.getenv("ENVIRONMENT", "development").lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            instagram_access_token=os.getenv("INSTAGRAM_ACCESS_TOKEN") or None,
            twitter_bearer_token=os.getenv("TWITTER_BEARER_TOKEN") or None,
            linkedin_access_token=os.getenv("LINKEDIN_ACCESS_TOKEN") or None,
            profile_lookup_timeout=_env_float("PROFILE_LOOKUP_TIMEOUT", 5.0),
            allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS"))
            or list(DEFAULT_ALLOWED_ORIGINS),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(_env_float("PORT", 3001)),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read from the environment on first use"""
    return Settings.from_env()
