# cartflow/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

PriceVisibility = Literal["all", "loggedIn", "hidden"]


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres in production, SQLite for local runs/tests)
      - JWT_SECRET (HS256 signing secret shared with the auth service)

    Optional:
      - PRICE_VISIBILITY: all | loggedIn | hidden
      - STATS_TOP_N, USAGE_HISTORY_LIMIT
      - CORS_ORIGINS (JSON list)
    """

    PROJECT_NAME: str = "Cartflow API"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str

    # JWT verification (backend-side)
    JWT_SECRET: str
    JWT_ALG: str = "HS256"

    # Presentation policy; never consulted inside the settlement engine
    PRICE_VISIBILITY: PriceVisibility = "all"

    STATS_TOP_N: int = 10
    USAGE_HISTORY_LIMIT: int = 50

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
