# backend/freshcount/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key. Signs bearer tokens.
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///freshcount.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens are stateless; 24h lifetime
    TOKEN_MAX_AGE_SECONDS = int(os.environ.get("TOKEN_MAX_AGE_SECONDS", "86400"))

    # bcrypt cost factor (fixed for every stored hash)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "10"))
    PASSWORD_MIN_LENGTH = int(os.environ.get("PASSWORD_MIN_LENGTH", "8"))

    # When False, POST /api/auth/register needs an admin token once a user exists
    ALLOW_OPEN_REGISTRATION = _env_bool("ALLOW_OPEN_REGISTRATION", False)

    # Products below this fraction of their opening stock are "low stock"
    LOW_STOCK_RATIO = float(os.environ.get("LOW_STOCK_RATIO", "0.2"))

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    # bcrypt minimum; keeps the suite fast
    BCRYPT_ROUNDS = 4
    ALLOW_OPEN_REGISTRATION = False
    LOG_LEVEL = "WARNING"
