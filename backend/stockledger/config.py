# backend/stockledger/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ledger transaction retry policy (conflicts, lock timeouts, stale versions)
    LEDGER_RETRY_ATTEMPTS = _env_int("LEDGER_RETRY_ATTEMPTS", 5)
    LEDGER_RETRY_BACKOFF_SECONDS = _env_float("LEDGER_RETRY_BACKOFF_SECONDS", 0.05)

    # How long a writer waits on a locked database before the attempt fails
    LEDGER_LOCK_TIMEOUT_SECONDS = _env_float("LEDGER_LOCK_TIMEOUT_SECONDS", 10.0)

    # Header populated by the upstream identity provider with the user id
    IDENTITY_HEADER = os.environ.get("IDENTITY_HEADER", "X-User-Id")

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    }
