# backend/cashbox/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file next to the instance by default; any SQLAlchemy URL works
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///cashbox.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # At most one OPEN register per branch, enforced when opening
    CASH_SINGLE_OPEN_REGISTER = _env_flag("CASH_SINGLE_OPEN_REGISTER", True)

    # Reject audits whose denomination sum disagrees with the counted cash
    CASH_STRICT_DENOMINATIONS = _env_flag("CASH_STRICT_DENOMINATIONS", False)

    # Retry policy for transient persistence failures (locks, stale versions)
    CASH_RETRY_ATTEMPTS = int(os.environ.get("CASH_RETRY_ATTEMPTS", "3"))
    CASH_RETRY_BACKOFF = float(os.environ.get("CASH_RETRY_BACKOFF", "0.05"))
