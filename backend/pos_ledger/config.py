# backend/pos_ledger/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos_ledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos_ledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "piece": coerce unrecognized unit types to piece (logged)
    # "reject": raise ValidationError at create/edit time
    UNKNOWN_UNIT_POLICY = os.environ.get("UNKNOWN_UNIT_POLICY", "piece")

    LOW_STOCK_ALERTS_ENABLED = _env_bool("LOW_STOCK_ALERTS_ENABLED", True)

    # Serialization-failure retries only; business errors are never retried
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.1"))

    # Pending sales older than this are reported by the health check
    STALE_PENDING_MINUTES = int(os.environ.get("STALE_PENDING_MINUTES", "60"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
