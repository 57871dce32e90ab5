# backend/imeipos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/imeipos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///imeipos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sales and purchase invoices are attributed to the open cash register
    # session; when these are on, creating one without an open session fails.
    REQUIRE_OPEN_SESSION_FOR_SALES = _env_flag("REQUIRE_OPEN_SESSION_FOR_SALES", True)
    REQUIRE_OPEN_SESSION_FOR_PURCHASES = _env_flag("REQUIRE_OPEN_SESSION_FOR_PURCHASES", True)

    # Retries for lock contention / optimistic version conflicts
    TRANSACTION_RETRY_ATTEMPTS = int(os.environ.get("TRANSACTION_RETRY_ATTEMPTS", "3"))
