# backend/prodday/config.py
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

    # SQLite DB stored in backend/instance/prodday.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///prodday.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "Today" for finalize checks is evaluated in the factory's calendar
    PRODUCTION_TIMEZONE = os.environ.get("PRODUCTION_TIMEZONE", "America/Sao_Paulo")

    ENTRY_GROUPING_DEFAULT = _env_flag("ENTRY_GROUPING_DEFAULT", True)
    FINALIZE_REQUIRE_ALL_CHECKED = _env_flag("FINALIZE_REQUIRE_ALL_CHECKED", False)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # bcrypt cost factor; tests lower it to keep hashing fast
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
