# backend/app/config.py
from __future__ import annotations
import os


def _optional_int(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retail.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retail.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # VAT applied at sale time, in basis points (1200 = 12%)
    VAT_RATE_BPS = int(os.environ.get("VAT_RATE_BPS", "1200"))

    # Calendar-day boundary for sale numbers and report windows (IANA name)
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "UTC")

    # None = sales may be voided at any time
    VOID_WINDOW_HOURS = _optional_int("VOID_WINDOW_HOURS")

    DEFAULT_LOW_STOCK_THRESHOLD = int(os.environ.get("DEFAULT_LOW_STOCK_THRESHOLD", "10"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    VAT_RATE_BPS = 1200
    BUSINESS_TIMEZONE = "UTC"
    VOID_WINDOW_HOURS = None
    LOG_LEVEL = "WARNING"
