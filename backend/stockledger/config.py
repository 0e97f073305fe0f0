# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///stockledger.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Retry policy for lock/optimistic-version conflicts on ledger rows
    STOCKLEDGER_RETRY_ATTEMPTS = int(os.environ.get("STOCKLEDGER_RETRY_ATTEMPTS", "3"))
    STOCKLEDGER_RETRY_BACKOFF = float(os.environ.get("STOCKLEDGER_RETRY_BACKOFF", "0.1"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"
    STOCKLEDGER_RETRY_BACKOFF = 0.0
