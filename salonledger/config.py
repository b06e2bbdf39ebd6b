"""Default configuration for the SalonLedger backend.

Values can be overridden by pointing ``APP_SETTINGS`` at a Python config file
or by passing a mapping to :func:`salonledger.create_app`.
"""
from __future__ import annotations

import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///salonledger.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "sql" keeps documents in the SQLAlchemy database, "memory" in process.
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "sql")
    STORE_TRANSACTION_ATTEMPTS = 5

    OWNER_PIN = os.environ.get("OWNER_PIN", "9094")
    TOKEN_MAX_AGE = 86400  # 24 hours
    SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 5  # 5 days

    CORS_ORIGINS = ["*"]
    CREATE_TABLES = False
