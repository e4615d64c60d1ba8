# backend/cutquote/config.py
from __future__ import annotations
import os


def _engine_options(database_uri: str, timeout_seconds: int) -> dict:
    """Bound every driver connect/lock wait by DB_TIMEOUT_SECONDS."""
    if database_uri.startswith("sqlite"):
        # pysqlite: seconds to wait on a locked database
        return {"connect_args": {"timeout": timeout_seconds}}
    if database_uri.startswith("postgresql"):
        return {
            "connect_args": {"connect_timeout": timeout_seconds},
            "pool_timeout": timeout_seconds,
            "pool_pre_ping": True,
        }
    return {}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cutquote.sqlite3 by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///cutquote.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    DB_TIMEOUT_SECONDS = int(os.environ.get("DB_TIMEOUT_SECONDS", "10"))
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI, DB_TIMEOUT_SECONDS)

    # Recipient for admin-facing notification templates
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@example.com")

    # Shared secret for the payment provider webhook signature (HMAC-SHA256)
    PAYMENT_WEBHOOK_SECRET = os.environ.get("PAYMENT_WEBHOOK_SECRET", "")

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]
