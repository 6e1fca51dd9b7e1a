# backend/atelier/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/atelier.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///atelier.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Public storefront URL, used for links in customer emails
    APP_URL = os.environ.get("APP_URL", "http://localhost:3000")

    # Outgoing mail. Leaving MAIL_SERVER unset disables email delivery;
    # send attempts are then recorded as FAILED in email_logs.
    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USE_SSL = _env_bool("MAIL_USE_SSL", False)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "Atelier")
    MAIL_FROM_EMAIL = os.environ.get("MAIL_FROM_EMAIL", "no-reply@atelier.local")
    MAIL_TIMEOUT = float(os.environ.get("MAIL_TIMEOUT", "10"))
