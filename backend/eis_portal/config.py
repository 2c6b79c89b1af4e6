# backend/eis_portal/config.py
from __future__ import annotations
import os


class Config:
    # Required. create_app() refuses to start without it.
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # SQLite DB stored in backend/instance/eis_portal.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///eis_portal.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Uploaded documents land in <UPLOAD_ROOT>/<deal_id>/
    UPLOAD_ROOT = os.environ.get("UPLOAD_ROOT")

    # Magic links handed to founders and accountants
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:3000")
    MAGIC_LINK_TTL_DAYS = int(os.environ.get("MAGIC_LINK_TTL_DAYS", "7"))

    # Ops dashboard session cookie
    OPS_AUTH_COOKIE = "auth_token"
    OPS_AUTH_COOKIE_SECURE = os.environ.get("OPS_AUTH_COOKIE_SECURE", "false").lower() == "true"


def validate_config(config) -> None:
    """Raise RuntimeError when SECRET_KEY is missing. There is no fallback secret."""
    if not config.get("SECRET_KEY"):
        raise RuntimeError(
            "SECRET_KEY is not configured. Set the SECRET_KEY environment variable."
        )
