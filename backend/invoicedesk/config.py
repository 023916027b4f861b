# backend/invoicedesk/config.py
from __future__ import annotations
import os


STAGE_ORDER_STRICT = "strict"
STAGE_ORDER_ADMIN_OVERRIDE = "admin_override"
STAGE_ORDER_RELAXED = "relaxed"

STAGE_ORDER_POLICIES = (
    STAGE_ORDER_STRICT,
    STAGE_ORDER_ADMIN_OVERRIDE,
    STAGE_ORDER_RELAXED,
)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/invoicedesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///invoicedesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ordering of single payment-stage marks (bulk eligibility is always ordered):
    # strict, admin_override (admins may correct out of order) or relaxed
    STAGE_ORDER_POLICY = os.environ.get(
        "INVOICEDESK_STAGE_ORDER_POLICY",
        STAGE_ORDER_ADMIN_OVERRIDE,
    )

    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    # bcrypt cost factor; tests lower it to keep fixtures fast
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Browser origins allowed to call the API (comma separated)
    CORS_ALLOWED_ORIGINS = frozenset(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    )
