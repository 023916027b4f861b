# backend/invoicedesk/routes/system.py
"""
System health and version endpoints.

/health checks the database, the session table and the seeded roles and
returns 503 when any check is unhealthy.
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Invoice, User, Role, Permission, SessionToken
from ..permissions import ROLE_ADMIN, ROLE_BASIC_DISTRIBUTOR
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "roles": db.session.query(Role).count(),
            "permissions": db.session.query(Permission).count(),
            "invoices": db.session.query(Invoice).count(),
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}

    return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}


def check_session_service_health() -> dict:
    """Active sessions, plus expired ones nobody has revoked yet."""
    start_time = time.time()
    try:
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(False),
        ).count()
    except SQLAlchemyError:
        current_app.logger.exception("Session service health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Session service error"}

    return {
        "status": "healthy",
        "latency_ms": _elapsed_ms(start_time),
        "details": {
            "active_sessions": active_sessions,
            "expired_pending_cleanup": expired_sessions,
        },
    }


def check_auth_service_health() -> dict:
    """Degraded when a system role is missing (run `flask system init`)."""
    start_time = time.time()
    try:
        missing_roles = [
            name for name in (ROLE_ADMIN, ROLE_BASIC_DISTRIBUTOR)
            if db.session.query(Role).filter_by(name=name).first() is None
        ]
        permission_count = db.session.query(Permission).count()
    except SQLAlchemyError:
        current_app.logger.exception("Auth service health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Auth service error"}

    details = {
        "permissions_initialized": permission_count > 0,
        "permission_count": permission_count,
    }
    if missing_roles:
        return {
            "status": "degraded",
            "latency_ms": _elapsed_ms(start_time),
            "warning": f"Missing roles: {', '.join(missing_roles)}",
            "details": details,
        }

    details["roles_configured"] = True
    return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "auth_service": check_auth_service_health(),
    }
    statuses = [check["status"] for check in checks.values()]

    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info. Never exposes secrets or paths."""
    return {
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "stage_order_policy": current_app.config.get("STAGE_ORDER_POLICY"),
        "server_time": to_utc_z(utcnow()),
    }
