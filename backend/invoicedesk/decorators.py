# Overview: Request and permission decorators for API routes.

from dataclasses import dataclass
from functools import wraps

from flask import request, jsonify, g

from .models import User
from .services import session_service, permission_service
from .services.errors import ActorNotFoundError
from .services.permission_service import PermissionDeniedError, PermissionLevel


@dataclass(frozen=True)
class AccessContext:
    """
    Authorization result for one request and one module.

    Built once by require_module_access and passed to the view as the
    `access` keyword argument.
    """
    user: User
    module: str
    level: PermissionLevel

    @property
    def owner_scoped(self) -> bool:
        return self.level.owner_scoped


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def _denied(message: str, **extra):
    payload = {"error": message, "code": "NOT_AUTHORIZED"}
    payload.update(extra)
    return jsonify(payload), 403


def _log_denial(user: User, action: str, reason: str) -> None:
    permission_service.log_security_event(
        user_id=user.id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=request.path,
        action=action,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def require_auth(f):
    """
    Require a valid bearer session.

    Sets:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 if the header is missing, the token is invalid, expired or
    revoked, or the account is deactivated. A valid session whose user row
    is gone returns 401 with code ACTOR_NOT_FOUND.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        try:
            context = session_service.validate_session(token)
        except ActorNotFoundError as e:
            return jsonify(e.to_dict()), e.http_status

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(module: str, action: str):
    """Require one (module, action) pair. Admins always pass."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(
                    g.current_user,
                    module,
                    action,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except PermissionDeniedError as e:
                return _denied(
                    "Permission denied",
                    required_permission=f"{module}.{action}",
                    message=str(e),
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_module_access(module: str):
    """
    Require view_own or view_all on a module and inject `access`.

    The view receives access=AccessContext(user, module, level); views use
    access.owner_scoped to filter their queries.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            level = permission_service.compute_permission_level(user, module)

            if not level.has_module_access:
                _log_denial(user, f"{module}.view", f"No access to module: {module}")
                return _denied("Permission denied", required_module=module)

            kwargs["access"] = AccessContext(user=user, module=module, level=level)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_admin(f):
    """Require the authenticated user to be an administrator."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_admin:
            _log_denial(g.current_user, "admin", "Administrator access required")
            return _denied("Administrator access required")
        return f(*args, **kwargs)
    return decorated_function


def require_legacy_flag(flag: str):
    """
    Gate on the stored legacy permission snapshot (can_create_invoices, ...).

    Admins bypass. Kept for older clients that still check the flags.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if not user.is_admin and not getattr(user, flag, False):
                _log_denial(user, flag, f"Missing legacy flag: {flag}")
                return _denied("Permission denied", required_flag=flag)

            return f(*args, **kwargs)

        return decorated_function
    return decorator
