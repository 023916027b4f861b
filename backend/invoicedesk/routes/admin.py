# Overview: Flask API routes for role and permission administration; parses input and returns JSON responses.

"""
Admin Routes

Roles, the permission catalogue, role grants and the security audit log.
System roles are read-only here; custom roles are edited and every holder's
legacy flags are refreshed on each change.
"""

from flask import Blueprint, request, jsonify, g

from . import error_response
from ..decorators import require_auth, require_permission
from ..extensions import db
from ..models import Permission, Role, RolePermission, SecurityEvent
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import auth_service, permission_service
from ..services.errors import ServiceError


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _split_permission_name(name: str) -> tuple[str, str]:
    module, _, action = (name or "").partition(".")
    return module, action


# =============================================================================
# ROLE MANAGEMENT
# =============================================================================

@admin_bp.get("/roles")
@require_auth
@require_permission(M.ROLES, A.VIEW_ALL)
def list_roles():
    """List all roles with their permission counts."""
    roles = db.session.query(Role).order_by(Role.name).all()

    result = []
    for role in roles:
        role_dict = role.to_dict()
        role_dict["permission_count"] = db.session.query(RolePermission).filter_by(role_id=role.id).count()
        result.append(role_dict)

    return jsonify({"roles": result})


@admin_bp.get("/roles/<role_name>")
@require_auth
@require_permission(M.ROLES, A.VIEW_ALL)
def get_role(role_name: str):
    """Get a role with its full permission list."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        return jsonify({"error": "Role not found", "code": "NOT_FOUND"}), 404

    role_dict = role.to_dict()
    role_dict["permissions"] = [p.to_dict() for p in permission_service.get_role_permissions(role.id)]
    return jsonify({"role": role_dict})


@admin_bp.post("/roles/<role_name>/permissions")
@require_auth
@require_permission(M.ROLES, A.UPDATE)
def grant_permission_to_role(role_name: str):
    """
    Grant a permission to a custom role.

    Request body:
    - permission: "<module>.<action>" (required)
    """
    data = request.get_json(silent=True) or {}
    module, action = _split_permission_name(data.get("permission"))

    if not module or not action:
        return jsonify({"error": "permission required as <module>.<action>", "code": "VALIDATION"}), 400

    try:
        role_permission = permission_service.grant_permission_to_role(role_name, module, action)
    except ServiceError as e:
        return error_response(e)

    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="ROLE_PERMISSIONS_CHANGED",
        success=True,
        resource=f"role:{role_name}",
        action=f"grant:{module}.{action}",
    )
    return jsonify({
        "message": f"Permission {module}.{action} granted to role {role_name}",
        "role_permission": role_permission.to_dict(),
    }), 201


@admin_bp.delete("/roles/<role_name>/permissions/<permission>")
@require_auth
@require_permission(M.ROLES, A.UPDATE)
def revoke_permission_from_role(role_name: str, permission: str):
    """Revoke a permission from a custom role."""
    module, action = _split_permission_name(permission)

    try:
        revoked = permission_service.revoke_permission_from_role(role_name, module, action)
    except ServiceError as e:
        return error_response(e)

    if not revoked:
        return jsonify({"error": "Permission was not granted to this role", "code": "VALIDATION"}), 400

    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="ROLE_PERMISSIONS_CHANGED",
        success=True,
        resource=f"role:{role_name}",
        action=f"revoke:{module}.{action}",
    )
    return jsonify({"message": f"Permission {permission} revoked from role {role_name}"})


@admin_bp.post("/users/<int:user_id>/roles")
@require_auth
@require_permission(M.ROLES, A.UPDATE)
def assign_role_to_user(user_id: int):
    """Request body: {"role_name": "basic_distributor"}"""
    data = request.get_json(silent=True) or {}
    role_name = data.get("role_name")
    if not role_name:
        return jsonify({"error": "role_name required", "code": "VALIDATION"}), 400

    try:
        user_role = auth_service.assign_role(user_id, role_name)
    except ServiceError as e:
        return error_response(e)
    return jsonify(user_role.to_dict()), 201


# =============================================================================
# PERMISSION CATALOGUE
# =============================================================================

@admin_bp.get("/permissions")
@require_auth
@require_permission(M.PERMISSIONS, A.VIEW_ALL)
def list_permissions():
    """
    List all permissions.

    Query params:
    - module: filter by module
    """
    query = db.session.query(Permission)

    module = request.args.get("module")
    if module:
        query = query.filter_by(module=module)

    permissions = query.order_by(Permission.module, Permission.action).all()
    return jsonify({"permissions": [p.to_dict() for p in permissions]})


# =============================================================================
# AUDIT LOG
# =============================================================================

@admin_bp.get("/security-events")
@require_auth
@require_permission(M.SYSTEM, A.VIEW_ALL)
def list_security_events():
    """
    Recent security events, newest first.

    Query params:
    - event_type, user_id
    - limit (default 100, max 500)
    """
    limit = min(max(request.args.get("limit", 100, type=int), 1), 500)

    query = db.session.query(SecurityEvent)
    event_type = request.args.get("event_type")
    if event_type:
        query = query.filter(SecurityEvent.event_type == event_type)
    user_id = request.args.get("user_id", type=int)
    if user_id is not None:
        query = query.filter(SecurityEvent.user_id == user_id)

    events = query.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).limit(limit).all()
    return jsonify({"events": [e.to_dict() for e in events]})
