# Overview: Flask API routes for distributor management; parses input and returns JSON responses.

"""
Distributor Routes (administrators only)

Creating a distributor also creates its private role; the permission ids
sent here become that role's permission set.
"""

from flask import Blueprint, request, jsonify, current_app, g

from . import error_response
from ..decorators import require_auth, require_admin
from ..services import distributor_service, permission_service
from ..services.errors import ServiceError


distributors_bp = Blueprint("distributors", __name__, url_prefix="/api/distributors")


@distributors_bp.get("")
@require_auth
@require_admin
def list_distributors_route():
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    distributors = distributor_service.list_distributors(include_inactive=include_inactive)
    return jsonify({
        "items": [distributor_service.serialize_distributor(d) for d in distributors],
        "count": len(distributors),
    })


@distributors_bp.get("/permission-catalogue")
@require_auth
@require_admin
def permission_catalogue_route():
    """Permissions grouped by module, for the distributor permission picker."""
    return jsonify(permission_service.group_permissions_by_module())


@distributors_bp.get("/<int:user_id>")
@require_auth
@require_admin
def get_distributor_route(user_id: int):
    try:
        distributor = distributor_service.get_distributor(user_id)
    except ServiceError as e:
        return error_response(e)
    return jsonify(distributor_service.serialize_distributor(distributor))


@distributors_bp.post("")
@require_auth
@require_admin
def create_distributor_route():
    """
    Request body:
    {
        "username": "dist1",
        "password": "Password123!",
        "commission_rate": 3,
        "permission_ids": [1, 2, 3]
    }
    """
    data = request.get_json(silent=True) or {}

    if not data.get("username") or not data.get("password"):
        return jsonify({"error": "username and password are required", "code": "VALIDATION"}), 400

    try:
        distributor = distributor_service.create_distributor(
            username=data.get("username"),
            password=data.get("password"),
            commission_rate=data.get("commission_rate", 0),
            permission_ids=data.get("permission_ids") or [],
            created_by_user_id=g.current_user.id,
        )
        return jsonify(distributor_service.serialize_distributor(distributor)), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create distributor")
        return jsonify({"error": "Internal server error"}), 500


@distributors_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_distributor_route(user_id: int):
    """All fields optional: username, commission_rate, is_active, permission_ids."""
    data = request.get_json(silent=True) or {}

    try:
        distributor = distributor_service.update_distributor(
            user_id,
            username=data.get("username"),
            commission_rate=data.get("commission_rate"),
            is_active=data.get("is_active"),
            permission_ids=data.get("permission_ids"),
            updated_by_user_id=g.current_user.id,
        )
        return jsonify(distributor_service.serialize_distributor(distributor))
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update distributor")
        return jsonify({"error": "Internal server error"}), 500
