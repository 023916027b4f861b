# Overview: Flask API routes for commission tiers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from . import error_response
from ..decorators import require_auth, require_permission, require_module_access
from ..extensions import db
from ..models import CommissionTier
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import commission_service
from ..services.errors import NotFoundError, ServiceError


commission_tiers_bp = Blueprint("commission_tiers", __name__, url_prefix="/api/commission-tiers")


def _get_tier(tier_id: int, access) -> CommissionTier:
    tier = db.session.get(CommissionTier, tier_id)
    if tier is None or (access.owner_scoped and tier.created_by_user_id != access.user.id):
        raise NotFoundError("Commission tier not found or not accessible")
    return tier


@commission_tiers_bp.get("")
@require_auth
@require_module_access(M.COMMISSION_TIERS)
def list_tiers_route(access):
    """
    Query parameters:
    - entity_type: client | distributor | company
    - entity_id
    - include_inactive: true/false (default false)
    """
    tiers = commission_service.list_tiers(
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        created_by_user_id=access.user.id if access.owner_scoped else None,
    )
    return jsonify({"items": [t.to_dict() for t in tiers], "count": len(tiers)})


@commission_tiers_bp.post("")
@require_auth
@require_permission(M.COMMISSION_TIERS, A.CREATE)
def create_tier_route():
    """
    Request body:
    {
        "entity_type": "client",
        "entity_id": 1,
        "min_amount_cents": 0,
        "max_amount_cents": 100000,   // null = unbounded
        "rate": 5
    }
    """
    data = request.get_json(silent=True) or {}
    if data.get("rate") is None or data.get("entity_id") is None:
        return jsonify({"error": "entity_id and rate are required", "code": "VALIDATION"}), 400

    try:
        tier = commission_service.create_tier(
            data.get("entity_type"),
            data.get("entity_id"),
            data.get("rate"),
            min_amount_cents=data.get("min_amount_cents", 0),
            max_amount_cents=data.get("max_amount_cents"),
            created_by_user_id=g.current_user.id,
        )
    except ServiceError as e:
        return error_response(e)
    return jsonify(tier.to_dict()), 201


@commission_tiers_bp.put("/<int:tier_id>")
@require_auth
@require_permission(M.COMMISSION_TIERS, A.UPDATE)
@require_module_access(M.COMMISSION_TIERS)
def update_tier_route(tier_id: int, access):
    """Existing invoices keep their rate snapshots."""
    data = request.get_json(silent=True) or {}
    try:
        tier = _get_tier(tier_id, access)
        tier = commission_service.update_tier(
            tier,
            rate=data.get("rate"),
            min_amount_cents=data.get("min_amount_cents"),
            max_amount_cents=data["max_amount_cents"] if "max_amount_cents" in data else ...,
            is_active=data.get("is_active"),
        )
    except ServiceError as e:
        return error_response(e)
    return jsonify(tier.to_dict())


@commission_tiers_bp.delete("/<int:tier_id>")
@require_auth
@require_permission(M.COMMISSION_TIERS, A.DELETE)
@require_module_access(M.COMMISSION_TIERS)
def deactivate_tier_route(tier_id: int, access):
    try:
        tier = commission_service.deactivate_tier(_get_tier(tier_id, access))
    except ServiceError as e:
        return error_response(e)
    return jsonify(tier.to_dict())
