# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

"""
Invoice Routes

SECURITY: All routes require authentication.
- Listing, reading, marking stages and bulk pay need invoices module access
  (view_own or view_all); view_own callers only reach invoices assigned to them
- Create / update / delete need invoices.create / update / delete
- Unmarking a stage needs invoices.update and is admin-only in the service
"""

from flask import Blueprint, request, jsonify, current_app, g

from . import error_response
from ..decorators import require_auth, require_permission, require_module_access, require_legacy_flag
from ..models.invoices import STAGE_CLIENT_TO_DISTRIBUTOR, STAGE_DISTRIBUTOR_TO_ADMIN, STAGE_ADMIN_TO_COMPANY
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import bulk_payment_service, commission_service, invoice_service, payment_service
from ..services.errors import ServiceError
from ..time_utils import parse_iso_date


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
@require_module_access(M.INVOICES)
def list_invoices_route(access):
    """
    List invoices visible to the caller.

    Query parameters:
    - client_id, distributor_id, company_id
    - status: pending | completed | cancelled
    - payment_status: client_pending | distributor_pending | admin_pending | fully_completed
    - date_from, date_to: YYYY-MM-DD
    - limit (default 100, max 500), offset

    Returns:
        {items: Invoice[], count: int, limit: int, offset: int}
    """
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    limit = min(max(limit, 1), 500)
    offset = max(offset, 0)

    try:
        date_from = parse_iso_date(request.args.get("date_from"))
        date_to = parse_iso_date(request.args.get("date_to"))
    except ValueError:
        return jsonify({"error": "Invalid date filter", "code": "VALIDATION"}), 400

    try:
        invoices, total = invoice_service.list_invoices(
            access.user,
            access.owner_scoped,
            client_id=request.args.get("client_id", type=int),
            distributor_id=request.args.get("distributor_id", type=int),
            company_id=request.args.get("company_id", type=int),
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )
    except ServiceError as e:
        return error_response(e)

    return jsonify({
        "items": [invoice_service.serialize_invoice(i) for i in invoices],
        "count": total,
        "limit": limit,
        "offset": offset,
        "permission_level": access.level.to_dict(),
    })


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_module_access(M.INVOICES)
def get_invoice_route(invoice_id: int, access):
    try:
        invoice = invoice_service.get_invoice_scoped(invoice_id, access.user, access.owner_scoped)
    except ServiceError as e:
        return error_response(e)
    return jsonify(invoice_service.serialize_invoice(invoice))


@invoices_bp.post("")
@require_auth
@require_permission(M.INVOICES, A.CREATE)
def create_invoice_route():
    """
    Create an invoice. Commission rates are resolved and snapshotted now.

    Request body:
    {
        "invoice_code": "INV-001",
        "client_id": 1,
        "file_id": 1,
        "assigned_distributor_id": 2,
        "invoice_date": "2024-05-01",
        "amount_cents": 100000
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        invoice = invoice_service.create_invoice(
            invoice_code=data.get("invoice_code"),
            client_id=data.get("client_id"),
            file_id=data.get("file_id"),
            assigned_distributor_id=data.get("assigned_distributor_id"),
            invoice_date=data.get("invoice_date"),
            amount_cents=data.get("amount_cents"),
            created_by_user_id=g.current_user.id,
        )
        return jsonify(invoice_service.serialize_invoice(invoice)), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.put("/<int:invoice_id>")
@require_auth
@require_permission(M.INVOICES, A.UPDATE)
@require_module_access(M.INVOICES)
def update_invoice_route(invoice_id: int, access):
    """
    Edit an invoice (any subset of the create fields, plus status).

    The commission snapshot is recomputed from the edited values.
    """
    data = request.get_json(silent=True) or {}

    try:
        invoice = invoice_service.update_invoice(invoice_id, access.user, access.owner_scoped, data)
        return jsonify(invoice_service.serialize_invoice(invoice))
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
@require_permission(M.INVOICES, A.DELETE)
@require_module_access(M.INVOICES)
def delete_invoice_route(invoice_id: int, access):
    try:
        invoice_service.delete_invoice(invoice_id, access.user, access.owner_scoped)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"message": "Invoice deleted"})


@invoices_bp.post("/calculate-commission")
@require_auth
@require_legacy_flag("can_create_invoices")
def calculate_commission_route():
    """
    Preview the rates and commission amounts an invoice would get.

    Request body: {client_id, distributor_id, file_id, amount_cents}
    """
    data = request.get_json(silent=True) or {}

    try:
        amount = invoice_service.parse_amount_cents(data.get("amount_cents"))
        preview = commission_service.preview_commissions(
            data.get("client_id"),
            data.get("distributor_id"),
            data.get("file_id"),
            amount,
        )
    except ServiceError as e:
        return error_response(e)

    return jsonify(preview)


# =============================================================================
# PAYMENT STAGES
# =============================================================================

@invoices_bp.post("/<int:invoice_id>/payment/<stage>")
@require_auth
@require_module_access(M.INVOICES)
def mark_stage_route(invoice_id: int, stage: str, access):
    """Mark one payment stage as paid."""
    try:
        invoice = payment_service.mark_stage(
            invoice_id,
            stage,
            access.user,
            owner_scoped=access.owner_scoped,
            resource=request.path,
        )
        return jsonify(invoice_service.serialize_invoice(invoice))
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to mark payment stage")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>/payment/<stage>")
@require_auth
@require_permission(M.INVOICES, A.UPDATE)
def unmark_stage_route(invoice_id: int, stage: str):
    """Clear one payment stage (administrators only)."""
    try:
        invoice = payment_service.unmark_stage(invoice_id, stage, g.current_user, resource=request.path)
        return jsonify(invoice_service.serialize_invoice(invoice))
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to unmark payment stage")
        return jsonify({"error": "Internal server error"}), 500


def _bulk_pay(stage: str, scope_id: int, access):
    try:
        result = bulk_payment_service.bulk_apply(stage, scope_id, access.user)
    except ServiceError as e:
        return error_response(e)

    # PARTIAL still returns 200: earlier invoices are committed
    return jsonify(result.to_dict())


@invoices_bp.post("/bulk-pay/client/<int:client_id>")
@require_auth
@require_module_access(M.INVOICES)
def bulk_pay_client_route(client_id: int, access):
    """Distributor: mark every own unpaid invoice of one client as collected."""
    return _bulk_pay(STAGE_CLIENT_TO_DISTRIBUTOR, client_id, access)


@invoices_bp.post("/bulk-pay/distributor/<int:distributor_id>")
@require_auth
@require_module_access(M.INVOICES)
def bulk_pay_distributor_route(distributor_id: int, access):
    """Admin: settle every collected invoice of one distributor."""
    return _bulk_pay(STAGE_DISTRIBUTOR_TO_ADMIN, distributor_id, access)


@invoices_bp.post("/bulk-pay/company/<int:company_id>")
@require_auth
@require_module_access(M.INVOICES)
def bulk_pay_company_route(company_id: int, access):
    """Admin: pay out every settled invoice of one company."""
    return _bulk_pay(STAGE_ADMIN_TO_COMPANY, company_id, access)
