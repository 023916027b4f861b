# Overview: Flask API routes for reports; parses input and returns JSON responses.

"""
Report Routes

Monthly invoice reports with profit statistics. view_own callers only see
invoices assigned to them.

GET /api/reports          -> invoices (paginated) + profit stats
GET /api/reports/export   -> flattened rows as JSON, or CSV with ?format=csv
"""

from flask import Blueprint, request, jsonify, current_app, Response

from . import error_response
from ..decorators import require_auth, require_module_access
from ..permissions import PermissionModule as M
from ..services import invoice_service, reporting_service
from ..services.errors import ServiceError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _report_filters() -> dict:
    return {
        "month": request.args.get("month"),
        "client_id": request.args.get("client_id", type=int),
        "distributor_id": request.args.get("distributor_id", type=int),
        "company_id": request.args.get("company_id", type=int),
        "status": request.args.get("status"),
        "payment_status": request.args.get("payment_status"),
    }


@reports_bp.get("")
@require_auth
@require_module_access(M.REPORTS)
def reports_route(access):
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 20, type=int), 1), 500)

    try:
        invoices, month_key = reporting_service.report_invoices(
            access.user, access.owner_scoped, **_report_filters()
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build report")
        return jsonify({"error": "Internal server error"}), 500

    start = (page - 1) * limit
    page_items = invoices[start:start + limit]

    return jsonify({
        "month": month_key,
        "invoices": [invoice_service.serialize_invoice(i) for i in page_items],
        "profit_stats": reporting_service.calculate_profit_stats(invoices),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": len(invoices),
            "total_pages": (len(invoices) + limit - 1) // limit,
        },
        "permission_level": access.level.to_dict(),
    })


@reports_bp.get("/export")
@require_auth
@require_module_access(M.REPORTS)
def export_route(access):
    export_format = request.args.get("format", "json")
    if export_format not in ("json", "csv"):
        return jsonify({"error": "format must be json or csv", "code": "VALIDATION"}), 400

    try:
        invoices, month_key = reporting_service.report_invoices(
            access.user, access.owner_scoped, **_report_filters()
        )
        rows = reporting_service.build_export_rows(invoices)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to export report")
        return jsonify({"error": "Internal server error"}), 500

    if export_format == "csv":
        return Response(
            reporting_service.render_csv(rows),
            mimetype="text/csv",
            headers={
                "Content-Type": "text/csv; charset=utf-8",
                "Content-Disposition": f"attachment; filename=invoices-report-{month_key}.csv",
            },
        )

    return jsonify({
        "data": rows,
        "summary": reporting_service.calculate_profit_stats(invoices),
        "month": month_key,
    })
