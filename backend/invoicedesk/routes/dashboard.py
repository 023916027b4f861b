# Overview: Flask API routes for the dashboard; parses input and returns JSON responses.

from flask import Blueprint, jsonify, current_app, g

from ..decorators import require_auth
from ..extensions import db
from ..models import Client, Company, File, Invoice, User
from ..models.auth import USER_ROLE_DISTRIBUTOR
from ..services import bulk_payment_service, invoice_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")

RECENT_INVOICE_LIMIT = 5


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    """
    Counters, recent invoices and bulk-payment cohorts.

    Admins see global counters plus distributor and company cohorts;
    distributors see their own invoice count and their client cohorts.
    """
    user = g.current_user

    try:
        if user.is_admin:
            invoice_query = db.session.query(Invoice)
            stats = {
                "total_invoices": invoice_query.count(),
                "total_clients": db.session.query(Client).count(),
                "total_companies": db.session.query(Company).count(),
                "total_files": db.session.query(File).count(),
                "total_distributors": db.session.query(User).filter(User.role == USER_ROLE_DISTRIBUTOR).count(),
            }
        else:
            invoice_query = db.session.query(Invoice).filter(Invoice.assigned_distributor_id == user.id)
            stats = {"total_invoices": invoice_query.count()}

        recent = (
            invoice_query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .limit(RECENT_INVOICE_LIMIT)
            .all()
        )

        stats["recent_invoices"] = [invoice_service.serialize_invoice(i) for i in recent]
        stats["bulk_payment_data"] = bulk_payment_service.summarize_cohorts(user)
        return jsonify(stats)
    except Exception:
        current_app.logger.exception("Failed to load dashboard")
        return jsonify({"error": "Internal server error"}), 500
