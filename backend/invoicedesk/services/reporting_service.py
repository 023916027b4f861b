# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

import csv
import io
from typing import Iterable

from ..models import Invoice, User
from ..models.invoices import INVOICE_STATUSES
from ..time_utils import month_range, to_utc_z
from . import commission_service, invoice_service, payment_service
from .errors import ValidationError


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""
    pass


EXPORT_COLUMNS = [
    "invoice_code",
    "client_name",
    "file_name",
    "company_name",
    "distributor_name",
    "amount_cents",
    "client_commission_rate",
    "client_commission_cents",
    "distributor_commission_rate",
    "distributor_commission_cents",
    "company_commission_rate",
    "company_commission_cents",
    "net_profit_cents",
    "status",
    "payment_status",
    "client_to_distributor_paid",
    "client_to_distributor_paid_at",
    "distributor_to_admin_paid",
    "distributor_to_admin_paid_at",
    "admin_to_company_paid",
    "admin_to_company_paid_at",
    "invoice_date",
    "created_at",
]


def _resolve_month(month: str | None) -> tuple:
    try:
        return month_range(month)
    except ValueError:
        raise ReportError(f"Invalid month: {month!r} (expected YYYY-MM)")


def report_invoices(
    user: User,
    owner_scoped: bool,
    *,
    month: str | None = None,
    client_id: int | None = None,
    distributor_id: int | None = None,
    company_id: int | None = None,
    status: str | None = None,
    payment_status: str | None = None,
) -> tuple[list[Invoice], str]:
    """
    Invoices of one calendar month (current month by default), filtered.

    Owner-scoped users only see invoices assigned to them, whatever
    distributor filter they pass.

    Returns:
        (invoices newest first, "YYYY-MM")
    """
    first_day, last_day, month_key = _resolve_month(month)

    query = invoice_service.filtered_query(
        user,
        owner_scoped,
        client_id=client_id,
        distributor_id=distributor_id,
        company_id=company_id,
        status=status,
        payment_status=payment_status,
        date_from=first_day,
        date_to=last_day,
    )
    invoices = query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()
    return invoices, month_key


def calculate_profit_stats(invoices: Iterable[Invoice]) -> dict:
    """
    Totals, averages and breakdowns over a set of invoices.

    All money values are integer cents; averages are rounded half-up.
    """
    stats = {
        "total_invoices": 0,
        "total_amount_cents": 0,
        "total_client_commission_cents": 0,
        "total_distributor_commission_cents": 0,
        "total_company_commission_cents": 0,
        "total_net_profit_cents": 0,
        "average_amount_cents": 0,
        "average_net_profit_cents": 0,
        "status_breakdown": {status: 0 for status in INVOICE_STATUSES},
        "payment_status_breakdown": {status: 0 for status in payment_service.OVERALL_STATUSES},
        "monthly_breakdown": {},
    }

    for invoice in invoices:
        breakdown = commission_service.calculate_commissions(invoice)

        stats["total_invoices"] += 1
        stats["total_amount_cents"] += breakdown.amount_cents
        stats["total_client_commission_cents"] += breakdown.client_commission_cents
        stats["total_distributor_commission_cents"] += breakdown.distributor_commission_cents
        stats["total_company_commission_cents"] += breakdown.company_commission_cents
        stats["total_net_profit_cents"] += breakdown.net_profit_cents

        stats["status_breakdown"][invoice.status] = stats["status_breakdown"].get(invoice.status, 0) + 1
        stats["payment_status_breakdown"][payment_service.overall_payment_status(invoice)] += 1

        month_key = invoice.invoice_date.strftime("%Y-%m")
        month = stats["monthly_breakdown"].setdefault(
            month_key, {"count": 0, "amount_cents": 0, "net_profit_cents": 0}
        )
        month["count"] += 1
        month["amount_cents"] += breakdown.amount_cents
        month["net_profit_cents"] += breakdown.net_profit_cents

    count = stats["total_invoices"]
    if count:
        stats["average_amount_cents"] = _average(stats["total_amount_cents"], count)
        stats["average_net_profit_cents"] = _average(stats["total_net_profit_cents"], count)

    return stats


def _average(total: int, count: int) -> int:
    # Half-up integer division, sign-aware
    sign = -1 if total < 0 else 1
    return sign * ((abs(total) * 2 + count) // (2 * count))


def build_export_rows(invoices: Iterable[Invoice]) -> list[dict]:
    """Flatten invoices (plus commissions and stage state) into export rows."""
    rows = []
    for invoice in invoices:
        breakdown = commission_service.calculate_commissions(invoice)
        file = invoice.file
        company = file.company if file else None

        rows.append({
            "invoice_code": invoice.invoice_code,
            "client_name": invoice.client.full_name if invoice.client else None,
            "file_name": file.file_name if file else None,
            "company_name": company.name if company else None,
            "distributor_name": invoice.assigned_distributor.username if invoice.assigned_distributor else None,
            "amount_cents": breakdown.amount_cents,
            "client_commission_rate": float(invoice.client_commission_rate),
            "client_commission_cents": breakdown.client_commission_cents,
            "distributor_commission_rate": float(invoice.distributor_commission_rate),
            "distributor_commission_cents": breakdown.distributor_commission_cents,
            "company_commission_rate": float(invoice.company_commission_rate),
            "company_commission_cents": breakdown.company_commission_cents,
            "net_profit_cents": breakdown.net_profit_cents,
            "status": invoice.status,
            "payment_status": payment_service.overall_payment_status(invoice),
            "client_to_distributor_paid": invoice.client_to_distributor_is_paid,
            "client_to_distributor_paid_at": to_utc_z(invoice.client_to_distributor_paid_at),
            "distributor_to_admin_paid": invoice.distributor_to_admin_is_paid,
            "distributor_to_admin_paid_at": to_utc_z(invoice.distributor_to_admin_paid_at),
            "admin_to_company_paid": invoice.admin_to_company_is_paid,
            "admin_to_company_paid_at": to_utc_z(invoice.admin_to_company_paid_at),
            "invoice_date": invoice.invoice_date.isoformat(),
            "created_at": to_utc_z(invoice.created_at),
        })
    return rows


def render_csv(rows: list[dict]) -> str:
    """CSV text with a UTF-8 BOM so spreadsheet tools detect the encoding."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({key: ("" if value is None else value) for key, value in row.items()})
    return "\ufeff" + buffer.getvalue()
