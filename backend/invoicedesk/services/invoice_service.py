# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice Service

WHY: Invoices carry a commission rate snapshot taken at save time. Create and
edit both resolve the three rates through commission_service and store them
on the row; nothing else writes the rates.

SCOPING: When the caller's permission level is owner-scoped (view_own without
view_all), lookups, edits and deletes only see invoices assigned to the
caller. Out-of-scope invoices are reported as not found.

Payment stages are NOT edited here; see payment_service.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Client, File, Invoice, User
from ..models.invoices import INVOICE_STATUSES
from ..time_utils import parse_iso_date
from . import commission_service, payment_service
from .concurrency import run_with_retry
from .errors import NotFoundError, ValidationError


class InvoiceValidationError(ValidationError):
    pass


def parse_amount_cents(value) -> int:
    """Amounts arrive as integer cents."""
    if isinstance(value, bool):
        raise InvoiceValidationError("amount_cents must be an integer")
    try:
        amount = int(value)
    except (TypeError, ValueError):
        raise InvoiceValidationError("amount_cents must be an integer")
    if isinstance(value, float) and value != amount:
        raise InvoiceValidationError("amount_cents must be an integer")
    if amount < 0:
        raise InvoiceValidationError("amount_cents cannot be negative")
    return amount


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise InvoiceValidationError(f"Invalid invoice_date: {value!r}")
    if parsed is None:
        raise InvoiceValidationError("invoice_date is required")
    return parsed


def _check_references(client_id, file_id, distributor_id) -> None:
    if db.session.get(Client, client_id) is None:
        raise InvoiceValidationError(f"Client {client_id} not found")
    if db.session.get(File, file_id) is None:
        raise InvoiceValidationError(f"File {file_id} not found")

    distributor = db.session.get(User, distributor_id)
    if distributor is None or not distributor.is_active:
        raise InvoiceValidationError(f"Distributor {distributor_id} not found or inactive")


def _check_code_unique(invoice_code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Invoice).filter(Invoice.invoice_code == invoice_code)
    if exclude_id is not None:
        query = query.filter(Invoice.id != exclude_id)
    if query.first():
        raise InvoiceValidationError(f"Invoice code '{invoice_code}' already exists")


def _apply_snapshot(invoice: Invoice) -> None:
    snapshot = commission_service.resolve_invoice_rates(
        invoice.client_id,
        invoice.assigned_distributor_id,
        invoice.file_id,
        invoice.amount_cents,
    )
    invoice.client_commission_rate = snapshot.client_rate
    invoice.distributor_commission_rate = snapshot.distributor_rate
    invoice.company_commission_rate = snapshot.company_rate


def create_invoice(
    *,
    invoice_code: str,
    client_id: int,
    file_id: int,
    assigned_distributor_id: int,
    invoice_date,
    amount_cents,
    created_by_user_id: int,
) -> Invoice:
    """
    Create an invoice with a fresh commission rate snapshot.

    Raises:
        InvoiceValidationError: missing fields, unknown references, duplicate code
    """
    invoice_code = (invoice_code or "").strip()
    if not invoice_code:
        raise InvoiceValidationError("invoice_code is required")

    amount = parse_amount_cents(amount_cents)
    invoice_day = _parse_date(invoice_date)

    _check_references(client_id, file_id, assigned_distributor_id)
    _check_code_unique(invoice_code)

    invoice = Invoice(
        invoice_code=invoice_code,
        client_id=client_id,
        file_id=file_id,
        assigned_distributor_id=assigned_distributor_id,
        invoice_date=invoice_day,
        amount_cents=amount,
        created_by_user_id=created_by_user_id,
    )
    _apply_snapshot(invoice)

    db.session.add(invoice)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise InvoiceValidationError(f"Invoice code '{invoice_code}' already exists")
    return invoice


def scoped_query(user: User, owner_scoped: bool):
    query = db.session.query(Invoice)
    if owner_scoped:
        query = query.filter(Invoice.assigned_distributor_id == user.id)
    return query


def get_invoice_scoped(invoice_id: int, user: User, owner_scoped: bool) -> Invoice:
    invoice = scoped_query(user, owner_scoped).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError("Invoice not found or not accessible")
    return invoice


_EDITABLE_FIELDS = (
    "invoice_code",
    "client_id",
    "file_id",
    "assigned_distributor_id",
    "invoice_date",
    "amount_cents",
    "status",
)


def update_invoice(invoice_id: int, user: User, owner_scoped: bool, changes: dict) -> Invoice:
    """
    Edit invoice fields and re-snapshot the commission rates.

    Only keys in changes are touched. Rates are always recomputed from the
    resulting client/distributor/file/amount, so an edit picks up the tiers
    and defaults in effect now.
    """
    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise InvoiceValidationError(f"Unknown fields: {sorted(unknown)}")

    if "status" in changes and changes["status"] not in INVOICE_STATUSES:
        raise InvoiceValidationError(f"status must be one of {list(INVOICE_STATUSES)}")

    def _op():
        invoice = get_invoice_scoped(invoice_id, user, owner_scoped)

        if "invoice_code" in changes:
            code = (changes["invoice_code"] or "").strip()
            if not code:
                raise InvoiceValidationError("invoice_code is required")
            _check_code_unique(code, exclude_id=invoice.id)
            invoice.invoice_code = code
        if "client_id" in changes:
            invoice.client_id = changes["client_id"]
        if "file_id" in changes:
            invoice.file_id = changes["file_id"]
        if "assigned_distributor_id" in changes:
            invoice.assigned_distributor_id = changes["assigned_distributor_id"]
        if "invoice_date" in changes:
            invoice.invoice_date = _parse_date(changes["invoice_date"])
        if "amount_cents" in changes:
            invoice.amount_cents = parse_amount_cents(changes["amount_cents"])
        if "status" in changes:
            invoice.status = changes["status"]

        _check_references(invoice.client_id, invoice.file_id, invoice.assigned_distributor_id)
        _apply_snapshot(invoice)

        db.session.commit()
        return invoice

    try:
        return run_with_retry(_op)
    except ValidationError:
        db.session.rollback()
        raise


def delete_invoice(invoice_id: int, user: User, owner_scoped: bool) -> None:
    invoice = get_invoice_scoped(invoice_id, user, owner_scoped)
    db.session.delete(invoice)
    db.session.commit()


def list_invoices(
    user: User,
    owner_scoped: bool,
    *,
    client_id: int | None = None,
    distributor_id: int | None = None,
    company_id: int | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    min_amount_cents: int | None = None,
    max_amount_cents: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Invoice], int]:
    """
    List invoices visible to the user, newest first.

    Returns:
        (invoices, total_count)
    """
    query = filtered_query(
        user,
        owner_scoped,
        client_id=client_id,
        distributor_id=distributor_id,
        company_id=company_id,
        status=status,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        min_amount_cents=min_amount_cents,
        max_amount_cents=max_amount_cents,
    )

    total = query.count()
    invoices = (
        query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return invoices, total


def filtered_query(
    user: User,
    owner_scoped: bool,
    *,
    client_id=None,
    distributor_id=None,
    company_id=None,
    status=None,
    payment_status=None,
    date_from=None,
    date_to=None,
    min_amount_cents=None,
    max_amount_cents=None,
):
    """Shared filter builder for listings and reports."""
    query = scoped_query(user, owner_scoped)

    if client_id is not None:
        query = query.filter(Invoice.client_id == client_id)
    if distributor_id is not None:
        query = query.filter(Invoice.assigned_distributor_id == distributor_id)
    if company_id is not None:
        query = query.join(File, Invoice.file_id == File.id).filter(File.company_id == company_id)
    if status:
        if status not in INVOICE_STATUSES:
            raise InvoiceValidationError(f"status must be one of {list(INVOICE_STATUSES)}")
        query = query.filter(Invoice.status == status)
    if payment_status:
        if payment_status not in payment_service.OVERALL_STATUSES:
            raise InvoiceValidationError(f"payment_status must be one of {list(payment_service.OVERALL_STATUSES)}")
        query = query.filter(*payment_service.overall_status_filter(payment_status))
    if date_from is not None:
        query = query.filter(Invoice.invoice_date >= date_from)
    if date_to is not None:
        query = query.filter(Invoice.invoice_date <= date_to)
    if min_amount_cents is not None:
        query = query.filter(Invoice.amount_cents >= min_amount_cents)
    if max_amount_cents is not None:
        query = query.filter(Invoice.amount_cents <= max_amount_cents)

    return query


def serialize_invoice(invoice: Invoice) -> dict:
    """to_dict plus derived payment and commission figures."""
    data = invoice.to_dict()
    data["overall_payment_status"] = payment_service.overall_payment_status(invoice)
    data["payment_progress"] = payment_service.payment_progress(invoice)
    data["commissions"] = commission_service.calculate_commissions(invoice).to_dict()
    return data
