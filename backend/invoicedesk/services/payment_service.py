# Overview: Service-layer operations for invoice payment stages; encapsulates business logic and database work.

"""
Invoice Payment Stage Machine

WHY: Money for an invoice moves through three ordered legs:

    clientToDistributor -> distributorToAdmin -> adminToCompany

Each leg is Unpaid -> Paid, with who marked it and when.

OVERALL STATUS (projection of the highest paid stage):
    client_pending       nothing paid
    distributor_pending  clientToDistributor paid
    admin_pending        distributorToAdmin paid
    fully_completed      adminToCompany paid

LEGACY STATUS: reaching adminToCompany sets status "completed";
unmarking any stage sets it back to "pending".

WHO MAY MARK:
- admin: any stage on any invoice
- distributor: clientToDistributor only, on invoices assigned to them
Unmarking is admin-only.

ORDERING (Config.STAGE_ORDER_POLICY):
- strict: a stage needs the previous stage paid, for everyone
- admin_override: strict for distributors, admins may mark out of order
- relaxed: no ordering on single marks
Bulk eligibility (bulk_payment_service) always encodes the ordering.
"""

from __future__ import annotations

from flask import current_app

from ..config import STAGE_ORDER_POLICIES, STAGE_ORDER_STRICT, STAGE_ORDER_ADMIN_OVERRIDE
from ..extensions import db
from ..models import Invoice, User
from ..models.invoices import (
    PAYMENT_STAGES,
    STAGE_COLUMN_PREFIX,
    STAGE_CLIENT_TO_DISTRIBUTOR,
    STAGE_DISTRIBUTOR_TO_ADMIN,
    STAGE_ADMIN_TO_COMPANY,
    INVOICE_STATUS_PENDING,
    INVOICE_STATUS_COMPLETED,
)
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import ServiceError, NotFoundError
from .permission_service import PermissionDeniedError, log_security_event


class PaymentStageError(ServiceError):
    """Raised for payment stage transition errors."""
    pass


class InvalidStageError(PaymentStageError):
    code = "INVALID_STAGE"
    http_status = 400


class AlreadyPaidError(PaymentStageError):
    code = "ALREADY_PAID"
    http_status = 409


class StageOrderError(PaymentStageError):
    code = "STAGE_ORDER"
    http_status = 409


class InvoiceNotFoundError(NotFoundError):
    pass


# =============================================================================
# OVERALL STATUS (CONSTANTS)
# =============================================================================

OVERALL_CLIENT_PENDING = "client_pending"
OVERALL_DISTRIBUTOR_PENDING = "distributor_pending"
OVERALL_ADMIN_PENDING = "admin_pending"
OVERALL_FULLY_COMPLETED = "fully_completed"

OVERALL_STATUSES = (
    OVERALL_CLIENT_PENDING,
    OVERALL_DISTRIBUTOR_PENDING,
    OVERALL_ADMIN_PENDING,
    OVERALL_FULLY_COMPLETED,
)


# =============================================================================
# PROJECTIONS
# =============================================================================

def validate_stage(stage: str) -> str:
    if stage not in PAYMENT_STAGES:
        raise InvalidStageError(f"Invalid payment stage: {stage}. Must be one of {list(PAYMENT_STAGES)}")
    return stage


def previous_stage(stage: str) -> str | None:
    index = PAYMENT_STAGES.index(validate_stage(stage))
    return PAYMENT_STAGES[index - 1] if index > 0 else None


def overall_payment_status(invoice: Invoice) -> str:
    if invoice.is_stage_paid(STAGE_ADMIN_TO_COMPANY):
        return OVERALL_FULLY_COMPLETED
    if invoice.is_stage_paid(STAGE_DISTRIBUTOR_TO_ADMIN):
        return OVERALL_ADMIN_PENDING
    if invoice.is_stage_paid(STAGE_CLIENT_TO_DISTRIBUTOR):
        return OVERALL_DISTRIBUTOR_PENDING
    return OVERALL_CLIENT_PENDING


def payment_progress(invoice: Invoice) -> int:
    """Percentage of paid stages (0, 33, 67, 100)."""
    completed = sum(1 for stage in PAYMENT_STAGES if invoice.is_stage_paid(stage))
    return round(completed / len(PAYMENT_STAGES) * 100)


def overall_status_filter(status: str):
    """
    SQL criteria matching an overall status, for list/report filters.

    Mirrors overall_payment_status: the highest paid stage decides, so an
    invoice marked out of order matches exactly one status.
    """
    if status == OVERALL_CLIENT_PENDING:
        return [
            Invoice.client_to_distributor_is_paid.is_(False),
            Invoice.distributor_to_admin_is_paid.is_(False),
            Invoice.admin_to_company_is_paid.is_(False),
        ]
    if status == OVERALL_DISTRIBUTOR_PENDING:
        return [
            Invoice.client_to_distributor_is_paid.is_(True),
            Invoice.distributor_to_admin_is_paid.is_(False),
            Invoice.admin_to_company_is_paid.is_(False),
        ]
    if status == OVERALL_ADMIN_PENDING:
        return [
            Invoice.distributor_to_admin_is_paid.is_(True),
            Invoice.admin_to_company_is_paid.is_(False),
        ]
    if status == OVERALL_FULLY_COMPLETED:
        return [Invoice.admin_to_company_is_paid.is_(True)]
    raise PaymentStageError(f"Invalid payment status filter: {status}")


# =============================================================================
# GUARDS
# =============================================================================

def can_user_mark_stage(invoice: Invoice, user: User, stage: str) -> bool:
    """Authorization rule for marking one stage on one invoice."""
    if user.is_admin:
        return True
    if stage == STAGE_CLIENT_TO_DISTRIBUTOR:
        return invoice.assigned_distributor_id == user.id
    return False


def get_stage_order_policy() -> str:
    policy = current_app.config.get("STAGE_ORDER_POLICY", STAGE_ORDER_ADMIN_OVERRIDE)
    if policy not in STAGE_ORDER_POLICIES:
        raise ValueError(f"Unknown STAGE_ORDER_POLICY: {policy}")
    return policy


def check_stage_order(invoice: Invoice, stage: str, user: User, policy: str) -> None:
    """Raise StageOrderError if policy requires the previous stage first."""
    before = previous_stage(stage)
    if before is None or invoice.is_stage_paid(before):
        return

    if policy == STAGE_ORDER_STRICT or (policy == STAGE_ORDER_ADMIN_OVERRIDE and not user.is_admin):
        raise StageOrderError(f"Stage {before} must be paid before {stage}")


# =============================================================================
# STATE CHANGES (in memory)
# =============================================================================

def apply_mark(invoice: Invoice, stage: str, user: User) -> None:
    prefix = STAGE_COLUMN_PREFIX[stage]
    setattr(invoice, f"{prefix}_is_paid", True)
    setattr(invoice, f"{prefix}_paid_at", utcnow())
    setattr(invoice, f"{prefix}_marked_by_user_id", user.id)

    if invoice.is_stage_paid(STAGE_ADMIN_TO_COMPANY):
        invoice.status = INVOICE_STATUS_COMPLETED


def apply_unmark(invoice: Invoice, stage: str) -> None:
    prefix = STAGE_COLUMN_PREFIX[stage]
    setattr(invoice, f"{prefix}_is_paid", False)
    setattr(invoice, f"{prefix}_paid_at", None)
    setattr(invoice, f"{prefix}_marked_by_user_id", None)
    invoice.status = INVOICE_STATUS_PENDING


# =============================================================================
# TRANSITIONS
# =============================================================================

def mark_stage(
    invoice_id: int,
    stage: str,
    user: User,
    *,
    owner_scoped: bool = False,
    policy: str | None = None,
    resource: str | None = None,
) -> Invoice:
    """
    Mark one payment stage as paid.

    Args:
        invoice_id: Invoice to update
        stage: clientToDistributor, distributorToAdmin or adminToCompany
        user: Acting user, recorded as marked_by
        owner_scoped: Restrict the lookup to invoices assigned to user
        policy: Stage order policy (defaults to app config)

    Raises:
        InvalidStageError: unknown stage
        InvoiceNotFoundError: missing or outside the user's scope
        PermissionDeniedError: user may not mark this stage on this invoice
        AlreadyPaidError: stage already paid (state unchanged)
        StageOrderError: previous stage unpaid and policy requires it
    """
    validate_stage(stage)
    policy = policy or get_stage_order_policy()

    def _op():
        query = db.session.query(Invoice).filter(Invoice.id == invoice_id)
        if owner_scoped:
            query = query.filter(Invoice.assigned_distributor_id == user.id)

        invoice = lock_for_update(query).first()
        if not invoice:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")

        if not can_user_mark_stage(invoice, user, stage):
            db.session.rollback()
            log_security_event(
                user_id=user.id,
                event_type="PERMISSION_DENIED",
                success=False,
                resource=resource or f"invoice:{invoice_id}",
                action=f"mark:{stage}",
                reason=f"User {user.id} may not mark {stage} on invoice {invoice_id}",
            )
            raise PermissionDeniedError(f"Not allowed to mark {stage} on this invoice")

        if invoice.is_stage_paid(stage):
            raise AlreadyPaidError(f"Stage {stage} is already paid")

        check_stage_order(invoice, stage, user, policy)

        apply_mark(invoice, stage, user)
        log_security_event(
            user_id=user.id,
            event_type="PAYMENT_STAGE_MARKED",
            success=True,
            resource=resource or f"invoice:{invoice_id}",
            action=f"mark:{stage}",
            commit=False,
        )
        db.session.commit()
        return invoice

    try:
        return run_with_retry(_op)
    except ServiceError:
        db.session.rollback()
        raise


def unmark_stage(invoice_id: int, stage: str, user: User, *, resource: str | None = None) -> Invoice:
    """
    Clear one payment stage (admin-only, no ownership check).

    Raises:
        InvalidStageError: unknown stage
        PermissionDeniedError: user is not an admin
        InvoiceNotFoundError: invoice missing
    """
    validate_stage(stage)

    if not user.is_admin:
        log_security_event(
            user_id=user.id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=resource or f"invoice:{invoice_id}",
            action=f"unmark:{stage}",
            reason="Only administrators can unmark payment stages",
        )
        raise PermissionDeniedError("Only administrators can unmark payment stages")

    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter(Invoice.id == invoice_id)).first()
        if not invoice:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")

        apply_unmark(invoice, stage)
        log_security_event(
            user_id=user.id,
            event_type="PAYMENT_STAGE_UNMARKED",
            success=True,
            resource=resource or f"invoice:{invoice_id}",
            action=f"unmark:{stage}",
            commit=False,
        )
        db.session.commit()
        return invoice

    return run_with_retry(_op)
