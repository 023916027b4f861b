# Overview: Service-layer operations for cohort-wide payment stage advances.

"""
Bulk Payment Scanner

A cohort is every invoice eligible for one stage advance against one
counterparty:

    clientToDistributor  scope = client       distributor only, own invoices
    distributorToAdmin   scope = distributor  admin only, stage 1 paid
    adminToCompany       scope = company      admin only, stage 2 paid
                                              (Invoice -> File -> Company)

bulk_apply marks each invoice through payment_service.mark_stage, one
commit per invoice. It is NOT atomic across the cohort: a failure stops
the loop and the result reports how many were already paid. Re-running
picks up the remainder because paid invoices drop out of the cohort.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Client, Company, File, Invoice, User
from ..models.invoices import (
    STAGE_CLIENT_TO_DISTRIBUTOR,
    STAGE_DISTRIBUTOR_TO_ADMIN,
    STAGE_ADMIN_TO_COMPANY,
)
from . import payment_service
from .errors import ServiceError, ValidationError
from .permission_service import PermissionDeniedError, log_security_event


RESULT_PAID = "PAID"
RESULT_PARTIAL = "PARTIAL"
RESULT_NOTHING_TO_PAY = "NOTHING_TO_PAY"

SCOPE_CLIENT = "client"
SCOPE_DISTRIBUTOR = "distributor"
SCOPE_COMPANY = "company"

# Stage -> counterparty the cohort is grouped by
STAGE_SCOPE = {
    STAGE_CLIENT_TO_DISTRIBUTOR: SCOPE_CLIENT,
    STAGE_DISTRIBUTOR_TO_ADMIN: SCOPE_DISTRIBUTOR,
    STAGE_ADMIN_TO_COMPANY: SCOPE_COMPANY,
}


@dataclass
class BulkPaymentResult:
    stage: str
    updated_count: int
    eligible_count: int
    counterparty_name: str | None
    code: str
    failed_invoice_id: int | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "updated_count": self.updated_count,
            "eligible_count": self.eligible_count,
            "counterparty_name": self.counterparty_name,
            "code": self.code,
            "failed_invoice_id": self.failed_invoice_id,
            "error": self.error,
        }


def scope_type_for(stage: str) -> str:
    return STAGE_SCOPE[payment_service.validate_stage(stage)]


def _check_actor(stage: str, actor: User) -> None:
    """Client cohorts belong to distributors; the other two to admins."""
    if stage == STAGE_CLIENT_TO_DISTRIBUTOR:
        allowed = not actor.is_admin
    else:
        allowed = actor.is_admin

    if not allowed:
        log_security_event(
            user_id=actor.id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=f"bulk:{stage}",
            action="bulk_pay",
            reason=f"Role {actor.role} may not bulk-pay {stage}",
        )
        raise PermissionDeniedError(f"Not allowed to bulk-pay {stage}")


def eligible_query(stage: str, scope_id: int, actor: User):
    """Eligibility predicate for one cohort, as an unexecuted query."""
    query = db.session.query(Invoice)

    if stage == STAGE_CLIENT_TO_DISTRIBUTOR:
        return query.filter(
            Invoice.assigned_distributor_id == actor.id,
            Invoice.client_id == scope_id,
            Invoice.client_to_distributor_is_paid.is_(False),
        )

    if stage == STAGE_DISTRIBUTOR_TO_ADMIN:
        return query.filter(
            Invoice.assigned_distributor_id == scope_id,
            Invoice.client_to_distributor_is_paid.is_(True),
            Invoice.distributor_to_admin_is_paid.is_(False),
        )

    return (
        query.join(File, Invoice.file_id == File.id)
        .filter(
            File.company_id == scope_id,
            Invoice.distributor_to_admin_is_paid.is_(True),
            Invoice.admin_to_company_is_paid.is_(False),
        )
    )


def find_eligible(stage: str, scope_id: int, actor: User, scope_type: str | None = None) -> list[Invoice]:
    """
    Invoices eligible for advancing `stage` against one counterparty.

    scope_type is implied by the stage; when given it must match.

    Raises:
        InvalidStageError: unknown stage
        ValidationError: scope_type does not match the stage
        PermissionDeniedError: actor may not use this cohort path
    """
    expected = scope_type_for(stage)
    if scope_type is not None and scope_type != expected:
        raise ValidationError(f"Stage {stage} is scoped by {expected}, not {scope_type}")

    _check_actor(stage, actor)
    return eligible_query(stage, scope_id, actor).order_by(Invoice.id).all()


def counterparty_name(stage: str, scope_id: int) -> str | None:
    scope = scope_type_for(stage)
    if scope == SCOPE_CLIENT:
        entity = db.session.get(Client, scope_id)
        return entity.full_name if entity else None
    if scope == SCOPE_DISTRIBUTOR:
        entity = db.session.get(User, scope_id)
        return entity.username if entity else None
    entity = db.session.get(Company, scope_id)
    return entity.name if entity else None


def bulk_apply(stage: str, scope_id: int, actor: User) -> BulkPaymentResult:
    """
    Mark `stage` paid on every eligible invoice, sequentially.

    Each invoice goes through payment_service.mark_stage with `actor` as
    marked_by and commits on its own. The first failure stops the loop;
    invoices already marked stay marked and the result code is PARTIAL.
    """
    invoices = find_eligible(stage, scope_id, actor)
    name = counterparty_name(stage, scope_id)

    if not invoices:
        return BulkPaymentResult(
            stage=stage,
            updated_count=0,
            eligible_count=0,
            counterparty_name=name,
            code=RESULT_NOTHING_TO_PAY,
        )

    # Eligibility already encodes the stage order
    policy = payment_service.get_stage_order_policy()
    invoice_ids = [invoice.id for invoice in invoices]

    updated = 0
    for invoice_id in invoice_ids:
        try:
            payment_service.mark_stage(
                invoice_id,
                stage,
                actor,
                policy=policy,
                resource=f"bulk:{stage}:{scope_id}",
            )
        except ServiceError as exc:
            current_app.logger.warning(
                "Bulk %s for %s stopped at invoice %s after %s of %s: %s",
                stage, scope_id, invoice_id, updated, len(invoice_ids), exc.code,
            )
            return BulkPaymentResult(
                stage=stage,
                updated_count=updated,
                eligible_count=len(invoice_ids),
                counterparty_name=name,
                code=RESULT_PARTIAL,
                failed_invoice_id=invoice_id,
                error=exc.code,
            )
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(
                "Bulk %s for %s failed at invoice %s after %s of %s",
                stage, scope_id, invoice_id, updated, len(invoice_ids),
            )
            return BulkPaymentResult(
                stage=stage,
                updated_count=updated,
                eligible_count=len(invoice_ids),
                counterparty_name=name,
                code=RESULT_PARTIAL,
                failed_invoice_id=invoice_id,
                error="DATABASE_ERROR",
            )
        updated += 1

    return BulkPaymentResult(
        stage=stage,
        updated_count=updated,
        eligible_count=len(invoice_ids),
        counterparty_name=name,
        code=RESULT_PAID,
    )


# =============================================================================
# DASHBOARD COHORTS
# =============================================================================

def _client_cohorts(distributor_id: int) -> list[dict]:
    rows = (
        db.session.query(
            Client.id,
            Client.full_name,
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.amount_cents), 0),
        )
        .join(Invoice, Invoice.client_id == Client.id)
        .filter(
            Invoice.assigned_distributor_id == distributor_id,
            Invoice.client_to_distributor_is_paid.is_(False),
        )
        .group_by(Client.id, Client.full_name)
        .order_by(Client.full_name)
        .all()
    )
    return [
        {"client_id": cid, "client_name": name, "unpaid_count": count, "total_amount_cents": int(total)}
        for cid, name, count, total in rows
    ]


def _distributor_cohorts() -> list[dict]:
    rows = (
        db.session.query(
            User.id,
            User.username,
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.amount_cents), 0),
        )
        .join(Invoice, Invoice.assigned_distributor_id == User.id)
        .filter(
            Invoice.client_to_distributor_is_paid.is_(True),
            Invoice.distributor_to_admin_is_paid.is_(False),
        )
        .group_by(User.id, User.username)
        .order_by(User.username)
        .all()
    )
    return [
        {"distributor_id": uid, "distributor_name": name, "unpaid_count": count, "total_amount_cents": int(total)}
        for uid, name, count, total in rows
    ]


def _company_cohorts() -> list[dict]:
    rows = (
        db.session.query(
            Company.id,
            Company.name,
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.amount_cents), 0),
        )
        .join(File, File.company_id == Company.id)
        .join(Invoice, Invoice.file_id == File.id)
        .filter(
            Invoice.distributor_to_admin_is_paid.is_(True),
            Invoice.admin_to_company_is_paid.is_(False),
        )
        .group_by(Company.id, Company.name)
        .order_by(Company.name)
        .all()
    )
    return [
        {"company_id": cid, "company_name": name, "unpaid_count": count, "total_amount_cents": int(total)}
        for cid, name, count, total in rows
    ]


def summarize_cohorts(actor: User) -> dict:
    """
    Bulk-payment cohorts visible to the actor.

    Admins see distributor and company cohorts; distributors see their
    own client cohorts.
    """
    if actor.is_admin:
        return {
            "clients": [],
            "distributors": _distributor_cohorts(),
            "companies": _company_cohorts(),
        }
    return {
        "clients": _client_cohorts(actor.id),
        "distributors": [],
        "companies": [],
    }
