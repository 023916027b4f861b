"""
Payment stage machine tests.

Verifies:
- Assigned distributor marks the client stage; others are rejected
- Marking a paid stage again fails and leaves the invoice untouched
- Final stage drives the legacy status; unmarking resets it
- Stage order policies (strict, admin_override, relaxed)
"""

import pytest
from sqlalchemy.orm import Session

from invoicedesk.config import STAGE_ORDER_ADMIN_OVERRIDE, STAGE_ORDER_RELAXED, STAGE_ORDER_STRICT
from invoicedesk.extensions import db
from invoicedesk.models import Invoice, SecurityEvent
from invoicedesk.models.invoices import (
    STAGE_CLIENT_TO_DISTRIBUTOR,
    STAGE_DISTRIBUTOR_TO_ADMIN,
    STAGE_ADMIN_TO_COMPANY,
)
from invoicedesk.services import payment_service
from invoicedesk.services.payment_service import (
    AlreadyPaidError,
    InvalidStageError,
    InvoiceNotFoundError,
    StageOrderError,
)
from invoicedesk.services.permission_service import PermissionDeniedError


def _pay_all(invoice_id, admin):
    for stage in (STAGE_CLIENT_TO_DISTRIBUTOR, STAGE_DISTRIBUTOR_TO_ADMIN, STAGE_ADMIN_TO_COMPANY):
        payment_service.mark_stage(invoice_id, stage, admin)


# =============================================================================
# DISTRIBUTOR MARKS
# =============================================================================


class TestDistributorMarks:

    def test_assigned_distributor_marks_client_stage(self, make_invoice, distributor):
        invoice = make_invoice()

        invoice = payment_service.mark_stage(invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, distributor)

        state = invoice.stage_state(STAGE_CLIENT_TO_DISTRIBUTOR)
        assert state["is_paid"] is True
        assert state["marked_by_user_id"] == distributor.id
        assert state["paid_at"] is not None
        assert payment_service.overall_payment_status(invoice) == "distributor_pending"
        assert payment_service.payment_progress(invoice) == 33

    def test_other_distributor_is_rejected(self, make_invoice, other_distributor):
        invoice = make_invoice()

        with pytest.raises(PermissionDeniedError) as exc:
            payment_service.mark_stage(invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, other_distributor)
        assert exc.value.code == "NOT_AUTHORIZED"

        db.session.refresh(invoice)
        assert not invoice.is_stage_paid(STAGE_CLIENT_TO_DISTRIBUTOR)
        assert db.session.query(SecurityEvent).filter_by(
            user_id=other_distributor.id, event_type="PERMISSION_DENIED"
        ).count() == 1

    def test_distributor_cannot_mark_later_stages(self, make_invoice, distributor, admin):
        invoice = make_invoice()
        payment_service.mark_stage(invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, distributor)

        with pytest.raises(PermissionDeniedError):
            payment_service.mark_stage(invoice.id, STAGE_DISTRIBUTOR_TO_ADMIN, distributor)

    def test_owner_scoped_lookup_hides_foreign_invoice(self, make_invoice, other_distributor):
        invoice = make_invoice()

        with pytest.raises(InvoiceNotFoundError) as exc:
            payment_service.mark_stage(
                invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, other_distributor, owner_scoped=True
            )
        assert exc.value.code == "NOT_FOUND"


# =============================================================================
# GUARDS
# =============================================================================


class TestGuards:

    def test_second_mark_is_rejected_and_state_kept(self, make_invoice, distributor, admin):
        invoice = make_invoice()
        invoice = payment_service.mark_stage(invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, distributor)
        first_paid_at = invoice.client_to_distributor_paid_at

        with pytest.raises(AlreadyPaidError) as exc:
            payment_service.mark_stage(invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, admin)
        assert exc.value.code == "ALREADY_PAID"

        db.session.refresh(invoice)
        assert invoice.client_to_distributor_marked_by_user_id == distributor.id
        assert invoice.client_to_distributor_paid_at == first_paid_at

    def test_unknown_stage(self, make_invoice, admin):
        invoice = make_invoice()
        with pytest.raises(InvalidStageError) as exc:
            payment_service.mark_stage(invoice.id, "companyToMoon", admin)
        assert exc.value.code == "INVALID_STAGE"

    def test_missing_invoice(self, admin):
        with pytest.raises(InvoiceNotFoundError):
            payment_service.mark_stage(987654, STAGE_CLIENT_TO_DISTRIBUTOR, admin)

    def test_mark_is_audited(self, make_invoice, admin):
        invoice = make_invoice()
        payment_service.mark_stage(invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, admin)

        event = db.session.query(SecurityEvent).filter_by(event_type="PAYMENT_STAGE_MARKED").one()
        assert event.user_id == admin.id
        assert event.action == f"mark:{STAGE_CLIENT_TO_DISTRIBUTOR}"

    def test_concurrent_mark_loses_with_already_paid(self, make_invoice, distributor, admin, monkeypatch):
        invoice = make_invoice()
        invoice_id, rival_id = invoice.id, distributor.id
        real_apply = payment_service.apply_mark
        raced = {"done": False}

        def apply_after_rival_commits(target, stage, user):
            # Another writer marks the same stage between our read and our flush
            if not raced["done"]:
                raced["done"] = True
                other = Session(bind=db.engine)
                try:
                    real_apply(other.get(Invoice, invoice_id), stage, distributor)
                    other.commit()
                finally:
                    other.close()
            real_apply(target, stage, user)

        monkeypatch.setattr(payment_service, "apply_mark", apply_after_rival_commits)

        with pytest.raises(AlreadyPaidError):
            payment_service.mark_stage(invoice_id, STAGE_CLIENT_TO_DISTRIBUTOR, admin)

        db.session.expire_all()
        invoice = db.session.get(Invoice, invoice_id)
        assert invoice.client_to_distributor_marked_by_user_id == rival_id
        assert db.session.query(SecurityEvent).filter_by(event_type="PAYMENT_STAGE_MARKED").count() == 0


# =============================================================================
# LEGACY STATUS
# =============================================================================


class TestLegacyStatus:

    def test_final_stage_completes_invoice(self, make_invoice, admin):
        invoice = make_invoice()
        _pay_all(invoice.id, admin)

        db.session.refresh(invoice)
        assert invoice.status == "completed"
        assert payment_service.overall_payment_status(invoice) == "fully_completed"
        assert payment_service.payment_progress(invoice) == 100

    def test_unmark_resets_status(self, make_invoice, admin):
        invoice = make_invoice()
        _pay_all(invoice.id, admin)

        invoice = payment_service.unmark_stage(invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, admin)

        assert invoice.status == "pending"
        state = invoice.stage_state(STAGE_CLIENT_TO_DISTRIBUTOR)
        assert state == {"is_paid": False, "paid_at": None, "marked_by_user_id": None}

    def test_unmark_is_admin_only(self, make_invoice, distributor):
        invoice = make_invoice()
        payment_service.mark_stage(invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, distributor)

        with pytest.raises(PermissionDeniedError):
            payment_service.unmark_stage(invoice.id, STAGE_CLIENT_TO_DISTRIBUTOR, distributor)


# =============================================================================
# STAGE ORDER POLICY
# =============================================================================


class TestStageOrder:

    def test_strict_blocks_admin_out_of_order(self, make_invoice, admin):
        invoice = make_invoice()
        with pytest.raises(StageOrderError) as exc:
            payment_service.mark_stage(invoice.id, STAGE_DISTRIBUTOR_TO_ADMIN, admin, policy=STAGE_ORDER_STRICT)
        assert exc.value.code == "STAGE_ORDER"

    def test_admin_override_lets_admin_skip(self, make_invoice, admin):
        invoice = make_invoice()
        invoice = payment_service.mark_stage(
            invoice.id, STAGE_ADMIN_TO_COMPANY, admin, policy=STAGE_ORDER_ADMIN_OVERRIDE
        )
        assert invoice.is_stage_paid(STAGE_ADMIN_TO_COMPANY)
        assert invoice.status == "completed"

    def test_relaxed_allows_any_order(self, make_invoice, admin):
        invoice = make_invoice()
        invoice = payment_service.mark_stage(
            invoice.id, STAGE_DISTRIBUTOR_TO_ADMIN, admin, policy=STAGE_ORDER_RELAXED
        )
        assert invoice.is_stage_paid(STAGE_DISTRIBUTOR_TO_ADMIN)
        assert payment_service.overall_payment_status(invoice) == "admin_pending"

    def test_default_policy_comes_from_config(self, app):
        assert payment_service.get_stage_order_policy() == STAGE_ORDER_ADMIN_OVERRIDE

    def test_first_stage_has_no_predecessor(self):
        assert payment_service.previous_stage(STAGE_CLIENT_TO_DISTRIBUTOR) is None
        assert payment_service.previous_stage(STAGE_ADMIN_TO_COMPANY) == STAGE_DISTRIBUTOR_TO_ADMIN
