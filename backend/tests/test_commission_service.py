"""
Commission rate resolution tests.

Verifies:
- Tier rate wins over the entity default, default over nothing
- Missing entities resolve to 0
- Overlapping tiers are rejected on write
- Invoices keep their rate snapshot until edited
- Commission amounts round half-up to the cent
"""

from decimal import Decimal

import pytest

from invoicedesk.extensions import db
from invoicedesk.models import CommissionTier
from invoicedesk.services import commission_service, invoice_service
from invoicedesk.services.commission_service import CommissionTierError
from invoicedesk.services.errors import ValidationError


# =============================================================================
# RESOLUTION
# =============================================================================


class TestResolveRate:

    def test_default_rate_without_tier(self, customer):
        assert commission_service.resolve_rate("client", customer.id, 100000) == Decimal("2")

    def test_tier_rate_overrides_default(self, customer):
        commission_service.create_tier("client", customer.id, 5, min_amount_cents=0, max_amount_cents=500000)
        assert commission_service.resolve_rate("client", customer.id, 100000) == Decimal("5")

    def test_amount_outside_tier_falls_back_to_default(self, customer):
        commission_service.create_tier("client", customer.id, 5, min_amount_cents=0, max_amount_cents=50000)
        assert commission_service.resolve_rate("client", customer.id, 50001) == Decimal("2")

    def test_tier_bounds_are_inclusive(self, customer):
        commission_service.create_tier("client", customer.id, 7, min_amount_cents=1000, max_amount_cents=2000)
        assert commission_service.resolve_rate("client", customer.id, 1000) == Decimal("7")
        assert commission_service.resolve_rate("client", customer.id, 2000) == Decimal("7")
        assert commission_service.resolve_rate("client", customer.id, 999) == Decimal("2")

    def test_unbounded_tier(self, distributor):
        commission_service.create_tier("distributor", distributor.id, 1.5, min_amount_cents=1000000)
        assert commission_service.resolve_rate("distributor", distributor.id, 99999999) == Decimal("1.5")

    def test_inactive_tier_is_ignored(self, customer):
        tier = commission_service.create_tier("client", customer.id, 9)
        commission_service.deactivate_tier(tier)
        assert commission_service.resolve_rate("client", customer.id, 100) == Decimal("2")

    def test_missing_entity_resolves_to_zero(self, seed):
        assert commission_service.resolve_rate("company", 424242, 1000) == Decimal("0")
        assert commission_service.resolve_rate("company", None, 1000) == Decimal("0")

    def test_unknown_entity_type(self, seed):
        with pytest.raises(ValueError):
            commission_service.resolve_rate("vendor", 1, 1000)

    def test_legacy_overlap_uses_highest_min(self, customer, db_session):
        # Written directly: the service refuses overlapping tiers
        db_session.add_all([
            CommissionTier(entity_type="client", entity_id=customer.id, min_amount_cents=0, rate=3, is_active=True),
            CommissionTier(entity_type="client", entity_id=customer.id, min_amount_cents=500, rate=4, is_active=True),
        ])
        db_session.commit()

        assert commission_service.resolve_rate("client", customer.id, 1000) == Decimal("4")

    def test_invoice_rates_follow_file_company(self, customer, distributor, work_file):
        snapshot = commission_service.resolve_invoice_rates(customer.id, distributor.id, work_file.id, 100000)
        assert snapshot.client_rate == Decimal("2")
        assert snapshot.distributor_rate == Decimal("3")
        assert snapshot.company_rate == Decimal("5")


# =============================================================================
# TIER MANAGEMENT
# =============================================================================


class TestTiers:

    def test_overlap_rejected(self, customer):
        commission_service.create_tier("client", customer.id, 5, min_amount_cents=0, max_amount_cents=1000)
        with pytest.raises(CommissionTierError):
            commission_service.create_tier("client", customer.id, 6, min_amount_cents=1000, max_amount_cents=2000)

    def test_adjacent_ranges_allowed(self, customer):
        commission_service.create_tier("client", customer.id, 5, min_amount_cents=0, max_amount_cents=999)
        commission_service.create_tier("client", customer.id, 6, min_amount_cents=1000)
        assert len(commission_service.list_tiers("client", customer.id)) == 2

    def test_bad_bounds_rejected(self, customer):
        with pytest.raises(CommissionTierError):
            commission_service.create_tier("client", customer.id, 5, min_amount_cents=2000, max_amount_cents=1000)

    def test_rate_out_of_range_rejected(self, customer):
        with pytest.raises(ValidationError):
            commission_service.create_tier("client", customer.id, 150)

    def test_update_keeps_bound_when_omitted(self, customer):
        tier = commission_service.create_tier("client", customer.id, 5, min_amount_cents=0, max_amount_cents=1000)
        commission_service.update_tier(tier, rate=6)
        assert tier.max_amount_cents == 1000
        assert tier.rate == Decimal("6")

        commission_service.update_tier(tier, max_amount_cents=None)
        assert tier.max_amount_cents is None


# =============================================================================
# SNAPSHOT AND AMOUNTS
# =============================================================================


class TestSnapshot:

    def test_tier_change_does_not_touch_saved_invoice(self, customer, make_invoice, admin):
        tier = commission_service.create_tier("client", customer.id, 5)
        invoice = make_invoice(amount_cents=100000)
        assert invoice.client_commission_rate == Decimal("5")

        commission_service.update_tier(tier, rate=8)
        db.session.refresh(invoice)
        assert invoice.client_commission_rate == Decimal("5")

        invoice = invoice_service.update_invoice(invoice.id, admin, False, {"amount_cents": 100000})
        assert invoice.client_commission_rate == Decimal("8")

    def test_breakdown_and_net_profit(self, make_invoice):
        invoice = make_invoice(amount_cents=100000)
        breakdown = commission_service.calculate_commissions(invoice)

        assert breakdown.client_commission_cents == 2000
        assert breakdown.distributor_commission_cents == 3000
        assert breakdown.company_commission_cents == 5000
        assert breakdown.net_profit_cents == 90000

    def test_half_up_rounding(self):
        assert commission_service.commission_cents(1050, Decimal("5")) == 53   # 52.5
        assert commission_service.commission_cents(1049, Decimal("5")) == 52   # 52.45
        assert commission_service.commission_cents(333, Decimal("1.5")) == 5   # 4.995
