# Overview: Service-layer operations for commission rates and tiers.

"""
Commission Rate Resolution

WHY: Every invoice stores three commission rates (client, distributor,
company) captured at save time. Historical invoices keep their rates when
tiers or defaults change later.

RESOLUTION (per leg):
1. Active tier of the entity whose amount range contains the amount -> its rate
2. No tier -> the entity's default commission_rate
3. Entity missing -> 0

A call resolves to exactly one rate. Tiers are never blended.

MONEY: amounts are integer cents; rates are Decimal percentages; commission
amounts are rounded half-up to the cent.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from flask import current_app

from ..extensions import db
from ..models import Client, Company, CommissionTier, File, Invoice, User
from .errors import NotFoundError, ValidationError


ENTITY_CLIENT = "client"
ENTITY_DISTRIBUTOR = "distributor"
ENTITY_COMPANY = "company"

ENTITY_TYPES = (ENTITY_CLIENT, ENTITY_DISTRIBUTOR, ENTITY_COMPANY)

_ENTITY_MODELS = {
    ENTITY_CLIENT: Client,
    ENTITY_DISTRIBUTOR: User,
    ENTITY_COMPANY: Company,
}

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MAX_RATE = Decimal("100")


class CommissionTierError(ValidationError):
    """Raised for invalid or overlapping tier definitions."""
    pass


@dataclass(frozen=True)
class RateSnapshot:
    """The three rates captured onto an invoice at one instant."""
    client_rate: Decimal
    distributor_rate: Decimal
    company_rate: Decimal

    def to_dict(self) -> dict:
        return {
            "client_rate": float(self.client_rate),
            "distributor_rate": float(self.distributor_rate),
            "company_rate": float(self.company_rate),
        }


@dataclass(frozen=True)
class CommissionBreakdown:
    """Commission amounts for one invoice, in cents."""
    amount_cents: int
    client_commission_cents: int
    distributor_commission_cents: int
    company_commission_cents: int

    @property
    def net_profit_cents(self) -> int:
        return (
            self.amount_cents
            - self.client_commission_cents
            - self.distributor_commission_cents
            - self.company_commission_cents
        )

    def to_dict(self) -> dict:
        return {
            "amount_cents": self.amount_cents,
            "client_commission_cents": self.client_commission_cents,
            "distributor_commission_cents": self.distributor_commission_cents,
            "company_commission_cents": self.company_commission_cents,
            "net_profit_cents": self.net_profit_cents,
        }


def to_rate(value) -> Decimal:
    """Parse a percentage into a Decimal in [0, 100]."""
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid commission rate: {value!r}")
    if not rate.is_finite() or rate < ZERO or rate > MAX_RATE:
        raise ValidationError("Commission rate must be between 0 and 100")
    return rate


def commission_cents(amount_cents: int, rate) -> int:
    """amount * rate / 100, rounded half-up to the cent."""
    value = Decimal(amount_cents) * Decimal(str(rate)) / HUNDRED
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# RESOLUTION
# =============================================================================

def _check_entity_type(entity_type: str) -> None:
    if entity_type not in ENTITY_TYPES:
        raise ValueError(f"Unknown commission entity type: {entity_type}")


def find_tier(entity_type: str, entity_id: int, amount_cents: int) -> CommissionTier | None:
    """
    Return the active tier containing amount_cents, or None.

    Overlaps are rejected on write; if older data still has more than one
    match, the tier with the highest lower bound wins.
    """
    _check_entity_type(entity_type)
    tiers = (
        db.session.query(CommissionTier)
        .filter(
            CommissionTier.entity_type == entity_type,
            CommissionTier.entity_id == entity_id,
            CommissionTier.is_active.is_(True),
            CommissionTier.min_amount_cents <= amount_cents,
            db.or_(
                CommissionTier.max_amount_cents.is_(None),
                CommissionTier.max_amount_cents >= amount_cents,
            ),
        )
        .order_by(CommissionTier.min_amount_cents.desc(), CommissionTier.id.desc())
        .all()
    )

    if not tiers:
        return None
    if len(tiers) > 1:
        current_app.logger.warning(
            "Overlapping commission tiers for %s %s at %s cents: %s; using tier %s",
            entity_type, entity_id, amount_cents, [t.id for t in tiers], tiers[0].id,
        )
    return tiers[0]


def resolve_rate(entity_type: str, entity_id: int | None, amount_cents: int) -> Decimal:
    """
    Resolve the commission percentage for one entity and amount.

    Missing entity resolves to 0 rather than raising.
    """
    _check_entity_type(entity_type)
    if entity_id is None:
        return ZERO

    tier = find_tier(entity_type, entity_id, amount_cents)
    if tier is not None:
        return Decimal(tier.rate)

    entity = db.session.get(_ENTITY_MODELS[entity_type], entity_id)
    if entity is None:
        return ZERO
    return Decimal(entity.commission_rate or 0)


def resolve_invoice_rates(
    client_id: int,
    distributor_id: int,
    file_id: int,
    amount_cents: int,
) -> RateSnapshot:
    """
    Resolve all three legs for an invoice amount.

    The company leg goes through File -> Company; a missing file or company
    resolves to 0. Any exception aborts the whole snapshot, so callers never
    store a partial set of rates.
    """
    client_rate = resolve_rate(ENTITY_CLIENT, client_id, amount_cents)
    distributor_rate = resolve_rate(ENTITY_DISTRIBUTOR, distributor_id, amount_cents)

    file = db.session.get(File, file_id) if file_id is not None else None
    company_id = file.company_id if file else None
    company_rate = resolve_rate(ENTITY_COMPANY, company_id, amount_cents)

    return RateSnapshot(
        client_rate=client_rate,
        distributor_rate=distributor_rate,
        company_rate=company_rate,
    )


def calculate_commissions(invoice: Invoice) -> CommissionBreakdown:
    """Commission amounts from the invoice's stored rate snapshot."""
    amount = invoice.amount_cents or 0
    return CommissionBreakdown(
        amount_cents=amount,
        client_commission_cents=commission_cents(amount, invoice.client_commission_rate),
        distributor_commission_cents=commission_cents(amount, invoice.distributor_commission_rate),
        company_commission_cents=commission_cents(amount, invoice.company_commission_rate),
    )


def preview_commissions(client_id, distributor_id, file_id, amount_cents: int) -> dict:
    """Rates and amounts an invoice would get if saved now (read-only)."""
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("Amount must be positive")

    snapshot = resolve_invoice_rates(client_id, distributor_id, file_id, amount_cents)
    return {
        **snapshot.to_dict(),
        "client_commission_cents": commission_cents(amount_cents, snapshot.client_rate),
        "distributor_commission_cents": commission_cents(amount_cents, snapshot.distributor_rate),
        "company_commission_cents": commission_cents(amount_cents, snapshot.company_rate),
    }


# =============================================================================
# TIER MANAGEMENT
# =============================================================================

def _validate_bounds(min_amount_cents, max_amount_cents) -> tuple[int, int | None]:
    try:
        lower = int(min_amount_cents or 0)
        upper = int(max_amount_cents) if max_amount_cents is not None else None
    except (TypeError, ValueError):
        raise CommissionTierError("Tier bounds must be integers (cents)")

    if lower < 0:
        raise CommissionTierError("min_amount_cents cannot be negative")
    if upper is not None and upper < lower:
        raise CommissionTierError("max_amount_cents must be >= min_amount_cents")
    return lower, upper


def _ranges_overlap(a_min: int, a_max: int | None, b_min: int, b_max: int | None) -> bool:
    a_upper = a_max if a_max is not None else float("inf")
    b_upper = b_max if b_max is not None else float("inf")
    return a_min <= b_upper and b_min <= a_upper


def _check_overlap(entity_type, entity_id, lower, upper, exclude_id=None) -> None:
    query = db.session.query(CommissionTier).filter(
        CommissionTier.entity_type == entity_type,
        CommissionTier.entity_id == entity_id,
        CommissionTier.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(CommissionTier.id != exclude_id)

    for tier in query.all():
        if _ranges_overlap(lower, upper, tier.min_amount_cents, tier.max_amount_cents):
            raise CommissionTierError(f"Tier overlaps existing tier {tier.id}")


def create_tier(
    entity_type: str,
    entity_id: int,
    rate,
    min_amount_cents: int = 0,
    max_amount_cents: int | None = None,
    created_by_user_id: int | None = None,
) -> CommissionTier:
    """Create an active tier. Rejects unknown entities and overlapping ranges."""
    if entity_type not in ENTITY_TYPES:
        raise CommissionTierError(f"entity_type must be one of {list(ENTITY_TYPES)}")
    if db.session.get(_ENTITY_MODELS[entity_type], entity_id) is None:
        raise NotFoundError(f"{entity_type} {entity_id} not found")

    lower, upper = _validate_bounds(min_amount_cents, max_amount_cents)
    _check_overlap(entity_type, entity_id, lower, upper)

    tier = CommissionTier(
        entity_type=entity_type,
        entity_id=entity_id,
        min_amount_cents=lower,
        max_amount_cents=upper,
        rate=to_rate(rate),
        is_active=True,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(tier)
    db.session.commit()
    return tier


def update_tier(tier: CommissionTier, *, rate=None, min_amount_cents=None, max_amount_cents=..., is_active=None) -> CommissionTier:
    """
    Update a tier in place. max_amount_cents=None means unbounded; leave it
    out (Ellipsis) to keep the current bound.

    Existing invoices are unaffected: their rates are snapshots.
    """
    lower = tier.min_amount_cents if min_amount_cents is None else min_amount_cents
    upper = tier.max_amount_cents if max_amount_cents is ... else max_amount_cents
    lower, upper = _validate_bounds(lower, upper)

    active = tier.is_active if is_active is None else bool(is_active)
    if active:
        _check_overlap(tier.entity_type, tier.entity_id, lower, upper, exclude_id=tier.id)

    tier.min_amount_cents = lower
    tier.max_amount_cents = upper
    tier.is_active = active
    if rate is not None:
        tier.rate = to_rate(rate)

    db.session.commit()
    return tier


def deactivate_tier(tier: CommissionTier) -> CommissionTier:
    tier.is_active = False
    db.session.commit()
    return tier


def list_tiers(entity_type: str | None = None, entity_id: int | None = None, include_inactive: bool = False, created_by_user_id: int | None = None):
    query = db.session.query(CommissionTier)
    if entity_type:
        query = query.filter(CommissionTier.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(CommissionTier.entity_id == entity_id)
    if not include_inactive:
        query = query.filter(CommissionTier.is_active.is_(True))
    if created_by_user_id is not None:
        query = query.filter(CommissionTier.created_by_user_id == created_by_user_id)
    return query.order_by(
        CommissionTier.entity_type,
        CommissionTier.entity_id,
        CommissionTier.min_amount_cents,
    ).all()
