from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Company(db.Model):
    """Company that issues work through files. Receives the final payment stage."""
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    commission_rate = db.Column(db.Numeric(6, 3), nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "commission_rate": float(self.commission_rate or 0),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class Client(db.Model):
    """Client that generates invoices and pays the first stage to a distributor."""
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(200), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    commission_rate = db.Column(db.Numeric(6, 3), nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "commission_rate": float(self.commission_rate or 0),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class File(db.Model):
    """
    A work file issued by a company. Invoices reference a file, and through it
    the company that takes the company commission leg.

    stored_path points at the uploaded PDF; storage itself is handled elsewhere.
    """
    __tablename__ = "files"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    file_name = db.Column(db.String(255), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    stored_path = db.Column(db.String(512), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("files", lazy=True))
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "company_id": self.company_id,
            "company_name": self.company.name if self.company else None,
            "stored_path": self.stored_path,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class CommissionTier(db.Model):
    """
    Amount-dependent commission override for one entity.

    RANGE: min_amount_cents <= amount and (max_amount_cents is NULL or amount <= max_amount_cents).
    Active tiers of the same entity never overlap (enforced by commission_service).
    """
    __tablename__ = "commission_tiers"
    __table_args__ = (
        db.Index("ix_commission_tiers_entity", "entity_type", "entity_id", "is_active"),
        db.CheckConstraint("min_amount_cents >= 0", name="ck_commission_tiers_min_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(16), nullable=False)  # client, distributor, company
    entity_id = db.Column(db.Integer, nullable=False)

    min_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    max_amount_cents = db.Column(db.Integer, nullable=True)  # None = unbounded
    rate = db.Column(db.Numeric(6, 3), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def contains(self, amount_cents: int) -> bool:
        if amount_cents < self.min_amount_cents:
            return False
        return self.max_amount_cents is None or amount_cents <= self.max_amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "min_amount_cents": self.min_amount_cents,
            "max_amount_cents": self.max_amount_cents,
            "rate": float(self.rate),
            "is_active": self.is_active,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
