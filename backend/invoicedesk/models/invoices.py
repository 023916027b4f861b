from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


STAGE_CLIENT_TO_DISTRIBUTOR = "clientToDistributor"
STAGE_DISTRIBUTOR_TO_ADMIN = "distributorToAdmin"
STAGE_ADMIN_TO_COMPANY = "adminToCompany"

# Ordered settlement chain
PAYMENT_STAGES = (
    STAGE_CLIENT_TO_DISTRIBUTOR,
    STAGE_DISTRIBUTOR_TO_ADMIN,
    STAGE_ADMIN_TO_COMPANY,
)

# Stage name -> column prefix on Invoice
STAGE_COLUMN_PREFIX = {
    STAGE_CLIENT_TO_DISTRIBUTOR: "client_to_distributor",
    STAGE_DISTRIBUTOR_TO_ADMIN: "distributor_to_admin",
    STAGE_ADMIN_TO_COMPANY: "admin_to_company",
}

INVOICE_STATUS_PENDING = "pending"
INVOICE_STATUS_COMPLETED = "completed"
INVOICE_STATUS_CANCELLED = "cancelled"

INVOICE_STATUSES = (
    INVOICE_STATUS_PENDING,
    INVOICE_STATUS_COMPLETED,
    INVOICE_STATUS_CANCELLED,
)


class Invoice(db.Model):
    """
    Invoice with a three-stage settlement chain.

    SNAPSHOT: the three commission rates are captured when the invoice is
    created or edited. Later tier or default-rate changes never touch them.

    PAYMENT STAGES: each stage is stored as (is_paid, paid_at, marked_by).
    Only payment_service mutates them.

    `status` is the legacy status, kept in sync with the final stage.

    CONCURRENCY: version_id is the optimistic lock; two writers racing on
    the same invoice cannot both commit.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_distributor_stage1", "assigned_distributor_id", "client_to_distributor_is_paid"),
        db.Index("ix_invoices_invoice_date", "invoice_date"),
        db.CheckConstraint("amount_cents >= 0", name="ck_invoices_amount_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_code = db.Column(db.String(64), nullable=False, unique=True, index=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    file_id = db.Column(db.Integer, db.ForeignKey("files.id"), nullable=False, index=True)
    assigned_distributor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    invoice_date = db.Column(db.Date, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Commission rate snapshots (percent)
    client_commission_rate = db.Column(db.Numeric(6, 3), nullable=False, default=0)
    distributor_commission_rate = db.Column(db.Numeric(6, 3), nullable=False, default=0)
    company_commission_rate = db.Column(db.Numeric(6, 3), nullable=False, default=0)

    # Stage 1: client -> distributor
    client_to_distributor_is_paid = db.Column(db.Boolean, nullable=False, default=False)
    client_to_distributor_paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    client_to_distributor_marked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Stage 2: distributor -> admin
    distributor_to_admin_is_paid = db.Column(db.Boolean, nullable=False, default=False)
    distributor_to_admin_paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    distributor_to_admin_marked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Stage 3: admin -> company
    admin_to_company_is_paid = db.Column(db.Boolean, nullable=False, default=False)
    admin_to_company_paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    admin_to_company_marked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Legacy status for backward compatibility
    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_PENDING, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client", backref=db.backref("invoices", lazy=True))
    file = db.relationship("File", backref=db.backref("invoices", lazy=True))
    assigned_distributor = db.relationship("User", foreign_keys=[assigned_distributor_id])
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} code={self.invoice_code!r}>"

    def stage_state(self, stage: str) -> dict:
        prefix = STAGE_COLUMN_PREFIX[stage]
        return {
            "is_paid": bool(getattr(self, f"{prefix}_is_paid")),
            "paid_at": getattr(self, f"{prefix}_paid_at"),
            "marked_by_user_id": getattr(self, f"{prefix}_marked_by_user_id"),
        }

    def is_stage_paid(self, stage: str) -> bool:
        return bool(getattr(self, f"{STAGE_COLUMN_PREFIX[stage]}_is_paid"))

    @property
    def company_id(self) -> int | None:
        return self.file.company_id if self.file else None

    def to_dict(self) -> dict:
        payment_status = {}
        for stage in PAYMENT_STAGES:
            state = self.stage_state(stage)
            payment_status[stage] = {
                "is_paid": state["is_paid"],
                "paid_at": to_utc_z(state["paid_at"]),
                "marked_by_user_id": state["marked_by_user_id"],
            }

        return {
            "id": self.id,
            "invoice_code": self.invoice_code,
            "client_id": self.client_id,
            "client_name": self.client.full_name if self.client else None,
            "file_id": self.file_id,
            "file_name": self.file.file_name if self.file else None,
            "company_id": self.company_id,
            "assigned_distributor_id": self.assigned_distributor_id,
            "assigned_distributor_name": self.assigned_distributor.username if self.assigned_distributor else None,
            "invoice_date": self.invoice_date.isoformat() if self.invoice_date else None,
            "amount_cents": self.amount_cents,
            "client_commission_rate": float(self.client_commission_rate),
            "distributor_commission_rate": float(self.distributor_commission_rate),
            "company_commission_rate": float(self.company_commission_rate),
            "payment_status": payment_status,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
