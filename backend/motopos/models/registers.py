from __future__ import annotations

from ..extensions import db
from motopos.time_utils import to_utc_z
from motopos.validation import money_str


class CashRegister(db.Model):
    """
    Cash register (till) session.

    LIFECYCLE:
    - OPEN: created with the counted opening float; sales attach to it
    - CLOSED: counted amounts reported, expected amount and variance stored

    At most one OPEN register per tenant. The partial unique index backs
    the application check so two concurrent opens cannot both commit.

    IMMUTABLE: Once closed, a register is never reopened or modified.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.Index(
            "uq_cash_registers_one_open_per_tenant",
            "tenant_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        db.Index("ix_cash_registers_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="OPEN")  # OPEN, CLOSED

    initial_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Set when closing
    final_amount = db.Column(db.Numeric(12, 2), nullable=True)  # cash + card + transfer reported
    expected_amount = db.Column(db.Numeric(12, 2), nullable=True)  # initial + all sales
    difference = db.Column(db.Numeric(12, 2), nullable=True)  # final - expected

    opening_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closing_date = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("cash_registers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "status": self.status,
            "initial_amount": money_str(self.initial_amount),
            "final_amount": money_str(self.final_amount),
            "expected_amount": money_str(self.expected_amount),
            "difference": money_str(self.difference),
            "opening_date": to_utc_z(self.opening_date),
            "closing_date": to_utc_z(self.closing_date) if self.closing_date else None,
            "notes": self.notes,
            "version_id": self.version_id,
        }
