from __future__ import annotations

from ..extensions import db
from motopos.time_utils import to_utc_z
from motopos.validation import money_str


class ExpenseCategory(db.Model):
    __tablename__ = "expense_categories"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_expense_categories_tenant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "tenant_id": self.tenant_id, "name": self.name}


class Expense(db.Model):
    """
    Dated operating expense (rent, payroll, utilities...).

    No stock or register interaction; cash expenses only reduce the
    net cash shown on a register summary.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_tenant_date", "tenant_id", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=True)

    expense_date = db.Column(db.DateTime(timezone=True), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    reference = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    category = db.relationship("ExpenseCategory", backref=db.backref("expenses", lazy=True))
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "expense_date": to_utc_z(self.expense_date),
            "amount": money_str(self.amount),
            "description": self.description,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
