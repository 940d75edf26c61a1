"""
Cash Register (till) Management Service

Tracks the cash drawer session of a tenant: opening float, the sales rung
up while it is open, and the reconciliation at close.

DESIGN PRINCIPLES:
- At most one OPEN register per tenant (application check + partial
  unique index for concurrent opens)
- Registers are immutable once closed
- All amounts are Decimal; nothing is rounded through float

CLOSE ARITHMETIC:
    cash_sales      = SUM(total) of CASH and MIXED sales
    expected_cash   = initial_amount + cash_sales
    cash_difference = cash_amount - expected_cash      (returned only)
    final_amount    = cash_amount + card_amount + transfer_amount
    total_sales     = SUM(total) of all sales
    expected_amount = initial_amount + total_sales
    difference      = final_amount - expected_amount   (stored)
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashRegister, Sale, Expense
from ..validation import ValidationError, NotFoundError, ZERO, to_decimal, optional_text
from motopos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import scoped_query, get_owned, get_current_tenant_id, get_current_user


class ShiftError(ValidationError):
    """Raised for register open/close rule violations."""
    pass


def _sum_totals(sales, methods: tuple[str, ...] | None = None) -> Decimal:
    return sum(
        (Decimal(s.total) for s in sales if methods is None or s.payment_method in methods),
        ZERO,
    )


def _sales_by_method(sales) -> dict:
    return {
        "cash": _sum_totals(sales, ("CASH",)),
        "card": _sum_totals(sales, ("CARD",)),
        "transfer": _sum_totals(sales, ("TRANSFER",)),
        "mixed": _sum_totals(sales, ("MIXED",)),
    }


def get_open_register(tenant_id: int | None = None) -> CashRegister | None:
    return scoped_query(CashRegister, tenant_id).filter(CashRegister.status == "OPEN").first()


def open_register(initial_amount, notes: str | None = None) -> CashRegister:
    """
    Open the tenant's register with the counted opening float.

    Raises:
        ShiftError: a register is already open for the tenant
        ValidationError: negative or non-numeric amount
    """
    tenant_id = get_current_tenant_id()
    user = get_current_user()
    amount = to_decimal(initial_amount, "Monto inicial")

    if get_open_register(tenant_id):
        raise ShiftError("Ya existe una caja abierta")

    register = CashRegister(
        tenant_id=tenant_id,
        user_id=user.id,
        status="OPEN",
        initial_amount=amount,
        opening_date=utcnow(),
        notes=optional_text(notes, 2000),
    )
    db.session.add(register)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost the race against a concurrent open: the partial index fired.
        db.session.rollback()
        raise ShiftError("Ya existe una caja abierta")

    current_app.logger.info("Cash register %s opened for tenant %s", register.id, tenant_id)
    return register


def close_register(
    register_id: int,
    cash_amount,
    card_amount=None,
    transfer_amount=None,
    notes: str | None = None,
) -> dict:
    """
    Close an OPEN register and compute its variance.

    Returns a dict with the closed register plus cash_difference,
    expected_cash, total_sales and sales_by_method.
    """
    tenant_id = get_current_tenant_id()
    cash = to_decimal(cash_amount, "Efectivo")
    card = to_decimal(card_amount, "Tarjeta")
    transfer = to_decimal(transfer_amount, "Transferencia")

    def _op():
        register = lock_for_update(
            scoped_query(CashRegister, tenant_id).filter(CashRegister.id == register_id)
        ).first()
        if register is None:
            raise NotFoundError("Caja no encontrada")
        if register.status != "OPEN":
            raise ShiftError("La caja ya está cerrada")

        sales = scoped_query(Sale, tenant_id).filter(Sale.cash_register_id == register.id).all()
        initial = Decimal(register.initial_amount)

        by_method = _sales_by_method(sales)
        cash_sales = by_method["cash"] + by_method["mixed"]
        expected_cash = initial + cash_sales
        total_sales = _sum_totals(sales)
        final_amount = cash + card + transfer
        expected_amount = initial + total_sales

        register.status = "CLOSED"
        register.closing_date = utcnow()
        register.final_amount = final_amount
        register.expected_amount = expected_amount
        register.difference = final_amount - expected_amount
        if notes is not None:
            register.notes = optional_text(notes, 2000)

        db.session.commit()
        return {
            "register": register,
            "cash_difference": cash - expected_cash,
            "expected_cash": expected_cash,
            "total_sales": total_sales,
            "sales_by_method": by_method,
        }

    result = run_with_retry(_op)
    current_app.logger.info(
        "Cash register %s closed (difference %s)", register_id, result["register"].difference,
    )
    return result


def get_register_summary(register_id: int) -> dict:
    """
    Read-only snapshot of a register: sales by method, expenses paid in
    the register's time window and the resulting net cash.
    """
    register = get_owned(CashRegister, register_id, message="Caja no encontrada")

    sales = (
        scoped_query(Sale, register.tenant_id)
        .filter(Sale.cash_register_id == register.id)
        .order_by(Sale.sale_date.asc(), Sale.id.asc())
        .all()
    )
    window_end = register.closing_date or utcnow()
    expenses = (
        scoped_query(Expense, register.tenant_id)
        .filter(Expense.expense_date >= register.opening_date, Expense.expense_date <= window_end)
        .order_by(Expense.expense_date.asc())
        .all()
    )

    by_method = _sales_by_method(sales)
    expected_cash = Decimal(register.initial_amount) + by_method["cash"] + by_method["mixed"]
    total_expenses = sum((Decimal(e.amount) for e in expenses), ZERO)

    return {
        "register": register,
        "sales": sales,
        "sales_count": len(sales),
        "sales_by_method": by_method,
        "total_sales": _sum_totals(sales),
        "expected_cash": expected_cash,
        "expenses": expenses,
        "total_expenses": total_expenses,
        "net_cash": expected_cash - total_expenses,
    }


def get_current_register() -> dict | None:
    """The OPEN register with its 10 most recent sales, or None."""
    register = get_open_register()
    if register is None:
        return None
    recent = (
        scoped_query(Sale, register.tenant_id)
        .filter(Sale.cash_register_id == register.id)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(10)
        .all()
    )
    return {"register": register, "recent_sales": recent}


def get_register_history(limit: int = 10) -> list[CashRegister]:
    return (
        scoped_query(CashRegister)
        .filter(CashRegister.status == "CLOSED")
        .order_by(CashRegister.closing_date.desc(), CashRegister.id.desc())
        .limit(limit)
        .all()
    )
