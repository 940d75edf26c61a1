# Overview: Operating expenses and their categories.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Expense, ExpenseCategory
from ..validation import (
    ConflictError, ValidationError, ZERO, PAYMENT_METHODS,
    to_decimal, require_choice, require_text, optional_text,
)
from motopos.time_utils import utcnow, start_of_day, parse_iso_datetime, parse_range
from .tenant_service import scoped_query, get_owned, get_current_tenant_id, get_current_user


DEFAULT_EXPENSE_CATEGORIES = (
    "Arriendo",
    "Servicios públicos",
    "Nómina",
    "Transporte",
    "Mantenimiento",
    "Publicidad",
    "Impuestos",
    "Otros",
)

EXPENSE_PAYMENT_METHODS = tuple(m for m in PAYMENT_METHODS if m != "MIXED")


class ExpenseError(ValidationError):
    pass


def create_expense(data: dict) -> Expense:
    amount = to_decimal(data.get("amount"), "Monto")
    if amount <= 0:
        raise ExpenseError("El monto debe ser mayor a cero")

    category_id = data.get("category_id")
    if category_id:
        category_id = get_owned(ExpenseCategory, category_id, message="Categoría no encontrada").id
    else:
        category_id = None

    try:
        expense_date = parse_iso_datetime(data.get("expense_date")) or utcnow()
    except ValueError:
        raise ExpenseError("Fecha de gasto inválida")

    expense = Expense(
        tenant_id=get_current_tenant_id(),
        user_id=get_current_user().id,
        category_id=category_id,
        expense_date=expense_date,
        amount=amount,
        description=require_text(data.get("description"), "Descripción"),
        payment_method=require_choice(
            data.get("payment_method") or "CASH", "Método de pago", EXPENSE_PAYMENT_METHODS,
        ),
        reference=optional_text(data.get("reference"), 64),
        notes=optional_text(data.get("notes"), 2000),
    )
    db.session.add(expense)
    db.session.commit()
    return expense


def list_expenses(limit: int = 50) -> list[Expense]:
    return (
        scoped_query(Expense)
        .order_by(Expense.expense_date.desc(), Expense.id.desc())
        .limit(limit)
        .all()
    )


def _summarize(expenses: list[Expense]) -> dict:
    return {
        "expenses": expenses,
        "total": sum((Decimal(e.amount) for e in expenses), ZERO),
        "count": len(expenses),
    }


def get_today_expenses() -> dict:
    expenses = (
        scoped_query(Expense)
        .filter(Expense.expense_date >= start_of_day(utcnow()))
        .order_by(Expense.expense_date.desc())
        .all()
    )
    return _summarize(expenses)


def get_expenses_by_date_range(start: str | None, end: str | None) -> dict:
    try:
        start_dt, end_dt = parse_range(start, end)
    except ValueError:
        raise ExpenseError("Rango de fechas inválido")
    expenses = (
        scoped_query(Expense)
        .filter(Expense.expense_date >= start_dt, Expense.expense_date <= end_dt)
        .order_by(Expense.expense_date.desc())
        .all()
    )
    return _summarize(expenses)


def list_categories() -> list[ExpenseCategory]:
    return scoped_query(ExpenseCategory).order_by(ExpenseCategory.name.asc()).all()


def create_category(name) -> ExpenseCategory:
    name = require_text(name, "Nombre", 128)
    if scoped_query(ExpenseCategory).filter(db.func.lower(ExpenseCategory.name) == name.lower()).first():
        raise ConflictError("La categoría ya existe")
    category = ExpenseCategory(tenant_id=get_current_tenant_id(), name=name)
    db.session.add(category)
    db.session.commit()
    return category


def get_default_categories() -> list[str]:
    return list(DEFAULT_EXPENSE_CATEGORIES)
