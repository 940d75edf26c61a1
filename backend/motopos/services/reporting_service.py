# Overview: Read-only aggregations over sales, expenses, purchases and stock.

"""
Reporting Service

All reports are pure reads over an inclusive [start, end] window and
return Decimal amounts; running one twice with no writes in between
gives identical results. Day buckets are UTC calendar days (YYYY-MM-DD).
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import selectinload

from ..models import Sale, SaleItem, Expense, Purchase, Product
from ..validation import ZERO, CENTS, PAYMENT_METHODS
from motopos.time_utils import day_key
from .tenant_service import scoped_query


UNCATEGORIZED = "Sin categoría"
TOP_PRODUCTS_LIMIT = 10
LOW_STOCK_LIST_LIMIT = 20


def _completed_sales(start: datetime, end: datetime) -> list[Sale]:
    return (
        scoped_query(Sale)
        .options(selectinload(Sale.items).selectinload(SaleItem.product))
        .filter(Sale.status == "COMPLETED", Sale.sale_date >= start, Sale.sale_date <= end)
        .order_by(Sale.sale_date.asc(), Sale.id.asc())
        .all()
    )


def _expenses(start: datetime, end: datetime) -> list[Expense]:
    return (
        scoped_query(Expense)
        .filter(Expense.expense_date >= start, Expense.expense_date <= end)
        .order_by(Expense.expense_date.asc(), Expense.id.asc())
        .all()
    )


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return ZERO
    return (part / whole * 100).quantize(CENTS, rounding=ROUND_HALF_UP)


def sales_report(start: datetime, end: datetime) -> dict:
    sales = _completed_sales(start, end)

    by_method = {method: ZERO for method in PAYMENT_METHODS}
    by_day: dict[str, Decimal] = OrderedDict()
    products: dict[int, dict] = {}

    for sale in sales:
        total = Decimal(sale.total)
        by_method[sale.payment_method] = by_method.get(sale.payment_method, ZERO) + total
        key = day_key(sale.sale_date)
        by_day[key] = by_day.get(key, ZERO) + total

        for item in sale.items:
            entry = products.setdefault(item.product_id, {
                "product_id": item.product_id,
                "name": item.product.name if item.product else None,
                "quantity": 0,
                "total": ZERO,
            })
            entry["quantity"] += item.quantity
            entry["total"] += Decimal(item.subtotal)

    # Stable sort keeps first-sold order among ties.
    top_products = sorted(products.values(), key=lambda p: p["quantity"], reverse=True)[:TOP_PRODUCTS_LIMIT]

    return {
        "total_sales": sum((Decimal(s.total) for s in sales), ZERO),
        "total_discount": sum((Decimal(s.discount) for s in sales), ZERO),
        "sales_count": len(sales),
        "by_payment_method": by_method,
        "by_day": dict(by_day),
        "top_products": top_products,
    }


def expenses_report(start: datetime, end: datetime) -> dict:
    expenses = _expenses(start, end)

    by_category: dict[str, Decimal] = {}
    by_day: dict[str, Decimal] = OrderedDict()
    for expense in expenses:
        amount = Decimal(expense.amount)
        name = expense.category.name if expense.category else UNCATEGORIZED
        by_category[name] = by_category.get(name, ZERO) + amount
        key = day_key(expense.expense_date)
        by_day[key] = by_day.get(key, ZERO) + amount

    return {
        "total_expenses": sum((Decimal(e.amount) for e in expenses), ZERO),
        "expenses_count": len(expenses),
        "by_category": by_category,
        "by_day": dict(by_day),
    }


def profit_report(start: datetime, end: datetime) -> dict:
    """
    gross_profit = revenue - cost_of_sales (at current product cost)
    net_profit   = gross_profit - expenses; purchases are reported, not subtracted
    """
    sales = _completed_sales(start, end)
    expenses = _expenses(start, end)
    purchases = (
        scoped_query(Purchase)
        .filter(Purchase.status == "COMPLETED", Purchase.purchase_date >= start, Purchase.purchase_date <= end)
        .all()
    )

    total_revenue = sum((Decimal(s.total) for s in sales), ZERO)
    cost_of_sales = sum(
        (
            Decimal(item.product.cost_price) * item.quantity
            for sale in sales
            for item in sale.items
            if item.product is not None
        ),
        ZERO,
    )
    total_expenses = sum((Decimal(e.amount) for e in expenses), ZERO)
    total_purchases = sum((Decimal(p.total) for p in purchases), ZERO)

    gross_profit = total_revenue - cost_of_sales
    net_profit = gross_profit - total_expenses

    return {
        "total_revenue": total_revenue,
        "cost_of_sales": cost_of_sales,
        "gross_profit": gross_profit,
        "total_expenses": total_expenses,
        "total_purchases": total_purchases,
        "net_profit": net_profit,
        "gross_margin": _percent(gross_profit, total_revenue),
        "net_margin": _percent(net_profit, total_revenue),
    }


def inventory_report() -> dict:
    """Stock valuation of active products, at cost and at sale price."""
    products = (
        scoped_query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )

    low_stock = [p for p in products if p.stock <= p.min_stock]
    out_of_stock = [p for p in products if p.stock == 0]

    total_cost_value = sum((Decimal(p.cost_price) * p.stock for p in products), ZERO)
    total_sale_value = sum((Decimal(p.sale_price) * p.stock for p in products), ZERO)

    by_category: dict[str, dict] = {}
    for product in products:
        name = product.category.name if product.category else UNCATEGORIZED
        bucket = by_category.setdefault(name, {"count": 0, "value": ZERO})
        bucket["count"] += product.stock
        bucket["value"] += Decimal(product.cost_price) * product.stock

    return {
        "total_products": len(products),
        "total_units": sum(p.stock for p in products),
        "total_cost_value": total_cost_value,
        "total_sale_value": total_sale_value,
        "potential_profit": total_sale_value - total_cost_value,
        "low_stock_count": len(low_stock),
        "out_of_stock_count": len(out_of_stock),
        "low_stock_products": low_stock[:LOW_STOCK_LIST_LIMIT],
        "out_of_stock_products": out_of_stock,
        "by_category": by_category,
    }
