# Overview: Product stock counter writes; every change also appends a StockMovement.

"""
Stock Invariants

- Product.stock is never negative.
- Decrements are conditional: UPDATE ... SET stock = stock - q WHERE
  stock >= q. Zero rows affected means another writer got there first
  (or there was never enough), and the caller must abort its transaction.
- Every change appends one StockMovement row in the same transaction, so
  initial stock + SUM(quantity_delta) == current stock for each product.

None of these functions commit; they run inside the caller's unit of work.
"""

from __future__ import annotations

from sqlalchemy import func, update

from ..extensions import db
from ..models import Product, StockMovement
from motopos.time_utils import utcnow


MOVEMENT_TYPES = ("SALE", "PURCHASE", "ORDER_RECEIPT", "ADJUSTMENT")


def _record_movement(product: Product, delta: int, movement_type: str, reference: str | None, user_id: int | None) -> StockMovement:
    if movement_type not in MOVEMENT_TYPES:
        raise ValueError(f"invalid movement_type: {movement_type}")
    movement = StockMovement(
        tenant_id=product.tenant_id,
        product_id=product.id,
        movement_type=movement_type,
        quantity_delta=delta,
        reference=reference,
        user_id=user_id,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    return movement


def decrement_stock(
    product: Product,
    quantity: int,
    *,
    movement_type: str = "SALE",
    reference: str | None = None,
    user_id: int | None = None,
) -> bool:
    """
    Take `quantity` units out of stock if, and only if, enough remain.

    Returns False (and changes nothing) when the conditional update
    matched no row.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    stmt = (
        update(Product)
        .where(
            Product.id == product.id,
            Product.tenant_id == product.tenant_id,
            Product.stock >= quantity,
        )
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        return False

    db.session.expire(product, ["stock"])
    _record_movement(product, -quantity, movement_type, reference, user_id)
    return True


def increment_stock(
    product: Product,
    quantity: int,
    *,
    movement_type: str,
    reference: str | None = None,
    user_id: int | None = None,
) -> None:
    """Add `quantity` units (purchase or order receipt)."""
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    stmt = (
        update(Product)
        .where(Product.id == product.id, Product.tenant_id == product.tenant_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)
    db.session.expire(product, ["stock"])
    _record_movement(product, quantity, movement_type, reference, user_id)


def get_movement_total(tenant_id: int, product_id: int) -> int:
    """SUM(quantity_delta) for one product: the net change since creation."""
    total = db.session.query(
        func.coalesce(func.sum(StockMovement.quantity_delta), 0)
    ).filter(
        StockMovement.tenant_id == tenant_id,
        StockMovement.product_id == product_id,
    ).scalar()
    return int(total or 0)


def list_movements(tenant_id: int, product_id: int, limit: int = 50) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter_by(tenant_id=tenant_id, product_id=product_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
