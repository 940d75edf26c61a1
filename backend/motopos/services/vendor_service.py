# Overview: Supplier master data.

"""
Supplier Service

Suppliers are optional on purchases. They are soft-deactivated rather
than deleted so old purchases keep their supplier name.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Supplier
from ..validation import require_text, optional_text
from .tenant_service import scoped_query, get_owned, get_current_tenant_id


SUPPLIER_FIELDS = ("nit", "email", "phone", "address")


def _apply(supplier: Supplier, data: dict) -> None:
    if "name" in data:
        supplier.name = require_text(data.get("name"), "Nombre")
    for field in SUPPLIER_FIELDS:
        if field in data:
            setattr(supplier, field, optional_text(data.get(field)))
    if "notes" in data:
        supplier.notes = optional_text(data.get("notes"), 2000)
    if "is_active" in data:
        supplier.is_active = bool(data.get("is_active"))


def create_supplier(data: dict) -> Supplier:
    supplier = Supplier(
        tenant_id=get_current_tenant_id(),
        name=require_text(data.get("name"), "Nombre"),
        is_active=True,
    )
    _apply(supplier, data)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, data: dict) -> Supplier:
    supplier = get_owned(Supplier, supplier_id, message="Proveedor no encontrado")
    _apply(supplier, data)
    db.session.commit()
    return supplier


def list_suppliers(search: str | None = None, include_inactive: bool = False) -> list[Supplier]:
    query = scoped_query(Supplier)
    if not include_inactive:
        query = query.filter(Supplier.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Supplier.name.ilike(pattern), Supplier.nit.ilike(pattern)))
    return query.order_by(Supplier.name.asc()).all()
