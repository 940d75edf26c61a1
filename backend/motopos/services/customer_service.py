# Overview: Customer master data.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Sale
from ..validation import require_text, optional_text
from .tenant_service import scoped_query, get_owned, get_current_tenant_id


CUSTOMER_FIELDS = ("email", "phone", "id_number", "address")


def _apply(customer: Customer, data: dict) -> None:
    if "name" in data:
        customer.name = require_text(data.get("name"), "Nombre")
    for field in CUSTOMER_FIELDS:
        if field in data:
            setattr(customer, field, optional_text(data.get(field)))
    if "notes" in data:
        customer.notes = optional_text(data.get("notes"), 2000)


def create_customer(data: dict) -> Customer:
    customer = Customer(
        tenant_id=get_current_tenant_id(),
        name=require_text(data.get("name"), "Nombre"),
    )
    _apply(customer, data)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, data: dict) -> Customer:
    customer = get_owned(Customer, customer_id, message="Cliente no encontrado")
    _apply(customer, data)
    db.session.commit()
    return customer


def list_customers(search: str | None = None) -> list[Customer]:
    query = scoped_query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Customer.name.ilike(pattern),
            Customer.email.ilike(pattern),
            Customer.phone.ilike(pattern),
        ))
    return query.order_by(Customer.name.asc()).all()


def get_customer(customer_id: int) -> dict:
    """Customer plus the 10 most recent sales."""
    customer = get_owned(Customer, customer_id, message="Cliente no encontrado")
    recent = (
        scoped_query(Sale, customer.tenant_id)
        .filter(Sale.customer_id == customer.id)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(10)
        .all()
    )
    return {"customer": customer, "recent_sales": recent}
