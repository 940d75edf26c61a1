"""
Multi-Tenant Service: Tenant context, scoping helpers and business signup

Every service call runs with a tenant resolved by @require_auth and stored
on flask.g. This module is the single enforcement point for row-level
isolation: services build their queries with scoped_query() and load
records by id with get_owned(), never with a bare db.session.query().

SECURITY INVARIANTS:
1. Every authenticated request has g.tenant_id and g.current_user set
2. Ids coming from client input are resolved through get_owned()
3. A row owned by another tenant is reported exactly like a missing row
"""

from __future__ import annotations

import re
import unicodedata

from flask import current_app, g

from ..extensions import db
from ..models import Tenant, User
from ..validation import NotFoundError, ConflictError, ValidationError, optional_text, require_text
from .auth_service import hash_password
from .concurrency import run_with_retry


SYSTEM_ACTOR = "Sistema"

SETTINGS_FIELDS = ("nit", "phone", "address", "city", "country", "website", "tax_regime")


class TenantAccessError(Exception):
    """Raised when no tenant/user can be resolved for the request."""

    def __init__(self, message: str = "No autorizado"):
        super().__init__(message)


def get_current_tenant_id() -> int:
    """
    Get the current tenant id from the Flask g context.

    Raises TenantAccessError if it was never established.
    """
    tenant_id = getattr(g, "tenant_id", None)
    if tenant_id is None:
        raise TenantAccessError()
    return tenant_id


def get_current_user() -> User:
    user = getattr(g, "current_user", None)
    if user is None:
        raise TenantAccessError()
    return user


def get_actor_name() -> str:
    """Display name for audit rows; "Sistema" when no user is attached."""
    user = getattr(g, "current_user", None)
    if user is None or not user.name:
        return SYSTEM_ACTOR
    return user.name


def scoped_query(model, tenant_id: int | None = None):
    """
    Base query filtered to one tenant.

    Usage:
        products = scoped_query(Product).filter_by(is_active=True).all()
    """
    if tenant_id is None:
        tenant_id = get_current_tenant_id()
    return db.session.query(model).filter(model.tenant_id == tenant_id)


def get_owned(model, entity_id, tenant_id: int | None = None, *, message: str = "Registro no encontrado"):
    """
    Load one row of `model` owned by the tenant.

    Raises NotFoundError with the same message whether the id does not
    exist or belongs to another tenant.
    """
    if entity_id is None:
        raise NotFoundError(message)
    row = scoped_query(model, tenant_id).filter(model.id == entity_id).first()
    if row is None:
        raise NotFoundError(message)
    return row


def slugify(value: str) -> str:
    """
    "Motos & Repuestos Ñandú" -> "motos-repuestos-nandu"

    Accents are stripped, runs of anything not [a-z0-9] collapse to "-".
    """
    normalized = unicodedata.normalize("NFD", value.lower())
    without_marks = "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")
    return re.sub(r"[^a-z0-9]+", "-", without_marks).strip("-")


def register_business(*, business_name: str, name: str, email: str, password: str) -> tuple[Tenant, User]:
    """
    Create a tenant and its first ADMIN user in one transaction.

    Raises:
        ValidationError: missing fields or weak password
        ConflictError: email already registered or business slug taken
    """
    business_name = require_text(business_name, "Nombre del negocio")
    name = require_text(name, "Nombre", 128)
    email = require_text(email, "Email").lower()

    slug = slugify(business_name)
    if not slug:
        raise ValidationError("Nombre del negocio inválido")

    password_hash = hash_password(password)

    def _op():
        if db.session.query(User).filter(db.func.lower(User.email) == email).first():
            raise ConflictError("El email ya está registrado")

        if db.session.query(Tenant).filter_by(slug=slug).first():
            raise ConflictError("Ya existe un negocio con ese nombre")

        tenant = Tenant(name=business_name, slug=slug, email=email, is_active=True)
        db.session.add(tenant)
        db.session.flush()

        user = User(
            tenant_id=tenant.id,
            name=name,
            email=email,
            password_hash=password_hash,
            role="ADMIN",
            is_active=True,
        )
        db.session.add(user)
        db.session.commit()
        return tenant, user

    tenant, user = run_with_retry(_op)
    current_app.logger.info("Registered tenant %s (id=%s)", tenant.slug, tenant.id)
    return tenant, user


def get_business_settings() -> Tenant:
    return get_owned_tenant()


def get_owned_tenant() -> Tenant:
    tenant = db.session.query(Tenant).filter_by(id=get_current_tenant_id()).first()
    if tenant is None:
        raise TenantAccessError()
    return tenant


def update_business_settings(data: dict) -> Tenant:
    """Update the business profile. name and email are required; blanks clear optional fields."""
    tenant = get_owned_tenant()

    tenant.name = require_text(data.get("name"), "Nombre")
    tenant.email = require_text(data.get("email"), "Email")
    for field in SETTINGS_FIELDS:
        setattr(tenant, field, optional_text(data.get(field)))

    db.session.commit()
    return tenant
