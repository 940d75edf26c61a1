# Overview: Password hashing, user creation and credential checks.

"""
Authentication Service

Users log in with email + password. Passwords are hashed with bcrypt;
a user can only authenticate while both the user and its tenant are
active.
"""

from __future__ import annotations

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Tenant
from ..validation import ValidationError, ConflictError, NotFoundError, require_text
from motopos.time_utils import utcnow


USER_ROLES = ("ADMIN", "USER")
MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one letter and one digit
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres"
        )
    if not any(ch.isalpha() for ch in password) or not any(ch.isdigit() for ch in password):
        raise PasswordValidationError("La contraseña debe contener letras y números")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost factor from BCRYPT_ROUNDS)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. A malformed stored hash never matches."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(*, tenant_id: int, name: str, email: str, password: str, role: str = "USER") -> User:
    """
    Create a staff user inside an existing tenant.

    Raises:
        NotFoundError: tenant missing
        ConflictError: email already registered
        ValidationError: bad role or weak password
    """
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        raise NotFoundError("Negocio no encontrado")

    role = (role or "USER").upper()
    if role not in USER_ROLES:
        raise ValidationError(f"Rol inválido. Opciones: {', '.join(USER_ROLES)}")

    email = require_text(email, "Email").lower()
    if db.session.query(User).filter(db.func.lower(User.email) == email).first():
        raise ConflictError("El email ya está registrado")

    user = User(
        tenant_id=tenant_id,
        name=require_text(name, "Nombre", 128),
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Return the user when the credentials match, None otherwise.

    Inactive users and users of inactive tenants cannot log in.
    Updates last_login_at on success.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        db.func.lower(User.email) == email.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    if not user.tenant or not user.tenant.is_active:
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
