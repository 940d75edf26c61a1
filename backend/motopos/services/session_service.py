# Overview: Bearer session tokens: issue, validate, revoke.

"""
Session Token Management Service

Tokens are 32 random bytes (hex) handed to the client once; only their
SHA-256 is stored. A session captures tenant_id at login and that tenant
context never changes for the session lifetime.

Timeouts come from app config:
- SESSION_ABSOLUTE_TIMEOUT_HOURS (default 24)
- SESSION_IDLE_TIMEOUT_HOURS (default 8)
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from motopos.time_utils import utcnow


@dataclass
class SessionContext:
    user: User
    session: SessionToken
    tenant_id: int


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 8))


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Create a session for the user.

    Returns (session_record, plaintext_token). Raises ValueError when the
    user or its tenant is missing or inactive.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user or not user.is_active:
        raise ValueError("Usuario no encontrado")
    if not user.tenant or not user.tenant.is_active:
        raise ValueError("El negocio no está activo")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        tenant_id=user.tenant_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a plaintext token to its SessionContext.

    Returns None when the token is unknown, revoked or expired, or when the
    user or tenant has been deactivated since login. Idle and deactivated
    sessions are revoked on the way out. Touches last_used_at on success.
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    if not user.tenant or not user.tenant.is_active:
        _revoke(session, "Tenant deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, tenant_id=session.tenant_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke one session. Returns False when the token was not active."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False
    _revoke(session, reason)
    return True
