# Overview: Per-tenant document numbering (sale and order numbers).

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from motopos.time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(*, tenant_id: int, document_type: str) -> int:
    """
    Allocate the next number of a (tenant, document_type) counter.

    The increment is a single UPDATE ... SET next_number = next_number + 1,
    so two writers can never read the same value. Runs inside the caller's
    transaction: if the caller rolls back, the number is released too.

    The first allocation inserts the counter row; a concurrent first
    insert surfaces as IntegrityError, which callers retry.
    """
    if not tenant_id:
        raise DocumentSequenceError("tenant_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(tenant_id=tenant_id, document_type=document_type)
            .scalar()
        )
        return current - 1

    seq = DocumentSequence(tenant_id=tenant_id, document_type=document_type, next_number=2)
    db.session.add(seq)
    db.session.flush()
    return 1


def next_sale_number(tenant_id: int) -> str:
    """V-000001, V-000002, ... per tenant."""
    number = next_document_number(tenant_id=tenant_id, document_type="SALE")
    return f"V-{number:06d}"


def next_order_number(tenant_id: int, now: datetime | None = None) -> str:
    """PED-YYYYMM-0001; the counter restarts each calendar month."""
    now = now or utcnow()
    period = now.strftime("%Y%m")
    number = next_document_number(tenant_id=tenant_id, document_type=f"ORDER-{period}")
    return f"PED-{period}-{number:04d}"
