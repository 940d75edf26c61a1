from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable


# Maximum money amount: 9,999,999,999.99 (Numeric(12, 2))
MAX_AMOUNT = Decimal("9999999999.99")
CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

PAYMENT_METHODS = ("CASH", "CARD", "TRANSFER", "MIXED")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level: entity missing or owned by another tenant."""


def to_decimal(value: Any, field: str = "amount", *, allow_negative: bool = False) -> Decimal:
    """
    Coerce a JSON value into a two-decimal money amount.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    Booleans are rejected even though they are ints.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValidationError(f"{field} debe ser un número")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} debe ser un número")

    if not amount.is_finite():
        raise ValidationError(f"{field} debe ser un número")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} no puede ser negativo")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} excede el máximo permitido")

    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def money_str(value: Decimal | None) -> str | None:
    """Serialize a money amount as a fixed two-decimal string."""
    if value is None:
        return None
    return str(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


def to_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """Strict integer coercion: rejects floats, decimals and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} debe ser un entero")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} debe ser un entero")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} debe ser un entero")
    else:
        raise ValidationError(f"{field} debe ser un entero")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} debe ser mayor o igual a {minimum}")
    return result


def require_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    choices = tuple(choices)
    if not isinstance(value, str) or value.upper() not in choices:
        raise ValidationError(f"{field} inválido. Opciones: {', '.join(choices)}")
    return value.upper()


def require_text(value: Any, field: str, max_length: int = 255) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} es requerido")
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} excede {max_length} caracteres")
    return text


def optional_text(value: Any, max_length: int = 255) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text[:max_length]
