from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Boolean, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum amount accepted for any price field: 9,999,999,999.99
MAX_AMOUNT = Decimal("9999999999.99")
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may write, and which a create must supply."""
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def parse_amount(value: Any, field: str, *, required: bool = True) -> Decimal | None:
    """
    Parse a non-negative money/hours value to a 2-place Decimal.

    Accepts int, float or numeric string. Rejects bools, NaN/Infinity,
    negatives and values above MAX_AMOUNT.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")

    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_positive_int(value: Any, field: str, *, default: int | None = None) -> int:
    if value is None:
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        value = int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.isdigit():
            raise ValidationError(f"{field} must be a positive integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 1:
        raise ValidationError(f"{field} must be >= 1")
    return value


def optional_text(value: Any, field: str) -> str | None:
    """Strip a free-text field; None and blank become None, non-strings are rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() or None


def require_choice(value: Any, field: str, choices) -> str:
    if not isinstance(value, str) or value not in choices:
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(sorted(choices))}"
        )
    return value


def _coerce_value(col, value: Any):
    """Coerce one JSON value to the column's Python type (catalog columns only)."""
    coltype = col.type

    if isinstance(coltype, Numeric):
        return parse_amount(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
            return value.strip().lower() in ("true", "1")
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a string")
        text = str(value).strip()
        if not text and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        if isinstance(coltype, String) and coltype.length and len(text) > coltype.length:
            raise ValidationError(f"{col.key} exceeds max length {coltype.length}")
        return text

    raise ValidationError(f"{col.key} cannot be set through the API")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a client JSON object into a clean column patch for ``model``.

    - keys outside policy.writable_fields are rejected, never ignored
    - partial=False (create) also requires policy.required_on_create
    - null is only accepted for nullable columns
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    not_allowed = sorted(k for k in payload if k not in policy.writable_fields)
    if not_allowed:
        raise ValidationError(f"Field not allowed: {', '.join(not_allowed)}")

    if not partial:
        missing = sorted(f for f in (policy.required_on_create or ()) if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = model.__mapper__.columns
    patch: dict = {}
    for key, raw in payload.items():
        col = columns[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _coerce_value(col, raw)
    return patch


def enforce_rules_material(patch: dict) -> None:
    """Catalog rules beyond column metadata: a sheet has thickness, cutting speed is a multiplier."""
    for field in ("thickness_mm", "cutting_speed_factor"):
        if patch.get(field) is not None and patch[field] <= 0:
            raise ValidationError(f"{field} must be > 0")
