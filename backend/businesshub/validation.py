from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from businesshub.time_utils import parse_iso_datetime


# £9,999,999.99 expressed in pence
MAX_PRICE_CENTS = 999_999_999

# Units on one assignment row or quote line
MAX_QUANTITY = 1_000_000

PRICING_TYPES = {"one-off", "monthly", "yearly"}

TRUE_STRINGS = {"true", "1", "yes", "y"}
FALSE_STRINGS = {"false", "0", "no", "n", ""}


class ValidationError(ValueError):
    """Bad client input; routes answer 400."""


class ConflictError(ValueError):
    """Input clashes with existing data (duplicate SKU, serial in use); routes answer 409."""


class NotFoundError(LookupError):
    """A referenced row does not exist in the caller's organization; routes answer 404."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns of a model a client may write, and which a create must supply.

    Anything outside writable_fields is rejected outright, so org_id and
    server-managed columns can never be set from a request body.
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _to_int(key: str, value: Any) -> int:
    # bool is an int subclass; True must not become 1
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be an integer")

    text = value.strip()
    if "e" in text.lower():
        raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
    if "." in text:
        raise ValidationError(f"{key} must be an integer (no decimals)")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{key} must be an integer")


def _to_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise ValidationError(f"{key} must be a boolean")
    return bool(value)


def _to_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    raise ValidationError(f"{key} must be a datetime")


def _to_text(key: str, value: Any) -> str:
    return str(value).strip()


# Checked in order; the first matching column type wins.
_COERCERS = (
    (Integer, _to_int),
    (Boolean, _to_bool),
    (DateTime, _to_datetime),
    ((String, Text), _to_text),
)


def _coerce(column, value: Any):
    for coltype, coerce in _COERCERS:
        if isinstance(column.type, coltype):
            return coerce(column.key, value)
    return value


def _check_text(column, value):
    """Blank optional strings become NULL; over-long strings are rejected."""
    if value == "":
        if not column.nullable:
            raise ValidationError(f"{column.key} cannot be blank")
        return None
    limit = getattr(column.type, "length", None)
    if limit and len(value) > limit:
        raise ValidationError(f"{column.key} exceeds max length {limit}")
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a request body into a clean patch for model.

    Keys must be in the policy's writable_fields and be real columns.
    Values are coerced using the column type (strict integers, yes/no
    booleans, ISO-8601 datetimes, stripped strings) and checked against
    nullability and String length. When partial is False the policy's
    required_on_create fields must be present and non-empty.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(name for name in policy.required_on_create if payload.get(name) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    for key in payload:
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if key not in columns:
            raise ValidationError(f"Unknown field: {key}")

    patch: dict = {}
    for key, raw in payload.items():
        column = columns[key]
        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        value = _coerce(column, raw)
        if isinstance(value, str) and isinstance(column.type, (String, Text)):
            value = _check_text(column, value)
        patch[key] = value

    return patch


def enforce_choice(patch: dict, field: str, allowed: Iterable[str]) -> None:
    value = patch.get(field)
    if value is None:
        return
    options = set(allowed)
    if value not in options:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(options))}")


def enforce_price_cents(patch: dict, field: str = "price_cents") -> None:
    price = patch.get(field)
    if price is None:
        return
    if price < 0:
        raise ValidationError(f"{field} must be >= 0")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} (£{MAX_PRICE_CENTS / 100:,.2f})")


def check_quantity(quantity: int | None) -> None:
    if quantity is None or quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity cannot exceed {MAX_QUANTITY:,}")


def enforce_positive_quantity(patch: dict, field: str = "quantity") -> None:
    if field in patch:
        check_quantity(patch[field])


def enforce_date_range(start: datetime | None, end: datetime | None, *, start_label: str, end_label: str) -> None:
    if start is not None and end is not None and end < start:
        raise ValidationError(f"{end_label} must be on or after {start_label}")


def enforce_rules_product(patch: dict) -> None:
    """Catalog rules on top of column checks: price range and pricing type."""
    enforce_price_cents(patch)
    enforce_choice(patch, "pricing_type", PRICING_TYPES)
