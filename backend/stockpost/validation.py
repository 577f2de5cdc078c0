# Overview: Input errors, money/quantity parsing and payload validation for the stock and sale APIs.

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text

from stockpost.time_utils import parse_iso_date


# Largest amount a Numeric(12, 2) column holds
MAX_MONEY = Decimal("9999999999.99")
MONEY_QUANT = Decimal("0.01")

_INT_TEXT = re.compile(r"-?\d+")
_TRUE_WORDS = {"true", "1", "yes"}
_FALSE_WORDS = {"false", "0", "no"}


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate key)."""


class NotFoundError(LookupError):
    """404-level: the targeted row does not exist."""


def to_money(value) -> Decimal:
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_money_str(value) -> str | None:
    """JSON form of money/percent columns: exact 2-place string, None passthrough."""
    if value is None:
        return None
    return str(to_money(value))


def parse_positive_int(value: Any, field: str, *, allow_zero: bool = False) -> int:
    """
    Whole-unit quantity parse.

    Accepts ints, integral floats and plain digit strings. Bools, blanks,
    fractions and exponent notation ("1e3") are rejected.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    elif isinstance(value, str) and _INT_TEXT.fullmatch(value.strip()):
        parsed = int(value.strip())
    else:
        raise ValidationError(f"{field} must be an integer")

    floor = 0 if allow_zero else 1
    if parsed < floor:
        raise ValidationError(f"{field} must be >= 0" if allow_zero else f"{field} must be greater than 0")
    return parsed


def parse_money(value: Any, field: str) -> Decimal:
    """Non-negative amount rounded half-up to cents."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    return to_money(amount)


def parse_discount(value: Any, field: str = "discount") -> Decimal:
    """Percentage discount, 0-100 inclusive. Missing means no discount."""
    if value is None or value == "":
        return Decimal("0.00")
    pct = parse_money(value, field)
    if pct > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    return pct


def _parse_flag(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValidationError(f"{field} must be a boolean")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Per-endpoint allowlist:
    - writable_fields: keys a client may send (anything else is rejected)
    - required_on_create: keys that must be present on POST
    """
    writable_fields: set[str]
    required_on_create: frozenset[str] = frozenset()


def _coerce_column_value(col, value: Any):
    """Turn one JSON value into what the column stores, by column type."""
    coltype = col.type

    if isinstance(coltype, Boolean):
        return _parse_flag(value, col.key)

    # Every integer column here is a count or threshold
    if isinstance(coltype, Integer):
        return parse_positive_int(value, col.key, allow_zero=True)

    if isinstance(coltype, Numeric):
        return parse_money(value, col.key)

    if isinstance(coltype, Date):
        try:
            return parse_iso_date(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be an ISO-8601 date")

    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if text == "" and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        length = getattr(coltype, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{col.key} exceeds max length {length}")
        return text

    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Check a JSON body against a policy and the model's columns.

    partial=False is create semantics (required_on_create enforced);
    partial=True validates only the keys present. Returns a patch holding
    only writable, type-coerced values.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(set(policy.required_on_create) - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _coerce_column_value(col, raw)
    return patch


def enforce_rules_stock_lot(patch: dict, *, creating: bool) -> None:
    """Lot rules beyond column types: positive intake quantity, cost present, expiry after purchase."""
    if creating or "quantity" in patch:
        patch["quantity"] = parse_positive_int(patch.get("quantity"), "quantity", allow_zero=not creating)

    if creating and patch.get("cost_price") is None:
        raise ValidationError("cost_price is required")
    for key in ("cost_price", "sell_price"):
        if patch.get(key) is not None:
            patch[key] = parse_money(patch[key], key)

    purchase = patch.get("purchase_date")
    expiry = patch.get("expiry_date")
    if purchase is not None and expiry is not None and expiry < purchase:
        raise ValidationError("expiry_date cannot be before purchase_date")


def enforce_rules_variant(patch: dict) -> None:
    for key in ("min_stock", "max_stock"):
        if patch.get(key) is not None:
            patch[key] = parse_positive_int(patch[key], key, allow_zero=True)

    min_stock = patch.get("min_stock")
    max_stock = patch.get("max_stock")
    if min_stock is not None and max_stock is not None and min_stock > max_stock:
        raise ValidationError("min_stock cannot exceed max_stock")
