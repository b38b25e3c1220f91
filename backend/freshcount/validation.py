from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models import UNIT_TYPES, MOVEMENT_TYPES

# Quantities are stored as floats; arithmetic results are rounded to this many places
QUANTITY_PLACES = 3

# Smallest quantity a movement can carry at that precision
MIN_QUANTITY = 0.001

# Guards against nonsensical balances and float overflow
MAX_QUANTITY = 1_000_000_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def round_quantity(value: float) -> float:
    return round(float(value), QUANTITY_PLACES)


def coerce_number(value: Any, field: str) -> float:
    """
    Coerce a JSON number or numeric string to float.

    Booleans, blanks, NaN and infinities are rejected. The result is not
    rounded; callers check sign first and round afterwards.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            number = float(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{field} must be a finite number")
    return number


def json_object(payload: Any) -> dict:
    """
    Normalize a parsed JSON body: None (missing or unparseable) becomes {},
    anything other than an object is rejected.
    """
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def int_arg(args, name: str) -> int | None:
    """
    Read an optional integer query parameter.

    Absent or blank -> None; anything that is not an integer -> ValidationError.
    """
    raw = args.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.lstrip("-").isdigit():
                return int(stripped)
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Float):
        return round_quantity(coerce_number(value, col.key))

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    """
    if "unit_type" in patch and patch["unit_type"] not in UNIT_TYPES:
        raise ValidationError(f"Invalid unit type. Valid types: {', '.join(UNIT_TYPES)}")

    if "opening_stock" in patch:
        opening = patch["opening_stock"]
        if opening < 0:
            raise ValidationError("opening_stock must be >= 0")
        if opening > MAX_QUANTITY:
            raise ValidationError(f"opening_stock cannot exceed {MAX_QUANTITY}")


def enforce_rules_movement(payload: dict) -> dict:
    """
    Validate a stock movement request body.

    Returns {"product_id", "type", "quantity", "notes"} with quantity coerced
    to a positive float.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    product_id = payload.get("product_id")
    movement_type = payload.get("type")
    quantity = payload.get("quantity")

    if product_id in (None, "") or movement_type in (None, "") or quantity is None:
        raise ValidationError("product_id, type, and quantity are required")

    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError("Type must be either IN or OUT")

    if isinstance(product_id, (bool, float)):
        raise ValidationError("product_id must be an integer")
    try:
        product_id = int(product_id)
    except (TypeError, ValueError):
        raise ValidationError("product_id must be an integer")

    raw_quantity = coerce_number(quantity, "quantity")
    if raw_quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")

    quantity = round_quantity(raw_quantity)
    if quantity < MIN_QUANTITY:
        raise ValidationError(f"Quantity must be at least {MIN_QUANTITY}")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity cannot exceed {MAX_QUANTITY}")

    notes = payload.get("notes") or ""
    notes = str(notes).strip()
    if len(notes) > 500:
        raise ValidationError("notes exceeds max length 500")

    return {
        "product_id": product_id,
        "type": movement_type,
        "quantity": quantity,
        "notes": notes,
    }
