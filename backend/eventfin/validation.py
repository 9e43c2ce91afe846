from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import BadRequestError


class ValidationError(BadRequestError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for create payloads
    - non_negative_fields: numeric fields that must be >= 0
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()
    non_negative_fields: frozenset[str] = frozenset()


# -- POLICIES --

BUDGET_VERSION_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"version_number", "notes"}),
    required_on_create=frozenset({"version_number"}),
)

BUDGET_VERSION_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"notes", "is_final"}),
)

LINE_ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "category", "item_name", "vendor_id", "quantity", "unit_cost", "estimated_cost", "notes",
    }),
    required_on_create=frozenset({"category", "item_name"}),
    non_negative_fields=frozenset({"quantity", "unit_cost", "estimated_cost"}),
)

LINE_ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=LINE_ITEM_CREATE_POLICY.writable_fields | {"actual_cost"},
    non_negative_fields=LINE_ITEM_CREATE_POLICY.non_negative_fields | {"actual_cost"},
)

EXPENSE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"title", "amount", "vendor_id", "description", "budget_line_item_id"}),
    required_on_create=frozenset({"title", "amount"}),
    non_negative_fields=frozenset({"amount"}),
)

EXPENSE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=EXPENSE_CREATE_POLICY.writable_fields,
    non_negative_fields=EXPENSE_CREATE_POLICY.non_negative_fields,
)


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(key: str) -> str:
    """itemName -> item_name; already-snake keys pass through."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def normalize_keys(payload: Any) -> Any:
    """Accept camelCase JSON keys by rewriting them to snake_case (one level)."""
    if not isinstance(payload, dict):
        return payload
    return {to_snake_case(k): v for k, v in payload.items()}


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or not re.fullmatch(r"-?\d+", stripped):
                raise ValidationError(f"{col.key} must be an integer")
            return int(stripped)
        raise ValidationError(f"{col.key} must be an integer")

    # Floats (currency amounts, quantities)
    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                raise ValidationError(f"{col.key} must be a number")
        else:
            raise ValidationError(f"{col.key} must be a number")
        if math.isnan(number) or math.isinf(number):
            raise ValidationError(f"{col.key} must be a finite number")
        return number

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

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
    - non_negative_fields
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = normalize_keys(payload)

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) is None)
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

        # NULL handling
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

        if k in policy.non_negative_fields and val < 0:
            raise ValidationError(f"{k} must be >= 0")

        patch[k] = val

    return patch
