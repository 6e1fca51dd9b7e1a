from __future__ import annotations
from datetime import datetime
import math
import re
from atelier.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Float, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError, ConflictError  # noqa: F401  (re-exported for routes)
from .services.bespoke_status import parse_task_stage


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

MAX_LONG_TEXT = 5000
MAX_NOTE_TEXT = 2000

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

BOOLEAN_STRINGS = {"true": True, "false": False, "1": True, "0": False}


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


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer", {col.key: "must be an integer"})
            if 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be a plain integer", {col.key: "must be a plain integer"})
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer", {col.key: "must be an integer"})
        raise ValidationError(f"{col.key} must be an integer", {col.key: "must be an integer"})

    # Floats (hours, body measurements) accept ints and numeric strings
    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number", {col.key: "must be a number"})
        number = None
        try:
            if isinstance(value, (int, float)):
                number = float(value)
            elif isinstance(value, str) and value.strip():
                number = float(value.strip())
        except (ValueError, OverflowError):
            pass
        if number is None:
            raise ValidationError(f"{col.key} must be a number", {col.key: "must be a number"})
        # NaN and infinity would be stored as NULL or as-is by SQLite
        if not math.isfinite(number):
            raise ValidationError(f"{col.key} must be a finite number", {col.key: "must be a finite number"})
        return number

    # Booleans: real bools, or the exact strings an HTML form sends
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in BOOLEAN_STRINGS:
            return BOOLEAN_STRINGS[value.strip().lower()]
        raise ValidationError(f"{col.key} must be a boolean", {col.key: "must be a boolean"})

    # Datetimes (accept ISO-8601 dates or datetimes; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date", {col.key: "must be an ISO-8601 date"})
            return dt
        raise ValidationError(f"{col.key} must be a date", {col.key: "must be a date"})

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
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                {f: "is required" for f in missing},
            )

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields or k not in cols:
            raise ValidationError(f"Field not allowed: {k}", {k: "is not writable"})

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", {k: "cannot be null"})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank strings: rejected for required text, stored as NULL otherwise
        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                raise ValidationError(f"{k} cannot be blank", {k: "cannot be blank"})
            val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(
                    f"{k} exceeds max length {col.type.length}",
                    {k: f"exceeds max length {col.type.length}"},
                )

        patch[k] = val

    return patch


def _check_text_max(patch: dict, field: str, limit: int) -> None:
    val = patch.get(field)
    if isinstance(val, str) and len(val) > limit:
        raise ValidationError(f"{field} exceeds max length {limit}", {field: f"exceeds max length {limit}"})


def _check_positive(patch: dict, field: str, *, upper: float | None = None) -> None:
    val = patch.get(field)
    if val is None:
        return
    if val <= 0:
        raise ValidationError(f"{field} must be > 0", {field: "must be greater than 0"})
    if upper is not None and val > upper:
        raise ValidationError(f"{field} cannot exceed {upper}", {field: f"cannot exceed {upper}"})


def enforce_rules_bespoke_order(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    name = patch.get("customer_name")
    if "customer_name" in patch and (name is None or len(name) < 2):
        raise ValidationError("customer_name is required", {"customer_name": "must be at least 2 characters"})

    phone = patch.get("customer_phone")
    if "customer_phone" in patch and (phone is None or len(phone) < 7):
        raise ValidationError("customer_phone is required", {"customer_phone": "must be at least 7 characters"})

    email = patch.get("customer_email")
    if email is not None and not EMAIL_RE.match(email):
        raise ValidationError("Invalid email", {"customer_email": "must be a valid email address"})

    for field in ("estimated_price_cents", "final_price_cents", "deposit_amount_cents"):
        _check_positive(patch, field, upper=MAX_PRICE_CENTS)

    for field in ("design_description", "internal_notes", "customer_notes", "fabric_details"):
        _check_text_max(patch, field, MAX_LONG_TEXT)


def enforce_rules_production_task(patch: dict) -> None:
    if "stage" in patch:
        patch["stage"] = parse_task_stage(patch["stage"]).value

    if "priority" in patch:
        priority = patch["priority"]
        if priority is None:
            patch["priority"] = 0
        elif not 0 <= priority <= 2:
            raise ValidationError("priority must be between 0 and 2", {"priority": "must be 0, 1 or 2"})

    _check_positive(patch, "estimated_hours")
    _check_positive(patch, "actual_hours")
    _check_text_max(patch, "description", MAX_NOTE_TEXT)
    _check_text_max(patch, "notes", MAX_NOTE_TEXT)


MEASUREMENT_FIELDS = (
    "chest", "shoulder", "sleeve_length", "neck", "back_length", "waist",
    "hip", "inseam", "outseam", "thigh", "height", "weight",
)


def enforce_rules_measurement(patch: dict) -> None:
    for field in MEASUREMENT_FIELDS:
        if field not in patch or patch[field] is None:
            continue
        if patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0", {field: "must be 0 or greater"})
        # The intake form submits 0 for "not measured"
        if patch[field] == 0:
            patch[field] = None
    _check_text_max(patch, "notes", MAX_NOTE_TEXT)
