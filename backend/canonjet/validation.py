from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .money_utils import MAX_AMOUNT_CENTS, amount_to_cents


# Largest quantity one order line, delivery or stock count may carry
MAX_QUANTITY = 1_000_000

# SQLite INTEGER is a signed 64-bit value
MAX_DB_INTEGER = 2**63 - 1


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate username)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level unknown id (order, user, inventory item, order line)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def __str__(self) -> str:
        # LookupError would repr() the message
        return self.args[0] if self.args else ""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: wire names clients are allowed to send (security boundary)
    - required_on_create: wire names required for POST
    - aliases: wire name -> model column key, for the Spanish wire vocabulary
    - money_fields: wire names carrying decimal amounts stored as integer cents
    - ignored_fields: accepted on the wire but never written through the patch
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    aliases: dict[str, str] | None = None
    money_fields: set[str] | None = None
    ignored_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(field: str, value: Any) -> int:
    """Strict integer coercion: rejects floats with decimals and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input (form posts, CSV rows) - must be plain digits
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _check_db_integer(value: int, field: str) -> int:
    if abs(value) > MAX_DB_INTEGER:
        raise ValidationError(f"{field} is out of range")
    return value


def _coerce_value(col, field: str, value: Any, *, money: bool = False):
    coltype = col.type

    if value is None:
        return None

    if money:
        try:
            return amount_to_cents(value)
        except ValueError:
            raise ValidationError(f"{field} must be a number")

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        return _check_db_integer(_coerce_int(field, value), field)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes an incoming wire payload against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by model column key.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    aliases = policy.aliases or {}
    money_fields = policy.money_fields or set()
    ignored = policy.ignored_fields or set()

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k in ignored:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if aliases.get(k, k) not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in ignored:
            continue
        key = aliases.get(k, k)
        col = cols[key]

        # Form posts send "" for untouched optional inputs
        if raw is None or (raw == "" and col.nullable):
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[key] = None
            continue

        val = _coerce_value(col, k, raw, money=k in money_fields)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[key] = val

    return patch


def _check_amount(patch: dict, key: str, field: str) -> None:
    if key in patch and patch[key] is not None:
        amount = patch[key]
        if amount < 0:
            raise ValidationError(f"{field} must be >= 0")
        if amount > MAX_AMOUNT_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")


def enforce_rules_inventory_item(patch: dict) -> None:
    _check_amount(patch, "base_cost_cents", "precio_base")
    if "stock_count" in patch:
        if patch["stock_count"] is None:
            raise ValidationError("cantidad cannot be null")
        if patch["stock_count"] < 0:
            raise ValidationError("cantidad must be >= 0")
        if patch["stock_count"] > MAX_QUANTITY:
            raise ValidationError(f"cantidad cannot exceed {MAX_QUANTITY}")


def enforce_rules_user(patch: dict) -> None:
    from .models import USER_ROLES

    if "role" in patch and patch["role"] not in USER_ROLES:
        raise ValidationError(f"rol must be one of: {', '.join(sorted(USER_ROLES))}")


def enforce_rules_order_header(patch: dict) -> None:
    from .models import ORDER_KINDS, ORDER_KIND_DELIVERY

    kind = patch.get("order_kind")
    if kind not in ORDER_KINDS:
        raise ValidationError(f"tipo_pedido must be one of: {', '.join(sorted(ORDER_KINDS))}")
    if kind == ORDER_KIND_DELIVERY and not patch.get("address"):
        raise ValidationError("direccion is required for domicilio orders")
    _check_amount(patch, "delivery_fee_cents", "precio_mensajeria")


def _parse_list_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    return value


def parse_positive_int(value: Any, field: str, *, maximum: int = MAX_DB_INTEGER) -> int:
    """Strict integer > 0 for ids and quantities coming from JSON lists."""
    value = _parse_list_int(value, field)
    if value <= 0:
        raise ValidationError(f"{field} must be > 0")
    if value > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return value


def parse_non_negative_int(value: Any, field: str, *, maximum: int = MAX_DB_INTEGER) -> int:
    value = _parse_list_int(value, field)
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    if value > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return value


def parse_amount(value: Any, field: str) -> int:
    """Decimal amount -> cents, non-negative and bounded."""
    if value is None:
        raise ValidationError(f"{field} is required")
    try:
        cents = amount_to_cents(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number")
    if cents < 0:
        raise ValidationError(f"{field} must be >= 0")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
    return cents
