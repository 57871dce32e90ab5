from __future__ import annotations
from datetime import datetime
from imeipos.time_utils import as_utc_naive, parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from .errors import ValidationError


# Maximum amount: 9,999,999.99 (999,999,999 minor units)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999

PAYMENT_METHODS = ("cash", "card", "transfer", "check")

# Edit operations: "field not supplied" as opposed to "set to None".
UNSET = object()


def format_cents(cents: int) -> str:
    """Render minor units for messages, e.g. 123456 -> '1,234.56'."""
    sign = "-" if cents < 0 else ""
    return f"{sign}{abs(cents) / 100:,.2f}"


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Rejects floats, booleans, scientific notation and decimal strings so that a
    monetary amount can never silently become a float.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_cents(value: Any, field: str, *, positive: bool = False) -> int:
    """Validate a monetary amount in minor units."""
    if value is None:
        raise ValidationError(f"{field} is required")
    cents = coerce_int(value, field)
    if positive and cents <= 0:
        raise ValidationError(f"{field} must be > 0")
    if cents < 0:
        raise ValidationError(f"{field} must be >= 0")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS} ({format_cents(MAX_AMOUNT_CENTS)})")
    return cents


def optional_cents(value: Any, field: str, default: int | None = None) -> int | None:
    if value is None:
        return default
    return require_cents(value, field)


def require_id(value: Any, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    ident = coerce_int(value, field)
    if ident <= 0:
        raise ValidationError(f"{field} must be a positive id")
    return ident


def optional_id(value: Any, field: str) -> int | None:
    if value is None:
        return None
    return require_id(value, field)


def require_payment_method(value: Any, field: str = "payment_method") -> str:
    if value is None:
        raise ValidationError(f"{field} is required")
    method = str(value).strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid {field}: {value}. Must be one of {list(PAYMENT_METHODS)}")
    return method


def optional_datetime(value: Any, field: str) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc_naive(value)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def optional_text(value: Any, field: str, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text or None


# =============================================================================
# LINE INPUTS
# =============================================================================

@dataclass(frozen=True)
class SaleLineInput:
    """One serialized unit on a sale: which item, at what price."""
    item_id: int
    unit_price: int


@dataclass(frozen=True)
class PurchaseLineInput:
    """
    One serialized unit on a purchase invoice.

    item_id is set for lines that already exist on the invoice (edits);
    lines without it create a new inventory item.
    """
    product_id: int
    imei: str
    unit_price: int
    item_id: int | None = None


def parse_sale_lines(raw: Any) -> list[SaleLineInput]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValidationError("Sale must have at least one item")

    lines = []
    for i, entry in enumerate(raw):
        if isinstance(entry, SaleLineInput):
            lines.append(SaleLineInput(
                item_id=require_id(entry.item_id, f"items[{i}].item_id"),
                unit_price=require_cents(entry.unit_price, f"items[{i}].unit_price"),
            ))
            continue
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{i}] must be an object")
        lines.append(SaleLineInput(
            item_id=require_id(entry.get("item_id"), f"items[{i}].item_id"),
            unit_price=require_cents(entry.get("unit_price"), f"items[{i}].unit_price"),
        ))

    seen: set[int] = set()
    for line in lines:
        if line.item_id in seen:
            raise ValidationError(f"Item {line.item_id} appears more than once")
        seen.add(line.item_id)
    return lines


def parse_purchase_lines(raw: Any) -> list[PurchaseLineInput]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValidationError("Purchase must have at least one item")

    lines = []
    for i, entry in enumerate(raw):
        if isinstance(entry, PurchaseLineInput):
            entry = {
                "product_id": entry.product_id,
                "imei": entry.imei,
                "unit_price": entry.unit_price,
                "item_id": entry.item_id,
            }
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{i}] must be an object")
        imei = str(entry.get("imei") or "").strip()
        if not imei:
            raise ValidationError(f"items[{i}].imei is required")
        if len(imei) > 64:
            raise ValidationError(f"items[{i}].imei exceeds max length 64")
        lines.append(PurchaseLineInput(
            product_id=require_id(entry.get("product_id"), f"items[{i}].product_id"),
            imei=imei,
            unit_price=require_cents(entry.get("unit_price"), f"items[{i}].unit_price"),
            item_id=optional_id(entry.get("item_id"), f"items[{i}].item_id"),
        ))

    seen_items: set[int] = set()
    for line in lines:
        if line.item_id is None:
            continue
        if line.item_id in seen_items:
            raise ValidationError(f"Item {line.item_id} appears more than once")
        seen_items.add(line.item_id)
    return lines
