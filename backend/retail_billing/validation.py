from __future__ import annotations

from datetime import datetime, time
from typing import Any

from .errors import ValidationError
from .money import to_cents
from .services.sale_calculator import LineItemInput
from .services.sales_service import VALID_PAYMENT_METHODS, VALID_PAYMENT_STATUSES
from .services.stock_ledger import VALID_TRANSACTION_TYPES
from .time_utils import parse_iso_datetime

# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999

NOTES_MAX_LENGTH = 500
REFERENCE_TYPE_MAX_LENGTH = 50
TRANSACTION_ID_MAX_LENGTH = 100

# Ids, page numbers and thresholds must fit a 32-bit INTEGER column
MAX_INTEGER = 2_147_483_647
# Largest quantity accepted on a sale line or a single stock movement
MAX_QUANTITY = 1_000_000


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON bodies and query strings.

    Accepts ints and plain digit strings; rejects bools, floats, decimals
    and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValueError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValueError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValueError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValueError(f"{field} must be an integer, not a decimal")
    raise ValueError(f"{field} must be an integer")


class _Errors:
    """Collects field errors so one response can report all of them."""

    def __init__(self):
        self.items: list[dict] = []

    def add(self, field: str, message: str) -> None:
        self.items.append({"field": field, "message": message})

    def raise_if_any(self) -> None:
        if self.items:
            raise ValidationError("Validation error", errors=self.items)

    # -- field readers; each returns None after recording an error --

    def int_field(
        self, raw: Any, field: str, *, min_value: int | None = None, max_value: int = MAX_INTEGER
    ) -> int | None:
        try:
            value = coerce_int(raw, field)
        except ValueError as exc:
            self.add(field, str(exc))
            return None
        if min_value is not None and value < min_value:
            self.add(field, f"{field} must be >= {min_value}")
            return None
        if value > max_value:
            self.add(field, f"{field} must be <= {max_value}")
            return None
        return value

    def amount_field(self, raw: Any, field: str, *, positive: bool = False) -> int | None:
        try:
            cents = to_cents(raw)
        except ValueError as exc:
            self.add(field, f"{field} {exc}")
            return None
        if positive and cents <= 0:
            self.add(field, f"{field} must be greater than 0")
            return None
        if cents < 0:
            self.add(field, f"{field} must be >= 0")
            return None
        if cents > MAX_AMOUNT_CENTS:
            self.add(field, f"{field} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
            return None
        return cents

    def str_field(self, raw: Any, field: str, *, max_length: int) -> str | None:
        if not isinstance(raw, str):
            self.add(field, f"{field} must be a string")
            return None
        value = raw.strip()
        if len(value) > max_length:
            self.add(field, f"{field} exceeds max length {max_length}")
            return None
        return value

    def choice_field(self, raw: Any, field: str, choices: list[str]) -> str | None:
        if raw not in choices:
            self.add(field, f"{field} must be one of: {', '.join(choices)}")
            return None
        return raw


def _require_object(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError.for_field("body", "Invalid JSON payload")
    return payload


def _items(errors: _Errors, raw: Any) -> list[LineItemInput]:
    if not isinstance(raw, list) or not raw:
        errors.add("items", "items must be a non-empty list")
        return []

    items: list[LineItemInput] = []
    for index, entry in enumerate(raw):
        prefix = f"items.{index}"
        if not isinstance(entry, dict):
            errors.add(prefix, f"{prefix} must be an object")
            continue

        product_id = quantity = unit_price = None
        for key in ("product_id", "quantity", "unit_price"):
            if entry.get(key) is None:
                errors.add(f"{prefix}.{key}", f"{key} is required")

        if entry.get("product_id") is not None:
            product_id = errors.int_field(entry["product_id"], f"{prefix}.product_id", min_value=1)
        if entry.get("quantity") is not None:
            quantity = errors.int_field(
                entry["quantity"], f"{prefix}.quantity", min_value=1, max_value=MAX_QUANTITY
            )
        if entry.get("unit_price") is not None:
            unit_price = errors.amount_field(entry["unit_price"], f"{prefix}.unit_price", positive=True)

        discount = 0
        if entry.get("discount_amount") is not None:
            discount = errors.amount_field(entry["discount_amount"], f"{prefix}.discount_amount")

        if None in (product_id, quantity, unit_price, discount):
            continue
        items.append(LineItemInput(
            product_id=product_id,
            quantity=quantity,
            unit_price_cents=unit_price,
            discount_amount_cents=discount,
        ))
    return items


def _sale_scalars(errors: _Errors, payload: dict, patch: dict) -> None:
    if "customer_id" in payload:
        if payload["customer_id"] is None:
            patch["customer_id"] = None
        else:
            patch["customer_id"] = errors.int_field(payload["customer_id"], "customer_id", min_value=1)

    if "discount_amount" in payload and payload["discount_amount"] is not None:
        patch["discount_amount_cents"] = errors.amount_field(payload["discount_amount"], "discount_amount")

    if "payment_method" in payload:
        raw = payload["payment_method"]
        if raw in (None, ""):
            patch["payment_method"] = None
        else:
            patch["payment_method"] = errors.choice_field(raw, "payment_method", VALID_PAYMENT_METHODS)

    if "notes" in payload:
        if payload["notes"] is None:
            patch["notes"] = None
        else:
            patch["notes"] = errors.str_field(payload["notes"], "notes", max_length=NOTES_MAX_LENGTH)


def validate_sale_create(payload: Any) -> dict:
    """
    Validate a create-sale body.

    Returns kwargs for sales_service.create_sale(); raises ValidationError
    listing every invalid field.
    """
    payload = _require_object(payload)
    errors = _Errors()

    patch: dict = {"items": _items(errors, payload.get("items"))}
    _sale_scalars(errors, payload, patch)
    errors.raise_if_any()

    patch.setdefault("discount_amount_cents", 0)
    return patch


def validate_sale_update(payload: Any) -> dict:
    """Validate an update-sale body; only provided keys end up in the patch."""
    payload = _require_object(payload)
    errors = _Errors()

    patch: dict = {}
    if "items" in payload:
        patch["items"] = _items(errors, payload["items"])
    _sale_scalars(errors, payload, patch)
    errors.raise_if_any()
    return patch


def validate_sale_quote(payload: Any) -> dict:
    payload = _require_object(payload)
    errors = _Errors()

    items = _items(errors, payload.get("items"))
    discount = 0
    if payload.get("discount_amount") is not None:
        discount = errors.amount_field(payload["discount_amount"], "discount_amount")
    errors.raise_if_any()
    return {"items": items, "discount_amount_cents": discount}


def validate_payment(payload: Any) -> dict:
    """Validate a record-payment body."""
    payload = _require_object(payload)
    errors = _Errors()
    patch: dict = {}

    for key in ("sale_id", "payment_method", "amount"):
        if payload.get(key) in (None, ""):
            errors.add(key, f"{key} is required")

    if payload.get("sale_id") not in (None, ""):
        patch["sale_id"] = errors.int_field(payload["sale_id"], "sale_id", min_value=1)
    if payload.get("payment_method") not in (None, ""):
        patch["payment_method"] = errors.choice_field(
            payload["payment_method"], "payment_method", VALID_PAYMENT_METHODS
        )
    if payload.get("amount") not in (None, ""):
        patch["amount_cents"] = errors.amount_field(payload["amount"], "amount", positive=True)

    if payload.get("transaction_id") is not None:
        patch["transaction_id"] = errors.str_field(
            payload["transaction_id"], "transaction_id", max_length=TRANSACTION_ID_MAX_LENGTH
        )
    if payload.get("notes") is not None:
        patch["notes"] = errors.str_field(payload["notes"], "notes", max_length=NOTES_MAX_LENGTH)

    errors.raise_if_any()
    return patch


def validate_inventory_transaction(payload: Any, *, partial: bool) -> dict:
    """
    Validate an inventory transaction body.

    partial=False: create semantics (product_id, transaction_type, quantity required)
    partial=True: patch semantics (validate only provided keys)
    """
    payload = _require_object(payload)
    errors = _Errors()
    patch: dict = {}

    if not partial:
        for key in ("product_id", "transaction_type", "quantity"):
            if payload.get(key) is None:
                errors.add(key, f"{key} is required")

    if payload.get("product_id") is not None:
        patch["product_id"] = errors.int_field(payload["product_id"], "product_id", min_value=1)
    elif partial and "product_id" in payload:
        errors.add("product_id", "product_id cannot be null")

    if payload.get("transaction_type") is not None:
        patch["transaction_type"] = errors.choice_field(
            payload["transaction_type"], "transaction_type", VALID_TRANSACTION_TYPES
        )
    elif partial and "transaction_type" in payload:
        errors.add("transaction_type", "transaction_type cannot be null")

    if payload.get("quantity") is not None:
        patch["quantity"] = errors.int_field(
            payload["quantity"], "quantity", min_value=-MAX_QUANTITY, max_value=MAX_QUANTITY
        )
    elif partial and "quantity" in payload:
        errors.add("quantity", "quantity cannot be null")

    if "reference_type" in payload:
        raw = payload["reference_type"]
        patch["reference_type"] = None if raw is None else errors.str_field(
            raw, "reference_type", max_length=REFERENCE_TYPE_MAX_LENGTH
        )
    if "reference_id" in payload:
        raw = payload["reference_id"]
        patch["reference_id"] = None if raw is None else errors.int_field(raw, "reference_id", min_value=1)
    if "notes" in payload:
        raw = payload["notes"]
        patch["notes"] = None if raw is None else errors.str_field(raw, "notes", max_length=NOTES_MAX_LENGTH)

    errors.raise_if_any()
    return patch


def _date_arg(errors: _Errors, raw: str, field: str, *, end_of_day: bool) -> datetime | None:
    """
    Parse an ISO-8601 date or datetime query value (UTC-naive).

    A bare date used as an upper bound covers the whole day.
    """
    try:
        dt = parse_iso_datetime(raw)
    except ValueError:
        dt = None
    if dt is None:
        errors.add(field, f"{field} must be an ISO-8601 date or datetime")
        return None
    if end_of_day and len(raw.strip()) == 10:
        dt = datetime.combine(dt.date(), time.max)
    return dt


def validate_sale_list_params(args, *, max_limit: int = 100) -> dict:
    """Validate GET /api/sales query parameters."""
    errors = _Errors()
    params: dict = {"page": 1, "limit": 20}

    if args.get("page"):
        params["page"] = errors.int_field(args["page"], "page", min_value=1)
    if args.get("limit"):
        params["limit"] = errors.int_field(args["limit"], "limit", min_value=1, max_value=max_limit)

    if args.get("start_date"):
        params["start_date"] = _date_arg(errors, args["start_date"], "start_date", end_of_day=False)
    if args.get("end_date"):
        params["end_date"] = _date_arg(errors, args["end_date"], "end_date", end_of_day=True)

    for key in ("customer_id", "created_by"):
        if args.get(key):
            params[key] = errors.int_field(args[key], key, min_value=1)

    if args.get("payment_status"):
        params["payment_status"] = errors.choice_field(
            args["payment_status"], "payment_status", VALID_PAYMENT_STATUSES
        )

    errors.raise_if_any()
    return params


def validate_inventory_list_params(args) -> dict:
    errors = _Errors()
    params: dict = {}
    if args.get("product_id"):
        params["product_id"] = errors.int_field(args["product_id"], "product_id", min_value=1)
    if args.get("transaction_type"):
        params["transaction_type"] = errors.choice_field(
            args["transaction_type"], "transaction_type", VALID_TRANSACTION_TYPES
        )
    errors.raise_if_any()
    return params


def validate_threshold(raw: str | None) -> int | None:
    if raw in (None, ""):
        return None
    errors = _Errors()
    threshold = errors.int_field(raw, "threshold", min_value=0)
    errors.raise_if_any()
    return threshold
