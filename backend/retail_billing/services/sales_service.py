# Overview: Sale create/update/cancel with transactional stock effects.

"""
Sales Service

Every mutation runs as one atomic unit (run_atomic): sale row, items and
product stock are committed together or not at all.

- create: price items, allocate invoice number, write sale + items, decrement stock
- update: restore old item stock, replace items, re-price, decrement again
- cancel: restore every item's stock, mark the sale cancelled (terminal)

payment_status is an explicit state machine; see SALE_STATUS_TRANSITIONS.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from ..models import Customer, Payment, Product, Sale, SaleItem
from ..money import format_cents
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_atomic
from .document_service import next_invoice_number
from .sale_calculator import (
    LineItemDetail,
    LineItemInput,
    SaleTotals,
    calculate_sale_totals,
    summarize,
)

logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT STATUS (STATE MACHINE)
# =============================================================================

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_CANCELLED = "cancelled"

VALID_PAYMENT_STATUSES = [
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_CANCELLED,
]

# paid -> cancelled only through cancel_sale(); generic updates are refused
# on paid sales before any transition is attempted.
SALE_STATUS_TRANSITIONS = {
    PAYMENT_STATUS_PENDING: {
        PAYMENT_STATUS_PENDING,
        PAYMENT_STATUS_PARTIAL,
        PAYMENT_STATUS_PAID,
        PAYMENT_STATUS_CANCELLED,
    },
    PAYMENT_STATUS_PARTIAL: {
        PAYMENT_STATUS_PARTIAL,
        PAYMENT_STATUS_PAID,
        PAYMENT_STATUS_CANCELLED,
    },
    PAYMENT_STATUS_PAID: {
        PAYMENT_STATUS_PAID,
        PAYMENT_STATUS_CANCELLED,
    },
    PAYMENT_STATUS_CANCELLED: set(),
}

EDITABLE_STATUSES = frozenset({PAYMENT_STATUS_PENDING, PAYMENT_STATUS_PARTIAL})


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CARD = "card"
PAYMENT_METHOD_UPI = "upi"
PAYMENT_METHOD_CREDIT = "credit"
PAYMENT_METHOD_OTHER = "other"

VALID_PAYMENT_METHODS = [
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CARD,
    PAYMENT_METHOD_UPI,
    PAYMENT_METHOD_CREDIT,
    PAYMENT_METHOD_OTHER,
]


def transition_payment_status(sale: Sale, new_status: str) -> None:
    """Move sale to new_status or raise InvalidStateError."""
    allowed = SALE_STATUS_TRANSITIONS.get(sale.payment_status, set())
    if new_status not in allowed:
        raise InvalidStateError(
            f"Cannot change payment status from {sale.payment_status} to {new_status}",
            details={"sale_id": sale.id, "from": sale.payment_status, "to": new_status},
        )
    sale.payment_status = new_status


# =============================================================================
# HELPERS
# =============================================================================

def _get_sale_locked(sale_id: int) -> Sale:
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def _check_editable(sale: Sale) -> None:
    if sale.payment_status not in EDITABLE_STATUSES:
        raise InvalidStateError(
            f"Cannot update a {sale.payment_status} sale",
            details={"sale_id": sale.id, "payment_status": sale.payment_status},
        )


def _ensure_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def _lock_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise NotFoundError(f"Product with id {product_id} not found")
    return product


def _restore_item_stock(items: list[SaleItem]) -> None:
    """Put sold quantities back on the shelf (additive, no floor check)."""
    for item in items:
        product = _lock_product(item.product_id)
        product.stock_quantity += item.quantity


def _write_items(sale: Sale, totals: SaleTotals) -> None:
    """Insert priced items and decrement stock for each."""
    for detail in totals.items:
        sale.items.append(SaleItem(
            product_id=detail.product_id,
            quantity=detail.quantity,
            unit_price_cents=detail.unit_price_cents,
            discount_amount_cents=detail.discount_amount_cents,
            tax_amount_cents=detail.tax_amount_cents,
            line_total_cents=detail.line_total_cents,
        ))

        product = _lock_product(detail.product_id)
        if product.stock_quantity < detail.quantity:
            # Calculator already checked under the same lock; this guards the column invariant
            raise InsufficientStockError(
                product_id=product.id,
                available=product.stock_quantity,
                requested=detail.quantity,
            )
        product.stock_quantity -= detail.quantity


def _apply_totals(sale: Sale, totals: SaleTotals) -> None:
    sale.subtotal_cents = totals.subtotal_cents
    sale.tax_amount_cents = totals.tax_amount_cents
    sale.discount_amount_cents = totals.discount_amount_cents
    sale.total_amount_cents = totals.total_amount_cents


def _stored_line_details(sale: Sale) -> list[LineItemDetail]:
    return [
        LineItemDetail(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            discount_amount_cents=item.discount_amount_cents,
            tax_amount_cents=item.tax_amount_cents,
            line_total_cents=item.line_total_cents,
        )
        for item in sale.items
    ]


def total_paid_cents(sale_id: int) -> int:
    """Sum of recorded payments for a sale."""
    return int(
        db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0))
        .filter(Payment.sale_id == sale_id)
        .scalar() or 0
    )


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def get_editable_sale(sale_id: int) -> Sale:
    """
    Sale that update_sale() would currently accept.

    Raises NotFoundError, then InvalidStateError for paid/cancelled sales.
    Routes call this before validating an update body; update_sale()
    repeats the check under the row lock.
    """
    sale = get_sale(sale_id)
    _check_editable(sale)
    return sale


def list_sales(
    *,
    page: int = 1,
    limit: int = 20,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    customer_id: int | None = None,
    payment_status: str | None = None,
    created_by: int | None = None,
) -> tuple[list[Sale], int]:
    """Return (sales on the requested page, total matching rows)."""
    q = db.session.query(Sale)
    if start_date is not None:
        q = q.filter(Sale.sale_date >= start_date)
    if end_date is not None:
        q = q.filter(Sale.sale_date <= end_date)
    if customer_id is not None:
        q = q.filter(Sale.customer_id == customer_id)
    if payment_status:
        q = q.filter(Sale.payment_status == payment_status)
    if created_by is not None:
        q = q.filter(Sale.created_by == created_by)

    total = q.count()
    rows = (
        q.order_by(Sale.sale_date.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def quote_sale(items: list[LineItemInput], discount_amount_cents: int = 0) -> SaleTotals:
    """Price a prospective sale without writing anything."""
    return calculate_sale_totals(items, discount_amount_cents)


# =============================================================================
# MUTATIONS
# =============================================================================

def create_sale(
    *,
    items: list[LineItemInput],
    discount_amount_cents: int = 0,
    customer_id: int | None = None,
    payment_method: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Sale:
    """
    Create a sale with its items and decrement stock, atomically.

    Raises NotFoundError (customer/product), InsufficientStockError,
    ValidationError (discount larger than subtotal).
    """
    if not items:
        raise ValidationError.for_field("items", "At least one item is required")

    def _op():
        if customer_id:
            _ensure_customer(customer_id)

        totals = calculate_sale_totals(items, discount_amount_cents, lock=True)

        now = utcnow()
        sale = Sale(
            invoice_number=next_invoice_number(),
            customer_id=customer_id or None,
            sale_date=now,
            payment_status=PAYMENT_STATUS_PAID if payment_method else PAYMENT_STATUS_PENDING,
            payment_method=payment_method or None,
            notes=notes or None,
            created_by=user_id,
            updated_by=user_id,
            created_at=now,
            updated_at=now,
        )
        _apply_totals(sale, totals)
        db.session.add(sale)

        _write_items(sale, totals)
        db.session.flush()
        return sale

    sale = run_atomic(_op)
    logger.info(
        "Sale %s created: %d item(s), total %s, status %s",
        sale.invoice_number, len(sale.items), format_cents(sale.total_amount_cents), sale.payment_status,
    )
    return sale


def update_sale(sale_id: int, *, patch: dict, user_id: int | None = None) -> Sale:
    """
    Apply a validated partial update to a pending/partial sale.

    Only keys present in patch change (items, discount_amount_cents,
    customer_id, payment_method, notes). New items replace the old ones
    wholesale: old quantities go back to stock before the new ones are priced
    and taken. A discount-only change re-derives totals from the stored items.
    """
    def _op():
        sale = _get_sale_locked(sale_id)
        _check_editable(sale)

        if patch.get("customer_id"):
            _ensure_customer(patch["customer_id"])

        discount = patch.get("discount_amount_cents", sale.discount_amount_cents)
        totals_changed = False

        if "items" in patch:
            if not patch["items"]:
                raise ValidationError.for_field("items", "At least one item is required")

            _restore_item_stock(list(sale.items))
            sale.items.clear()
            db.session.flush()

            totals = calculate_sale_totals(patch["items"], discount, lock=True)
            _apply_totals(sale, totals)
            _write_items(sale, totals)
            totals_changed = True
        elif "discount_amount_cents" in patch:
            _apply_totals(sale, summarize(_stored_line_details(sale), discount))
            totals_changed = True

        if "customer_id" in patch:
            sale.customer_id = patch["customer_id"] or None

        if "notes" in patch:
            sale.notes = patch["notes"] or None

        paid = total_paid_cents(sale.id)
        if totals_changed and paid > sale.total_amount_cents:
            raise ValidationError.for_field(
                "total_amount",
                f"Sale total cannot be less than the amount already paid ({format_cents(paid)})",
            )

        if "payment_method" in patch:
            payment_method = patch["payment_method"]
            sale.payment_method = payment_method or None
            transition_payment_status(
                sale, PAYMENT_STATUS_PAID if payment_method else PAYMENT_STATUS_PENDING
            )
        elif totals_changed and paid > 0:
            transition_payment_status(
                sale,
                PAYMENT_STATUS_PAID if paid >= sale.total_amount_cents else PAYMENT_STATUS_PARTIAL,
            )

        sale.updated_by = user_id
        sale.updated_at = utcnow()
        db.session.flush()
        return sale

    sale = run_atomic(_op)
    logger.info("Sale %s updated: total %s", sale.invoice_number, format_cents(sale.total_amount_cents))
    return sale


def cancel_sale(sale_id: int, user_id: int | None = None) -> Sale:
    """
    Cancel a sale and return every item's quantity to stock.

    Cancelled is terminal: a second cancel raises InvalidStateError instead of
    restoring stock again.
    """
    def _op():
        sale = _get_sale_locked(sale_id)

        transition_payment_status(sale, PAYMENT_STATUS_CANCELLED)
        _restore_item_stock(list(sale.items))

        now = utcnow()
        sale.cancelled_by = user_id
        sale.cancelled_at = now
        sale.updated_by = user_id
        sale.updated_at = now
        db.session.flush()
        return sale

    sale = run_atomic(_op)
    logger.info("Sale %s cancelled, stock restored for %d item(s)", sale.invoice_number, len(sale.items))
    return sale
