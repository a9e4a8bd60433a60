# Overview: Sale total computation (per-line tax/discount and aggregate totals).

"""
Sale Total Calculator

Per line:
    item_subtotal  = unit_price * quantity
    after_discount = item_subtotal - line discount
    item_tax       = after_discount * tax_rate / 100   (full precision, rounded
                                                        half-up to the cent)
    line_total     = after_discount + item_tax

Aggregate:
    subtotal = sum(item_subtotal)        (undiscounted)
    tax      = sum(item_tax)
    total    = subtotal - sale discount + tax

Line discounts and the sale-level discount are independent; each is applied
once. Amounts are integer cents throughout, tax rates are basis points.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product
from ..money import format_cents, round_cents
from .concurrency import lock_for_update

BPS_DENOMINATOR = Decimal(10000)


@dataclass(frozen=True)
class LineItemInput:
    product_id: int
    quantity: int
    unit_price_cents: int
    discount_amount_cents: int = 0


@dataclass(frozen=True)
class LineItemDetail:
    product_id: int
    quantity: int
    unit_price_cents: int
    discount_amount_cents: int
    tax_amount_cents: int
    line_total_cents: int

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "line_total_cents": self.line_total_cents,
            "unit_price": format_cents(self.unit_price_cents),
            "discount_amount": format_cents(self.discount_amount_cents),
            "tax_amount": format_cents(self.tax_amount_cents),
            "line_total": format_cents(self.line_total_cents),
        }


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    tax_amount_cents: int
    discount_amount_cents: int
    total_amount_cents: int
    items: list[LineItemDetail] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "subtotal": format_cents(self.subtotal_cents),
            "tax_amount": format_cents(self.tax_amount_cents),
            "discount_amount": format_cents(self.discount_amount_cents),
            "total_amount": format_cents(self.total_amount_cents),
            "items": [item.to_dict() for item in self.items],
        }


def compute_line(item: LineItemInput, tax_rate_bps: int, *, index: int = 0) -> LineItemDetail:
    """Price one line. Pure; no database access."""
    item_subtotal = item.unit_price_cents * item.quantity
    discount = item.discount_amount_cents or 0
    if discount > item_subtotal:
        raise ValidationError.for_field(
            f"items.{index}.discount_amount",
            "discount_amount cannot exceed the line subtotal",
        )

    after_discount = item_subtotal - discount
    item_tax = round_cents(Decimal(after_discount) * Decimal(tax_rate_bps) / BPS_DENOMINATOR)

    return LineItemDetail(
        product_id=item.product_id,
        quantity=item.quantity,
        unit_price_cents=item.unit_price_cents,
        discount_amount_cents=discount,
        tax_amount_cents=item_tax,
        line_total_cents=after_discount + item_tax,
    )


def summarize(details: list[LineItemDetail], discount_amount_cents: int = 0) -> SaleTotals:
    """Aggregate priced lines into sale totals. Pure; no database access."""
    subtotal = sum(d.subtotal_cents for d in details)
    tax = sum(d.tax_amount_cents for d in details)
    discount = discount_amount_cents or 0
    if discount > subtotal:
        raise ValidationError.for_field(
            "discount_amount",
            "discount_amount cannot exceed the sale subtotal",
        )

    return SaleTotals(
        subtotal_cents=subtotal,
        tax_amount_cents=tax,
        discount_amount_cents=discount,
        total_amount_cents=(subtotal - discount) + tax,
        items=list(details),
    )


def calculate_sale_totals(
    items: list[LineItemInput],
    discount_amount_cents: int = 0,
    *,
    lock: bool = False,
) -> SaleTotals:
    """
    Price a list of line items against current product data.

    Raises NotFoundError for unknown products and InsufficientStockError when
    the quantity requested for a product (summed across lines) exceeds its
    stock. Pass lock=True inside a mutating transaction so the product rows
    stay locked until commit.
    """
    products: dict[int, Product] = {}
    requested: dict[int, int] = {}
    details: list[LineItemDetail] = []

    for index, item in enumerate(items):
        product = products.get(item.product_id)
        if product is None:
            query = db.session.query(Product).filter_by(id=item.product_id)
            if lock:
                query = lock_for_update(query)
            product = query.first()
            if product is None:
                raise NotFoundError(f"Product with id {item.product_id} not found")
            products[item.product_id] = product

        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        if product.stock_quantity < requested[item.product_id]:
            raise InsufficientStockError(
                product_id=product.id,
                available=product.stock_quantity,
                requested=requested[item.product_id],
            )

        details.append(compute_line(item, product.tax_rate_bps, index=index))

    return summarize(details, discount_amount_cents)
