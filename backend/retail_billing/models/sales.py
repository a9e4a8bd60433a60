from __future__ import annotations

from ..extensions import db
from ..money import format_cents
from ..time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Sale invoice.

    subtotal/tax/discount/total are derived from the items and are never
    edited directly: total_amount_cents = subtotal - discount + tax.

    payment_status is a state machine (pending/partial/paid/cancelled),
    see services/sales_service.py for the transition table.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_date", "payment_status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable invoice number (e.g., "INV-000123")
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    # Totals (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(16), nullable=True)

    notes = db.Column(db.String(500), nullable=True)

    # User attribution
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Cancel audit trail
    cancelled_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by])
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.display_name if self.customer else None,
            "sale_date": to_utc_z(self.sale_date),
            "subtotal_cents": self.subtotal_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "subtotal": format_cents(self.subtotal_cents),
            "tax_amount": format_cents(self.tax_amount_cents),
            "discount_amount": format_cents(self.discount_amount_cents),
            "total_amount": format_cents(self.total_amount_cents),
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_by_name": self.creator.display_name if self.creator else None,
            "updated_by": self.updated_by,
            "cancelled_by": self.cancelled_by,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Line item on a sale.

    unit_price_cents and tax_amount_cents are snapshots taken when the line
    was written; items are replaced wholesale on update, never patched.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    @property
    def line_subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
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


class Payment(db.Model):
    """
    Payment recorded against a sale.

    Append-only: payments are never updated or deleted. A sale may have
    several (split / partial payments); their sum never exceeds the total.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    payment_method = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Gateway / terminal reference (opaque)
    transaction_id = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "payment_method": self.payment_method,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "transaction_id": self.transaction_id,
            "notes": self.notes,
            "payment_date": to_utc_z(self.payment_date),
            "created_by": self.created_by,
        }
