from __future__ import annotations

from ..extensions import db
from ..money import format_bps, format_cents
from ..time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data.

    stock_quantity is the denormalized on-hand count. It is written only by
    the sales and inventory services inside a locked transaction; catalog
    edits never touch it. The inventory_transactions ledger is the recovery
    source when the counter is in doubt (see services/stock_ledger.py).

    Money is stored in cents, tax rate in basis points (1000 = 10%).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_active_stock", "is_active", "stock_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)

    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "unit_price_cents": self.unit_price_cents,
            "unit_price": format_cents(self.unit_price_cents),
            "cost_price_cents": self.cost_price_cents,
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_rate": format_bps(self.tax_rate_bps),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Stock movement ledger entry.

    The meaning of quantity depends on transaction_type:
    - adjustment: absolute stock level after the movement
    - purchase / return: added to stock
    - damage / transfer: removed from stock

    Rows may be edited or deleted; the service reverses the old effect first.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_inventory_transactions_product_created", "product_id", "created_at", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(32), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(50), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.String(500), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Python-side default keeps sub-second ordering for ledger replay
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    product = db.relationship("Product", backref=db.backref("inventory_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
