# Overview: Service-layer operations for inventory; stock movements and low-stock queries.

"""
Inventory invariants

- Product.stock_quantity never goes below zero after a committed create or
  update. Offending movements fail with InsufficientStockError; nothing is
  clamped.
- Delete is lenient: a reversal that would go negative is clamped to 0.
- Every mutation locks the product row and writes the ledger row and the new
  stock level in one atomic unit.
- Movement semantics (adjustment/purchase/return/damage/transfer) live in
  stock_ledger.apply_movement(); this module never re-implements them.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import InventoryTransaction, Product
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_atomic
from .stock_ledger import apply_movement, replay_stock, stock_after_reversal

logger = logging.getLogger(__name__)

LIST_LIMIT = 100


def _lock_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def _get_transaction_locked(transaction_id: int) -> InventoryTransaction:
    txn = lock_for_update(
        db.session.query(InventoryTransaction).filter_by(id=transaction_id)
    ).first()
    if txn is None:
        raise NotFoundError(
            "Inventory transaction not found",
            details={"transaction_id": transaction_id},
        )
    return txn


def create_transaction(
    *,
    product_id: int,
    transaction_type: str,
    quantity: int,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> InventoryTransaction:
    """Record a stock movement and apply it to the product's stock."""
    def _op():
        product = _lock_product(product_id)

        new_stock = apply_movement(transaction_type, quantity, product.stock_quantity)
        if new_stock < 0:
            raise InsufficientStockError(
                product_id=product.id,
                available=product.stock_quantity,
                requested=quantity,
            )

        now = utcnow()
        txn = InventoryTransaction(
            product_id=product.id,
            transaction_type=transaction_type,
            quantity=quantity,
            reference_type=reference_type or None,
            reference_id=reference_id,
            notes=notes or None,
            created_by=user_id,
            created_at=now,
        )
        db.session.add(txn)

        product.stock_quantity = new_stock
        product.updated_at = now

        db.session.flush()
        return txn

    txn = run_atomic(_op)
    logger.info(
        "Inventory %s of %d on product %s, stock now %d",
        txn.transaction_type, txn.quantity, txn.product_id, txn.product.stock_quantity,
    )
    return txn


def update_transaction(transaction_id: int, *, patch: dict, user_id: int | None = None) -> InventoryTransaction:
    """
    Edit a movement: undo its old effect, then apply the new one.

    Only keys present in patch change; optional columns can be cleared with
    None. The product of a movement cannot be changed.
    """
    def _op():
        txn = _get_transaction_locked(transaction_id)

        if "product_id" in patch and patch["product_id"] != txn.product_id:
            raise ValidationError.for_field(
                "product_id", "product_id cannot be changed on an existing transaction"
            )

        product = _lock_product(txn.product_id)

        new_type = patch.get("transaction_type", txn.transaction_type)
        new_quantity = patch.get("quantity", txn.quantity)

        reversed_stock = stock_after_reversal(txn, product.stock_quantity)
        new_stock = apply_movement(new_type, new_quantity, reversed_stock)
        if new_stock < 0:
            raise InsufficientStockError(
                product_id=product.id,
                available=reversed_stock,
                requested=new_quantity,
            )

        txn.transaction_type = new_type
        txn.quantity = new_quantity
        if "reference_type" in patch:
            txn.reference_type = patch["reference_type"] or None
        if "reference_id" in patch:
            txn.reference_id = patch["reference_id"]
        if "notes" in patch:
            txn.notes = patch["notes"] or None
        txn.updated_by = user_id

        product.stock_quantity = new_stock
        product.updated_at = utcnow()

        db.session.flush()
        return txn

    txn = run_atomic(_op)
    logger.info(
        "Inventory transaction %s updated, product %s stock now %d",
        txn.id, txn.product_id, txn.product.stock_quantity,
    )
    return txn


def delete_transaction(transaction_id: int) -> Product:
    """
    Remove a movement and undo its effect on stock.

    Returns the product with its recomputed stock level.
    """
    def _op():
        txn = _get_transaction_locked(transaction_id)
        product = _lock_product(txn.product_id)

        new_stock = stock_after_reversal(txn, product.stock_quantity)
        if new_stock < 0:
            # Sales since the movement may have consumed what it added
            logger.warning(
                "Deleting inventory transaction %s would leave product %s at %d; clamped to 0",
                txn.id, product.id, new_stock,
            )
            new_stock = 0

        db.session.delete(txn)
        product.stock_quantity = new_stock
        product.updated_at = utcnow()

        db.session.flush()
        return product

    product = run_atomic(_op)
    logger.info(
        "Inventory transaction %s deleted, product %s stock now %d",
        transaction_id, product.id, product.stock_quantity,
    )
    return product


def get_transaction(transaction_id: int) -> InventoryTransaction:
    txn = db.session.get(InventoryTransaction, transaction_id)
    if txn is None:
        raise NotFoundError(
            "Inventory transaction not found",
            details={"transaction_id": transaction_id},
        )
    return txn


def list_transactions(
    *,
    product_id: int | None = None,
    transaction_type: str | None = None,
    limit: int = LIST_LIMIT,
) -> list[InventoryTransaction]:
    """Newest movements first, capped at LIST_LIMIT rows."""
    q = db.session.query(InventoryTransaction)
    if product_id is not None:
        q = q.filter(InventoryTransaction.product_id == product_id)
    if transaction_type:
        q = q.filter(InventoryTransaction.transaction_type == transaction_type)

    return (
        q.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        .limit(min(limit, LIST_LIMIT))
        .all()
    )


def list_low_stock_products(threshold: int | None = None) -> list[Product]:
    """
    Active products at or below a stock threshold.

    With no threshold each product is compared to its own min_stock_level.
    """
    q = db.session.query(Product).filter(Product.is_active.is_(True))
    if threshold is not None:
        q = q.filter(Product.stock_quantity <= threshold)
    else:
        q = q.filter(Product.stock_quantity <= Product.min_stock_level)

    return q.order_by(Product.stock_quantity.asc(), Product.id.asc()).all()


def resync_stock_from_ledger(product_id: int, *, apply: bool = False) -> dict:
    """
    Compare stored stock with the stock implied by the ledger.

    With apply=True the ledger value is written back to the product.
    """
    def _op():
        product = _lock_product(product_id)
        ledger_stock = replay_stock(product.id)
        result = {
            "product_id": product.id,
            "stored_stock": product.stock_quantity,
            "ledger_stock": ledger_stock,
            "applied": False,
        }
        if apply and ledger_stock != product.stock_quantity:
            if ledger_stock < 0:
                raise InsufficientStockError(
                    product_id=product.id,
                    available=product.stock_quantity,
                    message=f"Ledger implies negative stock ({ledger_stock}) for product {product.id}",
                )
            product.stock_quantity = ledger_stock
            product.updated_at = utcnow()
            result["applied"] = True
        db.session.flush()
        return result

    result = run_atomic(_op)
    if result["applied"]:
        logger.info(
            "Product %s stock resynced from %d to %d",
            product_id, result["stored_stock"], result["ledger_stock"],
        )
    return result
