# Overview: Stock movement rules and ledger replay for inventory transactions.

"""
Stock Ledger

Every stock movement goes through apply_movement(), so the sign/semantics of
each transaction type live in exactly one place:

- adjustment: stock := quantity (absolute set, not a delta)
- purchase / return: stock += quantity
- damage / transfer: stock -= quantity

Reversing a delta type is plain arithmetic. Reversing an adjustment is not
(the previous level is not recorded on the row), so it is recomputed by
replaying the product's remaining ledger from zero: replay_stock().
"""

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..models import InventoryTransaction

TRANSACTION_ADJUSTMENT = "adjustment"
TRANSACTION_PURCHASE = "purchase"
TRANSACTION_RETURN = "return"
TRANSACTION_DAMAGE = "damage"
TRANSACTION_TRANSFER = "transfer"

INBOUND_TYPES = frozenset({TRANSACTION_PURCHASE, TRANSACTION_RETURN})
OUTBOUND_TYPES = frozenset({TRANSACTION_DAMAGE, TRANSACTION_TRANSFER})

VALID_TRANSACTION_TYPES = [
    TRANSACTION_ADJUSTMENT,
    TRANSACTION_PURCHASE,
    TRANSACTION_RETURN,
    TRANSACTION_DAMAGE,
    TRANSACTION_TRANSFER,
]


def apply_movement(transaction_type: str, quantity: int, previous_stock: int) -> int:
    """Stock level after applying one movement to previous_stock."""
    if transaction_type == TRANSACTION_ADJUSTMENT:
        return quantity
    if transaction_type in INBOUND_TYPES:
        return previous_stock + quantity
    if transaction_type in OUTBOUND_TYPES:
        return previous_stock - quantity
    raise ValueError(f"Unknown transaction type: {transaction_type}")


def reverse_movement(transaction_type: str, quantity: int, current_stock: int) -> int:
    """Undo a delta movement. Adjustments cannot be reversed this way."""
    if transaction_type in INBOUND_TYPES:
        return current_stock - quantity
    if transaction_type in OUTBOUND_TYPES:
        return current_stock + quantity
    if transaction_type == TRANSACTION_ADJUSTMENT:
        raise ValueError("adjustment transactions are reversed by replay, not arithmetic")
    raise ValueError(f"Unknown transaction type: {transaction_type}")


def fold_movements(movements: Iterable[tuple[str, int]], start: int = 0) -> int:
    """Fold (transaction_type, quantity) pairs, oldest first, into a stock level."""
    stock = start
    for transaction_type, quantity in movements:
        stock = apply_movement(transaction_type, quantity, stock)
    return stock


def ledger_movements(product_id: int, exclude_transaction_id: int | None = None) -> list[tuple[str, int]]:
    q = db.session.query(
        InventoryTransaction.transaction_type,
        InventoryTransaction.quantity,
    ).filter(InventoryTransaction.product_id == product_id)
    if exclude_transaction_id is not None:
        q = q.filter(InventoryTransaction.id != exclude_transaction_id)

    rows = q.order_by(
        InventoryTransaction.created_at.asc(),
        InventoryTransaction.id.asc(),
    ).all()
    return [(row.transaction_type, row.quantity) for row in rows]


def replay_stock(product_id: int, exclude_transaction_id: int | None = None) -> int:
    """
    Stock implied by the product's ledger history, optionally without one row.

    Starts at 0; sales are not part of the ledger, so this is the recovery
    value for adjustment reversals rather than a general audit of stock.
    """
    return fold_movements(ledger_movements(product_id, exclude_transaction_id))


def stock_after_reversal(transaction: InventoryTransaction, current_stock: int) -> int:
    """Stock level once transaction's effect is removed from current_stock."""
    if transaction.transaction_type == TRANSACTION_ADJUSTMENT:
        return replay_stock(transaction.product_id, exclude_transaction_id=transaction.id)
    return reverse_movement(transaction.transaction_type, transaction.quantity, current_stock)
