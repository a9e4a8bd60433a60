from datetime import timedelta

import pytest

from retail_billing.models import InventoryTransaction
from retail_billing.services.stock_ledger import (
    apply_movement,
    fold_movements,
    replay_stock,
    reverse_movement,
    stock_after_reversal,
)
from retail_billing.time_utils import utcnow


@pytest.mark.parametrize("transaction_type,quantity,previous,expected", [
    ("adjustment", 15, 4, 15),
    ("purchase", 5, 4, 9),
    ("return", 2, 4, 6),
    ("damage", 3, 4, 1),
    ("transfer", 4, 4, 0),
])
def test_apply_movement(transaction_type, quantity, previous, expected):
    assert apply_movement(transaction_type, quantity, previous) == expected


def test_apply_movement_unknown_type():
    with pytest.raises(ValueError):
        apply_movement("sale", 1, 0)


def test_reverse_movement_inverts_delta_types():
    for transaction_type in ("purchase", "return", "damage", "transfer"):
        after = apply_movement(transaction_type, 3, 10)
        assert reverse_movement(transaction_type, 3, after) == 10


def test_reverse_movement_refuses_adjustment():
    with pytest.raises(ValueError):
        reverse_movement("adjustment", 5, 5)


def test_fold_movements_from_zero():
    assert fold_movements([("purchase", 10), ("damage", 2), ("adjustment", 20), ("transfer", 5)]) == 15


def _txn(db_session, product, transaction_type, quantity, at):
    txn = InventoryTransaction(
        product_id=product.id,
        transaction_type=transaction_type,
        quantity=quantity,
        created_at=at,
    )
    db_session.add(txn)
    db_session.commit()
    return txn


def test_replay_stock_orders_by_created_at(db_session, product):
    t0 = utcnow()
    # Inserted out of order; replay must follow created_at
    _txn(db_session, product, "purchase", 5, t0 + timedelta(seconds=2))
    _txn(db_session, product, "adjustment", 15, t0 + timedelta(seconds=1))

    assert replay_stock(product.id) == 20


def test_stock_after_reversal_of_adjustment_replays_the_rest(db_session, product):
    t0 = utcnow()
    adjustment = _txn(db_session, product, "adjustment", 15, t0)
    _txn(db_session, product, "purchase", 5, t0 + timedelta(seconds=1))

    assert stock_after_reversal(adjustment, current_stock=20) == 5


def test_stock_after_reversal_of_delta_is_arithmetic(db_session, product):
    purchase = _txn(db_session, product, "purchase", 5, utcnow())
    assert stock_after_reversal(purchase, current_stock=12) == 7
