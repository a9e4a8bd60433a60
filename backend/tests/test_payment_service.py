import pytest

from retail_billing.errors import InvalidStateError, NotFoundError, ValidationError
from retail_billing.extensions import db
from retail_billing.models import Payment, Sale
from retail_billing.services import payment_service, sales_service
from retail_billing.services.sale_calculator import LineItemInput


@pytest.fixture
def sale(product):
    """Pending sale of 3 x 100.00 at 10% tax (total 330.00)."""
    return sales_service.create_sale(items=[LineItemInput(product.id, 3, 10000)])


def test_partial_then_full_payment(sale, cashier):
    payment_service.record_payment(
        sale_id=sale.id, payment_method="cash", amount_cents=20000, user_id=cashier.id
    )
    assert sales_service.get_sale(sale.id).payment_status == "partial"

    payment_service.record_payment(sale_id=sale.id, payment_method="card", amount_cents=13000)
    assert sales_service.get_sale(sale.id).payment_status == "paid"

    summary = payment_service.get_payment_summary(sale.id)
    assert summary["total_paid_cents"] == 33000
    assert summary["remaining_cents"] == 0


def test_payment_on_paid_sale_is_overpayment(sale):
    payment_service.record_payment(sale_id=sale.id, payment_method="cash", amount_cents=33000)

    with pytest.raises(ValidationError):
        payment_service.record_payment(sale_id=sale.id, payment_method="cash", amount_cents=1)

    assert db.session.query(Payment).filter_by(sale_id=sale.id).count() == 1
    assert sales_service.get_sale(sale.id).payment_status == "paid"


def test_overpayment_leaves_status_unchanged(sale):
    with pytest.raises(ValidationError) as exc:
        payment_service.record_payment(sale_id=sale.id, payment_method="cash", amount_cents=33001)

    assert exc.value.errors[0]["field"] == "amount"
    db.session.expire_all()
    assert db.session.get(Sale, sale.id).payment_status == "pending"
    assert db.session.query(Payment).count() == 0


def test_payment_on_cancelled_sale(sale):
    sales_service.cancel_sale(sale.id)
    with pytest.raises(InvalidStateError):
        payment_service.record_payment(sale_id=sale.id, payment_method="cash", amount_cents=100)


def test_payment_on_unknown_sale(db_session):
    with pytest.raises(NotFoundError):
        payment_service.record_payment(sale_id=424242, payment_method="cash", amount_cents=100)


def test_sale_payments_newest_first(sale):
    first = payment_service.record_payment(sale_id=sale.id, payment_method="cash", amount_cents=100)
    second = payment_service.record_payment(
        sale_id=sale.id, payment_method="upi", amount_cents=200, transaction_id="UPI-42"
    )

    payments = payment_service.get_sale_payments(sale.id)
    assert [p.id for p in payments] == [second.id, first.id]
    assert payments[0].transaction_id == "UPI-42"


def test_sale_payments_unknown_sale(db_session):
    with pytest.raises(NotFoundError):
        payment_service.get_sale_payments(424242)
