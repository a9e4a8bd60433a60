import pytest

from retail_billing.errors import InsufficientStockError, NotFoundError, ValidationError
from retail_billing.services.sale_calculator import (
    LineItemInput,
    calculate_sale_totals,
    compute_line,
    summarize,
)


def test_compute_line_applies_discount_before_tax():
    detail = compute_line(
        LineItemInput(product_id=1, quantity=2, unit_price_cents=5000, discount_amount_cents=1000),
        tax_rate_bps=1000,
    )
    # subtotal 100.00, after discount 90.00, tax 9.00
    assert detail.subtotal_cents == 10000
    assert detail.tax_amount_cents == 900
    assert detail.line_total_cents == 9900


def test_compute_line_rounds_tax_half_up():
    # 0.05 * 10% = 0.005 -> 0.01
    detail = compute_line(LineItemInput(product_id=1, quantity=1, unit_price_cents=5), tax_rate_bps=1000)
    assert detail.tax_amount_cents == 1

    # 0.04 * 10% = 0.004 -> 0.00
    detail = compute_line(LineItemInput(product_id=1, quantity=1, unit_price_cents=4), tax_rate_bps=1000)
    assert detail.tax_amount_cents == 0


def test_compute_line_rejects_discount_above_line_subtotal():
    with pytest.raises(ValidationError) as exc:
        compute_line(
            LineItemInput(product_id=1, quantity=1, unit_price_cents=500, discount_amount_cents=501),
            tax_rate_bps=0,
            index=3,
        )
    assert exc.value.errors[0]["field"] == "items.3.discount_amount"


def test_summarize_subtracts_sale_discount_from_undiscounted_subtotal():
    details = [
        compute_line(LineItemInput(1, 2, 5000, 1000), 1000),
        compute_line(LineItemInput(2, 1, 2000), 0),
    ]
    totals = summarize(details, discount_amount_cents=500)

    assert totals.subtotal_cents == 12000
    assert totals.tax_amount_cents == 900
    assert totals.total_amount_cents == 12000 - 500 + 900
    assert totals.subtotal_cents == sum(d.subtotal_cents for d in totals.items)
    assert totals.tax_amount_cents == sum(d.tax_amount_cents for d in totals.items)


def test_summarize_rejects_discount_above_subtotal():
    details = [compute_line(LineItemInput(1, 1, 1000), 0)]
    with pytest.raises(ValidationError) as exc:
        summarize(details, discount_amount_cents=1001)
    assert exc.value.errors[0]["field"] == "discount_amount"


def test_calculate_sale_totals_three_units(product):
    totals = calculate_sale_totals([LineItemInput(product.id, 3, 10000)])

    assert totals.subtotal_cents == 30000
    assert totals.tax_amount_cents == 3000
    assert totals.total_amount_cents == 33000
    assert totals.to_dict()["total_amount"] == "330.00"


def test_calculate_sale_totals_unknown_product(db_session):
    with pytest.raises(NotFoundError) as exc:
        calculate_sale_totals([LineItemInput(999999, 1, 100)])
    assert "999999" in exc.value.message


def test_calculate_sale_totals_insufficient_stock(product):
    with pytest.raises(InsufficientStockError) as exc:
        calculate_sale_totals([LineItemInput(product.id, 11, 10000)])
    assert exc.value.available == 10
    assert exc.value.requested == 11


def test_calculate_sale_totals_aggregates_quantity_across_lines(product):
    items = [LineItemInput(product.id, 6, 10000), LineItemInput(product.id, 5, 10000)]
    with pytest.raises(InsufficientStockError) as exc:
        calculate_sale_totals(items)
    assert exc.value.requested == 11


def test_calculate_sale_totals_has_no_side_effects(product):
    calculate_sale_totals([LineItemInput(product.id, 3, 10000)])
    assert product.stock_quantity == 10
