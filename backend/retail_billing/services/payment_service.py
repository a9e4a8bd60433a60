# Overview: Payment recording against sales; keeps payment_status in step with amounts paid.

"""
Payment Recorder

DESIGN PRINCIPLES:
- Payments are separate from sales (many-to-one relationship)
- Split payments: one sale can have several payments
- Partial payments move the sale to "partial", full payment to "paid"
- Append-only: payments are never edited or deleted
- No overpayment: the sum of payments never exceeds the sale total
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..models import Payment, Sale
from ..money import format_cents
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_atomic
from .sales_service import (
    PAYMENT_STATUS_CANCELLED,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    total_paid_cents,
    transition_payment_status,
)

logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(
    *,
    sale_id: int,
    payment_method: str,
    amount_cents: int,
    transaction_id: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Payment:
    """
    Record a payment against a sale.

    Args:
        sale_id: Sale being paid
        payment_method: cash, card, upi, credit, other
        amount_cents: Amount paid (in cents, > 0)
        transaction_id: Gateway / terminal reference (optional)
        notes: Free text (optional)
        user_id: User recording the payment

    Returns:
        Payment record

    Raises:
        NotFoundError: Sale does not exist
        InvalidStateError: Sale is cancelled
        ValidationError: Amount exceeds the remaining balance
    """
    def _op():
        # Locked so two concurrent payments cannot both fit the same balance
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Sale not found", details={"sale_id": sale_id})

        if sale.payment_status == PAYMENT_STATUS_CANCELLED:
            raise InvalidStateError(
                "Cannot record a payment on a cancelled sale",
                details={"sale_id": sale.id},
            )

        already_paid = total_paid_cents(sale.id)
        remaining = sale.total_amount_cents - already_paid
        if amount_cents > remaining:
            raise ValidationError.for_field(
                "amount",
                f"Payment amount exceeds remaining balance ({format_cents(max(remaining, 0))})",
            )

        payment = Payment(
            sale_id=sale.id,
            payment_method=payment_method,
            amount_cents=amount_cents,
            transaction_id=transaction_id or None,
            notes=notes or None,
            payment_date=utcnow(),
            created_by=user_id,
        )
        db.session.add(payment)

        if already_paid + amount_cents >= sale.total_amount_cents:
            transition_payment_status(sale, PAYMENT_STATUS_PAID)
        else:
            transition_payment_status(sale, PAYMENT_STATUS_PARTIAL)
        sale.updated_by = user_id
        sale.updated_at = utcnow()

        db.session.flush()
        return payment

    payment = run_atomic(_op)
    logger.info(
        "Payment %s recorded on sale %s: %s via %s",
        payment.id, payment.sale_id, format_cents(payment.amount_cents), payment.payment_method,
    )
    return payment


# =============================================================================
# QUERIES
# =============================================================================

def get_sale_payments(sale_id: int) -> list[Payment]:
    """Payments for a sale, newest first."""
    if db.session.get(Sale, sale_id) is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return (
        db.session.query(Payment)
        .filter_by(sale_id=sale_id)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
        .all()
    )


def get_payment_summary(sale_id: int) -> dict:
    """
    Get payment summary for a sale.

    Returns:
        Dict with total, paid, remaining (cents and formatted) and status
    """
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})

    paid = total_paid_cents(sale.id)
    remaining = max(sale.total_amount_cents - paid, 0)
    return {
        "sale_id": sale.id,
        "total_amount_cents": sale.total_amount_cents,
        "total_paid_cents": paid,
        "remaining_cents": remaining,
        "total_amount": format_cents(sale.total_amount_cents),
        "total_paid": format_cents(paid),
        "remaining": format_cents(remaining),
        "payment_status": sale.payment_status,
    }
