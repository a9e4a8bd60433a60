# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/retail_billing/routes/sales.py
"""Sales and sale payment API routes"""

import math

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import InternalError, ServiceError, error_response
from ..services import payment_service, sales_service
from ..validation import (
    validate_payment,
    validate_sale_create,
    validate_sale_list_params,
    validate_sale_quote,
    validate_sale_update,
)
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    """
    List sales, newest first.

    Query params: page, limit, start_date, end_date, customer_id,
    payment_status, created_by. Items are omitted from list rows.
    """
    try:
        params = validate_sale_list_params(
            request.args, max_limit=current_app.config["SALES_PAGE_LIMIT_MAX"]
        )
        sales, total = sales_service.list_sales(**params)

        return jsonify({
            "data": [sale.to_dict(include_items=False) for sale in sales],
            "pagination": {
                "page": params["page"],
                "limit": params["limit"],
                "total": total,
                "total_pages": math.ceil(total / params["limit"]) if total else 0,
            },
        }), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return error_response(InternalError())


@sales_bp.post("/quote")
def quote_sale_route():
    """Price a prospective sale without writing anything."""
    try:
        data = validate_sale_quote(request.get_json(silent=True))
        totals = sales_service.quote_sale(data["items"], data["discount_amount_cents"])
        return jsonify({"quote": totals.to_dict()}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to quote sale")
        return error_response(InternalError())


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return error_response(InternalError())


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale with its items.

    Stock is decremented and an invoice number allocated in the same
    transaction.
    """
    try:
        data = validate_sale_create(request.get_json(silent=True))
        sale = sales_service.create_sale(user_id=g.current_user.id, **data)
        return jsonify({"sale": sale.to_dict()}), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return error_response(InternalError())


@sales_bp.put("/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int):
    """
    Partially update a pending/partial sale.

    Missing and non-editable sales are reported before the body is validated.
    """
    try:
        sales_service.get_editable_sale(sale_id)
        patch = validate_sale_update(request.get_json(silent=True))
        sale = sales_service.update_sale(sale_id, patch=patch, user_id=g.current_user.id)
        return jsonify({"sale": sale.to_dict()}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return error_response(InternalError())


@sales_bp.delete("/<int:sale_id>")
@require_auth
def cancel_sale_route(sale_id: int):
    """Cancel sale and return its items to stock."""
    try:
        sale = sales_service.cancel_sale(sale_id, user_id=g.current_user.id)
        return jsonify({"sale": sale.to_dict(), "message": "Sale cancelled"}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return error_response(InternalError())


@sales_bp.get("/<int:sale_id>/payments")
def list_sale_payments_route(sale_id: int):
    try:
        payments = payment_service.get_sale_payments(sale_id)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sale payments")
        return error_response(InternalError())


@sales_bp.post("/payments")
@require_auth
def record_payment_route():
    """Record a payment; the sale moves to partial or paid."""
    try:
        data = validate_payment(request.get_json(silent=True))
        payment = payment_service.record_payment(user_id=g.current_user.id, **data)
        return jsonify({
            "payment": payment.to_dict(),
            "summary": payment_service.get_payment_summary(payment.sale_id),
        }), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return error_response(InternalError())
