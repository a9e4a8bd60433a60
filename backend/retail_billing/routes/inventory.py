# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/retail_billing/routes/inventory.py
"""Inventory transaction and low-stock API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import InternalError, ServiceError, error_response
from ..services import inventory_service
from ..validation import (
    validate_inventory_list_params,
    validate_inventory_transaction,
    validate_threshold,
)
from ..decorators import require_auth


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/transactions")
def list_transactions_route():
    """Newest 100 movements, optionally filtered by product_id / transaction_type."""
    try:
        params = validate_inventory_list_params(request.args)
        rows = inventory_service.list_transactions(**params)
        return jsonify({"transactions": [t.to_dict() for t in rows]}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list inventory transactions")
        return error_response(InternalError())


@inventory_bp.post("/transactions")
@require_auth
def create_transaction_route():
    try:
        data = validate_inventory_transaction(request.get_json(silent=True), partial=False)
        txn = inventory_service.create_transaction(user_id=g.current_user.id, **data)
        return jsonify({
            "transaction": txn.to_dict(),
            "product": txn.product.to_dict(),
        }), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create inventory transaction")
        return error_response(InternalError())


@inventory_bp.put("/transactions/<int:transaction_id>")
@require_auth
def update_transaction_route(transaction_id: int):
    """Edit a movement; its old effect on stock is undone first."""
    try:
        inventory_service.get_transaction(transaction_id)
        patch = validate_inventory_transaction(request.get_json(silent=True), partial=True)
        txn = inventory_service.update_transaction(
            transaction_id, patch=patch, user_id=g.current_user.id
        )
        return jsonify({
            "transaction": txn.to_dict(),
            "product": txn.product.to_dict(),
        }), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update inventory transaction")
        return error_response(InternalError())


@inventory_bp.delete("/transactions/<int:transaction_id>")
@require_auth
def delete_transaction_route(transaction_id: int):
    try:
        product = inventory_service.delete_transaction(transaction_id)
        return jsonify({
            "message": "Inventory transaction deleted",
            "product": product.to_dict(),
        }), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete inventory transaction")
        return error_response(InternalError())


@inventory_bp.get("/low-stock")
def low_stock_route():
    """Active products at or below threshold (or their own min_stock_level)."""
    try:
        threshold = validate_threshold(request.args.get("threshold"))
        products = inventory_service.list_low_stock_products(threshold)
        return jsonify({"products": [p.to_dict() for p in products]}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list low stock products")
        return error_response(InternalError())
