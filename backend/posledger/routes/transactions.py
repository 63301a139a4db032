# Overview: Flask API routes for checkout and the transaction read model.

# backend/posledger/routes/transactions.py
"""Sales transaction routes. Caller identity comes from require_actor."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import checkout_service
from ..services.checkout_service import CartLine
from ..services.errors import PosError
from ..validation import (
    ValidationError,
    optional_bool,
    optional_int,
    optional_str,
    require_int,
    require_str,
)


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _parse_cart(data: dict) -> list[CartLine]:
    items = data.get("items")
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("items must be a list", "items")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object", "items")
        lines.append(CartLine(
            product_id=require_int(item, "product_id"),
            qty=require_int(item, "qty"),
        ))
    return lines


@transactions_bp.post("")
@require_actor
def create_transaction_route():
    """
    Checkout a cart.

    Request body:
    {
        "outlet_id": 1,
        "shift_id": 4,              (optional, stored as given)
        "payment_method": "cash",
        "device_id": "till-01",     (optional)
        "is_offline": false,        (optional)
        "items": [{"product_id": 7, "qty": 2}]
    }

    Returns 201 with the transaction and its items; 409 on insufficient stock.
    """
    try:
        data = request.get_json(silent=True) or {}

        txn = checkout_service.checkout(
            outlet_id=require_int(data, "outlet_id"),
            merchant_id=g.merchant_id,
            actor_id=g.actor_id,
            payment_method=require_str(data, "payment_method", max_length=50),
            items=_parse_cart(data),
            shift_id=optional_int(data, "shift_id"),
            device_id=optional_str(data, "device_id", max_length=120),
            is_offline=optional_bool(data, "is_offline"),
        )

        return jsonify({"transaction": txn.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "code": "INVALID_INPUT", "details": {"field": e.field}}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
@require_actor
def list_transactions_route():
    """List transactions, optionally by outlet_id / shift_id, paged."""
    try:
        args = request.args
        rows, meta = checkout_service.list_transactions(
            merchant_id=g.merchant_id,
            outlet_id=optional_int(args, "outlet_id"),
            shift_id=optional_int(args, "shift_id"),
            page=optional_int(args, "page"),
            limit=optional_int(args, "limit"),
        )
        return jsonify({"data": [t.to_dict() for t in rows], "meta": meta}), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "code": "INVALID_INPUT", "details": {"field": e.field}}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
@require_actor
def get_transaction_route(transaction_id: int):
    try:
        txn = checkout_service.get_transaction(transaction_id, g.merchant_id)
        return jsonify({"transaction": txn.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load transaction")
        return jsonify({"error": "Internal server error"}), 500
