# Overview: Flask API routes for manual stock adjustments and the stock ledger.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import inventory_service, stock_service
from ..services.errors import PosError
from ..validation import (
    ValidationError,
    optional_datetime,
    optional_int,
    optional_str,
    require_int,
    require_str,
)


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("/adjustments")
@require_actor
def create_adjustment_route():
    """
    Manual stock adjustment.

    Request body:
    {
        "product_id": 7,
        "change_qty": 10,        // positive adds, negative removes, never 0
        "reason": "restock",     // restock | damage | correction | manual
        "note": "Supplier delivery"  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        result = stock_service.adjust(
            product_id=require_int(data, "product_id"),
            merchant_id=g.merchant_id,
            actor_id=g.actor_id,
            delta_qty=require_int(data, "change_qty"),
            reason=require_str(data, "reason"),
            note=optional_str(data, "note", max_length=stock_service.MAX_NOTE_LENGTH),
        )

        return jsonify({
            "product": {"id": result.product.id, "stock_qty": result.product.stock_qty},
            "log": result.log_entry.to_dict(),
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "code": "INVALID_INPUT", "details": {"field": e.field}}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/logs")
@require_actor
def list_logs_route():
    """
    Stock ledger entries, newest first.

    Query: product_id, start, end (ISO-8601, inclusive), page, limit
    """
    try:
        args = request.args
        rows, meta = inventory_service.list_stock_logs(
            merchant_id=g.merchant_id,
            product_id=optional_int(args, "product_id"),
            start=optional_datetime(args, "start"),
            end=optional_datetime(args, "end"),
            page=optional_int(args, "page"),
            limit=optional_int(args, "limit"),
        )
        return jsonify({"data": [log.to_dict() for log in rows], "meta": meta}), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "code": "INVALID_INPUT", "details": {"field": e.field}}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock logs")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/products/<int:product_id>/reconciliation")
@require_actor
def reconciliation_route(product_id: int):
    """Compare a product's stock_qty with the sum of its ledger."""
    try:
        return jsonify(inventory_service.reconcile_product(product_id, g.merchant_id)), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reconcile product")
        return jsonify({"error": "Internal server error"}), 500
