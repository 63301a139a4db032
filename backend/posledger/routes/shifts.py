# Overview: Flask API routes for the cashier shift lifecycle.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import shift_service
from ..services.errors import PosError
from ..validation import ValidationError, optional_int, require_int


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("")
@require_actor
def open_shift_route():
    """
    Open a shift for the caller.

    Request body: {"outlet_id": 1}

    Returns 409 if the caller already has an open shift at that outlet.
    """
    try:
        data = request.get_json(silent=True) or {}
        shift = shift_service.open_shift(
            outlet_id=require_int(data, "outlet_id"),
            merchant_id=g.merchant_id,
            actor_id=g.actor_id,
        )
        return jsonify({"shift": shift.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "code": "INVALID_INPUT", "details": {"field": e.field}}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/close")
@require_actor
def close_shift_route(shift_id: int):
    try:
        shift = shift_service.close_shift(
            shift_id=shift_id,
            merchant_id=g.merchant_id,
            actor_id=g.actor_id,
        )
        return jsonify({"shift": shift.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("")
@require_actor
def list_shifts_route():
    """Query: outlet_id, user_id, status (open | closed)."""
    try:
        args = request.args
        shifts = shift_service.list_shifts(
            merchant_id=g.merchant_id,
            outlet_id=optional_int(args, "outlet_id"),
            user_id=optional_int(args, "user_id"),
            status=args.get("status") or None,
        )
        return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "code": "INVALID_INPUT", "details": {"field": e.field}}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list shifts")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/<int:shift_id>")
@require_actor
def get_shift_route(shift_id: int):
    """Shift with the count, total and list of the sales linked to it."""
    try:
        return jsonify(shift_service.get_shift_detail(shift_id, g.merchant_id)), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load shift")
        return jsonify({"error": "Internal server error"}), 500
