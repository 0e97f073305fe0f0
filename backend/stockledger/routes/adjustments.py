# backend/stockledger/routes/adjustments.py
"""
Manual stock adjustment routes.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, result_response, error_response
from ..errors import NotFound
from ..services import ledger_service


adjustments_bp = Blueprint("adjustments", __name__, url_prefix="/api/adjustments")


@adjustments_bp.post("")
@require_actor
def apply_adjustment_route():
    """
    Apply a signed stock change at one location.

    Request body:
    {
        "variation_id": int,
        "location_id": int,
        "change_amount": int,   // non-zero
        "reason": str,
        "allow_negative": bool (optional, default false)
    }

    Returns:
        201: {"new_stock": int, "adjustment_id": int}
        400: Invalid request
        404: Variation or location not found
        409: Insufficient stock
    """
    data = request.get_json(silent=True) or {}

    try:
        variation_id = data["variation_id"]
        location_id = data["location_id"]
        change_amount = data["change_amount"]
        reason = data["reason"]
    except KeyError as e:
        return jsonify({"error": f"Missing required field: {e}"}), 400

    result = ledger_service.apply_adjustment(
        variation_id,
        location_id,
        change_amount,
        reason,
        g.current_actor,
        enforce_non_negative=data.get("allow_negative") is not True,
    )
    return result_response(result, success_status=201, serialize=lambda applied: applied._asdict())


@adjustments_bp.get("")
def list_adjustments_route():
    return jsonify(ledger_service.list_adjustments(
        page=request.args.get("page", 1, type=int),
        limit=request.args.get("limit", 10, type=int),
        variation_id=request.args.get("variation_id", type=int),
        location_id=request.args.get("location_id", type=int),
    )), 200


@adjustments_bp.get("/<int:adjustment_id>")
def get_adjustment_route(adjustment_id: int):
    try:
        return jsonify(ledger_service.get_adjustment(adjustment_id).to_dict()), 200
    except NotFound as e:
        return error_response(e)
