# backend/stockledger/routes/stock.py
"""
Stock ledger read routes.
"""
from flask import Blueprint, jsonify

from ..decorators import error_response
from ..errors import NotFound
from ..services import ledger_service


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/<int:variation_id>")
def stock_levels_route(variation_id: int):
    """
    Live stock of a variation at every location holding a ledger row.

    Returns:
        200: {"variation_id": int, "levels": [...], "total": int}
        404: Variation not found
    """
    try:
        ledger_service.get_variation(variation_id)
    except NotFound as e:
        return error_response(e)

    levels = ledger_service.get_stock_levels(variation_id)
    return jsonify({
        "variation_id": variation_id,
        "levels": [level.to_dict() for level in levels],
        "total": sum(level.stock for level in levels),
    }), 200


@stock_bp.get("/<int:variation_id>/locations/<int:location_id>")
def stock_at_location_route(variation_id: int, location_id: int):
    try:
        ledger_service.get_variation(variation_id)
        ledger_service.get_location(location_id)
    except NotFound as e:
        return error_response(e)

    return jsonify({
        "variation_id": variation_id,
        "location_id": location_id,
        "stock": ledger_service.get_stock(variation_id, location_id),
    }), 200


@stock_bp.get("/verify")
def verify_ledger_route():
    """Fold the adjustment log against the ledger; 200 when consistent, 409 otherwise."""
    problems = ledger_service.verify_ledger()
    return jsonify({"consistent": not problems, "problems": problems}), (200 if not problems else 409)
