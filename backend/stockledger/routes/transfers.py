# backend/stockledger/routes/transfers.py
"""
Inter-location transfer API routes.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, result_response, error_response
from ..errors import NotFound
from ..services import transfer_service


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")

EDITABLE_FIELDS = ("item_id", "variation_id", "from_location_id", "to_location_id", "quantity")


def _transfer_dict(transfer):
    return transfer.to_dict()


@transfers_bp.post("")
@require_actor
def create_transfer_route():
    """
    Create a transfer (status Pending). Stock does not move yet.

    Request body:
    {
        "item_id": int,
        "variation_id": int,
        "from_location_id": int,
        "to_location_id": int,
        "quantity": int
    }

    Returns:
        201: Transfer created
        400: Invalid request
        409: Same location or insufficient source stock
    """
    data = request.get_json(silent=True) or {}

    try:
        result = transfer_service.create_transfer(
            data["item_id"],
            data["variation_id"],
            data["from_location_id"],
            data["to_location_id"],
            data["quantity"],
            g.current_actor,
        )
    except KeyError as e:
        return jsonify({"error": f"Missing required field: {e}"}), 400

    return result_response(result, success_status=201, serialize=_transfer_dict)


@transfers_bp.patch("/<int:transfer_id>")
@require_actor
def update_transfer_route(transfer_id: int):
    data = request.get_json(silent=True) or {}
    changes = {field: data[field] for field in EDITABLE_FIELDS if field in data}

    result = transfer_service.update_transfer(transfer_id, g.current_actor, **changes)
    return result_response(result, serialize=_transfer_dict)


@transfers_bp.post("/<int:transfer_id>/status")
@require_actor
def set_transfer_status_route(transfer_id: int):
    """
    Move a transfer to a new status ("Pending", "InTransit", "Completed").

    Returns:
        200: Status changed (stock moved when Completed)
        400: Unknown status
        404: Transfer not found
        409: Illegal transition or insufficient source stock
    """
    data = request.get_json(silent=True) or {}
    if "status" not in data:
        return jsonify({"error": "Missing required field: 'status'"}), 400

    result = transfer_service.set_transfer_status(transfer_id, data["status"], g.current_actor)
    return result_response(result, serialize=_transfer_dict)


@transfers_bp.post("/<int:transfer_id>/complete")
@require_actor
def complete_transfer_route(transfer_id: int):
    result = transfer_service.complete_transfer(transfer_id, g.current_actor)
    return result_response(result, serialize=_transfer_dict)


@transfers_bp.delete("/<int:transfer_id>")
@require_actor
def delete_transfer_route(transfer_id: int):
    result = transfer_service.delete_transfer(transfer_id, g.current_actor)
    return result_response(result, serialize=lambda deleted_id: {"deleted": deleted_id})


@transfers_bp.get("")
def list_transfers_route():
    transfers = transfer_service.list_transfers(status=request.args.get("status"))
    return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200


@transfers_bp.get("/<int:transfer_id>")
def get_transfer_route(transfer_id: int):
    try:
        return jsonify(transfer_service.get_transfer(transfer_id).to_dict()), 200
    except NotFound as e:
        return error_response(e)
