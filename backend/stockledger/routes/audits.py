# backend/stockledger/routes/audits.py
"""
Physical stock audit API routes.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, result_response, error_response
from ..errors import NotFound
from ..services import audit_service


audits_bp = Blueprint("audits", __name__, url_prefix="/api/audits")


def _audit_dict(audit):
    return audit.to_dict()


@audits_bp.post("")
@require_actor
def create_audit_route():
    """
    Record a physical count.

    Request body:
    {
        "item_id": int,
        "variation_id": int,
        "location_id": int,
        "actual_stock": int,
        "recorded_stock": int (optional, defaults to live stock)
    }

    Returns:
        201: Audit created (status Pending)
        400: Invalid request
        404: Variation or location not found
    """
    data = request.get_json(silent=True) or {}

    try:
        result = audit_service.create_audit(
            data["item_id"],
            data["variation_id"],
            data["location_id"],
            data["actual_stock"],
            g.current_actor,
            recorded_stock=data.get("recorded_stock"),
        )
    except KeyError as e:
        return jsonify({"error": f"Missing required field: {e}"}), 400

    return result_response(result, success_status=201, serialize=_audit_dict)


@audits_bp.patch("/<int:audit_id>")
@require_actor
def update_audit_route(audit_id: int):
    data = request.get_json(silent=True) or {}
    if "actual_stock" not in data:
        return jsonify({"error": "Missing required field: 'actual_stock'"}), 400

    result = audit_service.update_audit(audit_id, data["actual_stock"], g.current_actor)
    return result_response(result, serialize=_audit_dict)


@audits_bp.post("/<int:audit_id>/resolve")
@require_actor
def resolve_audit_route(audit_id: int):
    """
    Post the discrepancy to the ledger (Pending -> Resolved).

    Returns:
        200: Audit resolved
        404: Audit or stock record not found
        409: Audit already resolved
    """
    result = audit_service.resolve_audit(audit_id, g.current_actor)
    return result_response(result, serialize=_audit_dict)


@audits_bp.delete("/<int:audit_id>")
@require_actor
def delete_audit_route(audit_id: int):
    result = audit_service.delete_audit(audit_id, g.current_actor)
    return result_response(result, serialize=lambda deleted_id: {"deleted": deleted_id})


@audits_bp.get("")
def list_audits_route():
    audits = audit_service.list_audits(
        status=request.args.get("status"),
        location_id=request.args.get("location_id", type=int),
    )
    return jsonify({"audits": [a.to_dict() for a in audits]}), 200


@audits_bp.get("/<int:audit_id>")
def get_audit_route(audit_id: int):
    try:
        return jsonify(audit_service.get_audit(audit_id).to_dict()), 200
    except NotFound as e:
        return error_response(e)
