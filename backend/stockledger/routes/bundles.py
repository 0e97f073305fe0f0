# backend/stockledger/routes/bundles.py
"""
Bundle composition, availability and deduction routes.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, result_response, error_response
from ..errors import InventoryError
from ..services import bundle_service


bundles_bp = Blueprint("bundles", __name__, url_prefix="/api/bundles")


def _deductions(deductions):
    return {"deductions": [d._asdict() for d in deductions]}


@bundles_bp.post("")
@require_actor
def create_bundle_route():
    data = request.get_json(silent=True) or {}
    result = bundle_service.create_bundle(data.get("name"), g.current_actor, description=data.get("description"))
    return result_response(result, success_status=201, serialize=lambda bundle: bundle.to_dict())


@bundles_bp.get("")
def list_bundles_route():
    return jsonify({"bundles": bundle_service.list_bundles(request.args.get("location_id", type=int))}), 200


@bundles_bp.get("/<int:bundle_item_id>")
def get_bundle_route(bundle_item_id: int):
    try:
        return jsonify(bundle_service.get_bundle(bundle_item_id)), 200
    except InventoryError as e:
        return error_response(e)


@bundles_bp.patch("/<int:bundle_item_id>")
@require_actor
def update_bundle_route(bundle_item_id: int):
    """
    Rename a bundle or edit its description.

    Request body:
    {
        "name": str (optional),
        "description": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    result = bundle_service.update_bundle(
        bundle_item_id,
        g.current_actor,
        name=data.get("name"),
        description=data.get("description"),
    )
    return result_response(result, serialize=lambda bundle: bundle.to_dict())


@bundles_bp.delete("/<int:bundle_item_id>")
@require_actor
def delete_bundle_route(bundle_item_id: int):
    """
    Delete a bundle that never moved stock.

    Returns:
        200: {"deleted": int}
        404: Bundle not found
        409: Bundle variations have ledger history
    """
    result = bundle_service.delete_bundle(bundle_item_id, g.current_actor)
    return result_response(result, serialize=lambda deleted_id: {"deleted": deleted_id})


@bundles_bp.post("/<int:bundle_item_id>/variations")
@require_actor
def create_bundle_variation_route(bundle_item_id: int):
    """
    Create a sellable bundle variation together with its components.

    Request body:
    {
        "sku": str,
        "name": str,
        "selling_price_cents": int,
        "components": [{"component_variation_id": int, "quantity": int,
                        "display_order": int, "is_highlight": bool}, ...]
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        result = bundle_service.create_bundle_variation(
            bundle_item_id,
            data["sku"],
            data["name"],
            data["selling_price_cents"],
            g.current_actor,
            components=data.get("components", []),
        )
    except KeyError as e:
        return jsonify({"error": f"Missing required field: {e}"}), 400

    return result_response(result, success_status=201, serialize=lambda variation: variation.to_dict())


@bundles_bp.get("/<int:bundle_item_id>/components")
def list_components_route(bundle_item_id: int):
    try:
        return jsonify({"components": bundle_service.list_bundle_components(bundle_item_id)}), 200
    except InventoryError as e:
        return error_response(e)


@bundles_bp.post("/<int:bundle_item_id>/components")
@require_actor
def add_components_route(bundle_item_id: int):
    data = request.get_json(silent=True) or {}
    result = bundle_service.add_bundle_components(bundle_item_id, data.get("components", []), g.current_actor)
    return result_response(result, success_status=201, serialize=lambda rows: {"components": [c.to_dict() for c in rows]})


@bundles_bp.patch("/components/<int:component_id>")
@require_actor
def update_component_route(component_id: int):
    data = request.get_json(silent=True) or {}
    if "quantity" not in data:
        return jsonify({"error": "Missing required field: 'quantity'"}), 400
    result = bundle_service.update_bundle_component(component_id, data["quantity"], g.current_actor)
    return result_response(result, serialize=lambda component: component.to_dict())


@bundles_bp.delete("/components/<int:component_id>")
@require_actor
def remove_component_route(component_id: int):
    result = bundle_service.remove_bundle_component(component_id, g.current_actor)
    return result_response(result, serialize=lambda removed_id: {"deleted": removed_id})


@bundles_bp.get("/<int:bundle_item_id>/stock")
def bundle_stock_route(bundle_item_id: int):
    """
    Derived bundle availability.

    Query params:
        location_id (optional): single location; otherwise a per-location map
    """
    location_id = request.args.get("location_id", type=int)
    result = bundle_service.available_stock(bundle_item_id, location_id)

    def _serialize(value):
        if location_id is not None:
            return {"bundle_item_id": bundle_item_id, "location_id": location_id, "available_stock": value}
        return {
            "bundle_item_id": bundle_item_id,
            "stock_by_location": [
                {"location_id": loc_id, "available_stock": stock} for loc_id, stock in value.items()
            ],
        }

    return result_response(result, serialize=_serialize)


@bundles_bp.post("/variations/<int:bundle_variation_id>/deduct")
@require_actor
def deduct_bundle_route(bundle_variation_id: int):
    """
    Deduct component stock for a bundle sale, all or nothing.

    Request body:
    {
        "quantity": int,
        "location_id": int (optional; omitted draws from any location),
        "order_id": str (optional; recorded in the adjustment reason)
    }

    Returns:
        200: {"deductions": [{variation_id, location_id, quantity, adjustment_id}, ...]}
        409: Insufficient stock (nothing deducted)
    """
    data = request.get_json(silent=True) or {}
    if "quantity" not in data:
        return jsonify({"error": "Missing required field: 'quantity'"}), 400

    result = bundle_service.deduct_bundle_stock(
        bundle_variation_id,
        data["quantity"],
        data.get("location_id"),
        data.get("order_id"),
        g.current_actor,
    )
    return result_response(result, serialize=_deductions)
