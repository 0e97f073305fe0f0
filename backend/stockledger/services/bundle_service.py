# Overview: Bundle composition, derived bundle availability and compound bundle deduction.

"""
Bundle Invariants (authoritative)

- A bundle is an InventoryItem with is_bundle=True. Its own variations never
  carry authoritative stock; availability is derived on every read:
      available(location) = min over components of floor(stock / qty)
  A bundle with no components has availability 0, never unbounded.
- Nothing is cached or materialized, so there is nothing to invalidate when
  component stock changes.
- Components are ordinary (non-bundle) variations; bundles do not nest.
- A bundle sale deducts every component or none. Availability reads before
  checkout are advisory; deduct_bundle_stock re-validates under row locks.
- Without a location, each component is drawn from the locations holding
  the most stock first (ties: lowest location id). Each (component,
  location) touched gets its own adjustment.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NamedTuple

from ..extensions import db
from ..errors import InsufficientStock, InvalidTransition, NotFound, ValidationFailed
from ..models import (
    BundleComponent,
    InventoryAdjustment,
    InventoryAudit,
    InventoryItem,
    InventoryStockLevel,
    InventoryTransfer,
    InventoryVariation,
)
from .actor_service import Actor, require_actor, system_actor
from .ledger_service import (
    deduct_across_locations,
    get_location,
    get_variation,
    lock_stock_levels,
    lock_variation_levels,
    post_adjustment,
)
from .results import ledger_operation


class ComponentDeduction(NamedTuple):
    variation_id: int
    location_id: int
    quantity: int
    adjustment_id: int


@dataclass(frozen=True)
class ComponentSpec:
    component_variation_id: int
    quantity: int = 1
    display_order: int = 0
    is_highlight: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComponentSpec":
        try:
            variation_id = data["component_variation_id"]
        except KeyError:
            raise ValidationFailed("component_variation_id is required")
        quantity = data.get("quantity", 1)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationFailed("Quantity must be at least 1")
        display_order = data.get("display_order")
        if display_order is None:
            display_order = 0
        if isinstance(display_order, bool) or not isinstance(display_order, int):
            raise ValidationFailed("display_order must be an integer")
        return cls(
            component_variation_id=variation_id,
            quantity=quantity,
            display_order=display_order,
            is_highlight=bool(data.get("is_highlight", False)),
        )


def _coerce_specs(components) -> list[ComponentSpec]:
    specs = [c if isinstance(c, ComponentSpec) else ComponentSpec.from_dict(c) for c in components or []]
    seen: set[int] = set()
    for spec in specs:
        if spec.component_variation_id in seen:
            raise ValidationFailed(f"Variation {spec.component_variation_id} listed twice")
        seen.add(spec.component_variation_id)
    return specs


def get_bundle_item(bundle_item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, bundle_item_id)
    if item is None:
        raise NotFound(f"Bundle {bundle_item_id} not found", bundle_item_id=bundle_item_id)
    if not item.is_bundle:
        raise ValidationFailed(f"Item {bundle_item_id} is not a bundle", bundle_item_id=bundle_item_id)
    return item


def _components(bundle_item_id: int) -> list[BundleComponent]:
    return (
        db.session.query(BundleComponent)
        .filter_by(bundle_item_id=bundle_item_id)
        .order_by(BundleComponent.display_order.asc(), BundleComponent.id.asc())
        .all()
    )


def _add_components(bundle: InventoryItem, specs: list[ComponentSpec]) -> list[BundleComponent]:
    existing = {c.component_variation_id for c in _components(bundle.id)}
    created = []
    for spec in specs:
        variation = get_variation(spec.component_variation_id)
        if variation.item.is_bundle:
            raise ValidationFailed(f"Variation {variation.id} is a bundle and cannot be a component")
        if variation.id in existing:
            raise ValidationFailed(f"Variation {variation.id} is already a component of bundle {bundle.id}")
        component = BundleComponent(
            bundle_item_id=bundle.id,
            component_variation_id=variation.id,
            quantity=spec.quantity,
            display_order=spec.display_order,
            is_highlight=spec.is_highlight,
        )
        db.session.add(component)
        created.append(component)
    db.session.flush()
    return created


# --- Availability ----------------------------------------------------------


def _possible_bundles(stock: int, per_bundle: int) -> int:
    # Pre-existing negative stock yields no bundles rather than negative ones
    return max(stock, 0) // per_bundle


def compute_available_stock(bundle_item_id: int, location_id: int | None = None):
    """
    Derived availability. An int for one location, else {location_id: int}
    over every location where any component has a stock row.
    """
    components = _components(bundle_item_id)
    if not components:
        return 0 if location_id is not None else {}

    variation_ids = [c.component_variation_id for c in components]
    q = db.session.query(InventoryStockLevel).filter(InventoryStockLevel.variation_id.in_(variation_ids))
    if location_id is not None:
        q = q.filter(InventoryStockLevel.location_id == location_id)

    stock: dict[tuple[int, int], int] = {}
    for level in q.all():
        stock[(level.variation_id, level.location_id)] = level.stock

    def _at(loc_id: int) -> int:
        return min(
            _possible_bundles(stock.get((c.component_variation_id, loc_id), 0), c.quantity)
            for c in components
        )

    if location_id is not None:
        return _at(location_id)

    locations = sorted({loc_id for _, loc_id in stock})
    return {loc_id: _at(loc_id) for loc_id in locations}


@ledger_operation("available_stock", mutating=False)
def available_stock(bundle_item_id: int, location_id: int | None = None):
    """Bundle availability at one location, or per location when none is given."""
    get_bundle_item(bundle_item_id)
    if location_id is not None:
        get_location(location_id)
    return compute_available_stock(bundle_item_id, location_id)


# --- Deduction -------------------------------------------------------------


def _sale_reason(bundle: InventoryItem, quantity: int, order_id) -> str:
    reason = f"Bundle sale - Bundle: {bundle.name} ({quantity} units)"
    if order_id:
        reason += f" - Order ID: {order_id}"
    return reason


def _shortfall(component: BundleComponent, available: int, required: int, location_id=None) -> InsufficientStock:
    variation = component.component_variation
    where = f" at location {location_id}" if location_id is not None else ""
    return InsufficientStock(
        f"Insufficient stock for component {variation.name}{where}. "
        f"Available: {available}, required: {required}",
        variation_id=variation.id,
        location_id=location_id,
        available=available,
        requested=required,
    )


def _deduct_at_location(components, quantity, location_id, reason, actor) -> list[ComponentDeduction]:
    keys = [(c.component_variation_id, location_id) for c in components]
    levels = lock_stock_levels(keys)

    for component in components:
        required = component.quantity * quantity
        available = levels[(component.component_variation_id, location_id)].stock
        if available < required:
            raise _shortfall(component, available, required, location_id)

    deductions = []
    for component in components:
        required = component.quantity * quantity
        key = (component.component_variation_id, location_id)
        _, adjustment = post_adjustment(
            variation_id=component.component_variation_id,
            location_id=location_id,
            change_amount=-required,
            reason=reason,
            actor=actor,
            enforce_non_negative=True,
            approved_by_id=actor.id,
            stock_level=levels[key],
        )
        deductions.append(ComponentDeduction(component.component_variation_id, location_id, required, adjustment.id))
    return deductions


def _deduct_anywhere(components, quantity, reason, actor) -> list[ComponentDeduction]:
    by_variation = lock_variation_levels(c.component_variation_id for c in components)

    for component in components:
        required = component.quantity * quantity
        total = sum(max(level.stock, 0) for level in by_variation[component.component_variation_id])
        if total < required:
            raise _shortfall(component, total, required)

    deductions = []
    for component in components:
        taken = deduct_across_locations(
            by_variation[component.component_variation_id],
            component.quantity * quantity,
            reason=reason,
            actor=actor,
        )
        deductions.extend(ComponentDeduction(*d) for d in taken)
    return deductions


def _deduct(bundle_variation_id, quantity, location_id, order_id, actor) -> list[ComponentDeduction]:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationFailed("quantity must be a positive integer")

    variation = get_variation(bundle_variation_id)
    bundle = variation.item
    if not bundle.is_bundle:
        raise ValidationFailed("Item is not a bundle", variation_id=bundle_variation_id)

    components = _components(bundle.id)
    if not components:
        raise InsufficientStock(f"Bundle {bundle.name} has no components", bundle_item_id=bundle.id)

    reason = _sale_reason(bundle, quantity, order_id)
    if location_id is not None:
        get_location(location_id)
        return _deduct_at_location(components, quantity, location_id, reason, actor)
    return _deduct_anywhere(components, quantity, reason, actor)


@ledger_operation("deduct_bundle_stock")
def deduct_bundle_stock(
    bundle_variation_id: int,
    quantity: int,
    location_id: int | None,
    order_id,
    actor: Actor | None,
) -> list[ComponentDeduction]:
    """
    Deduct component stock for `quantity` bundles, all or nothing.

    With location_id every component is taken from that location; with None
    components are drawn greedily across locations. Returns one
    ComponentDeduction per adjustment written.
    """
    actor = require_actor(actor)
    return _deduct(bundle_variation_id, quantity, location_id, order_id, actor)


@ledger_operation("deduct_bundle_stock_for_order")
def deduct_bundle_stock_for_order(
    bundle_variation_id: int,
    quantity: int,
    order_id,
    location_id: int | None = None,
) -> list[ComponentDeduction]:
    """Order-completion path: attributed to the system actor (oldest active admin)."""
    return _deduct(bundle_variation_id, quantity, location_id, order_id, system_actor())


# --- Composition -----------------------------------------------------------


@ledger_operation("create_bundle")
def create_bundle(name: str, actor: Actor | None, description: str | None = None) -> InventoryItem:
    require_actor(actor)
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Bundle name is required")
    bundle = InventoryItem(name=name, description=(description or "").strip() or None, is_bundle=True)
    db.session.add(bundle)
    db.session.flush()
    return bundle


@ledger_operation("update_bundle")
def update_bundle(
    bundle_item_id: int,
    actor: Actor | None,
    *,
    name: str | None = None,
    description: str | None = None,
) -> InventoryItem:
    """Rename a bundle or edit its description. Omitted fields are unchanged."""
    require_actor(actor)
    bundle = get_bundle_item(bundle_item_id)
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationFailed("Bundle name is required")
        bundle.name = name
    if description is not None:
        bundle.description = description.strip() or None
    db.session.flush()
    return bundle


@ledger_operation("delete_bundle")
def delete_bundle(bundle_item_id: int, actor: Actor | None) -> int:
    """
    Remove a bundle with its components, variations and their stock rows.

    Refused once any adjustment, audit or transfer references one of the
    bundle's variations; that history must stay reconstructable.
    """
    require_actor(actor)
    bundle = get_bundle_item(bundle_item_id)
    variation_ids = [
        row.id for row in db.session.query(InventoryVariation.id).filter_by(item_id=bundle.id).all()
    ]

    if variation_ids:
        for model, label in (
            (InventoryAdjustment, "stock adjustments"),
            (InventoryAudit, "audits"),
            (InventoryTransfer, "transfers"),
        ):
            referenced = (
                db.session.query(model.id)
                .filter(model.variation_id.in_(variation_ids))
                .first()
            )
            if referenced is not None:
                raise InvalidTransition(
                    f"Bundle {bundle.name} has recorded {label} and cannot be deleted",
                    bundle_item_id=bundle.id,
                )

    db.session.query(BundleComponent).filter_by(bundle_item_id=bundle.id).delete(synchronize_session=False)
    if variation_ids:
        db.session.query(InventoryStockLevel).filter(
            InventoryStockLevel.variation_id.in_(variation_ids)
        ).delete(synchronize_session=False)
        db.session.query(InventoryVariation).filter(
            InventoryVariation.id.in_(variation_ids)
        ).delete(synchronize_session=False)

    db.session.expire(bundle, ["variations", "bundle_components"])
    db.session.delete(bundle)
    db.session.flush()
    return bundle_item_id


@ledger_operation("create_bundle_variation")
def create_bundle_variation(
    bundle_item_id: int,
    sku: str,
    name: str,
    selling_price_cents: int,
    actor: Actor | None,
    components=(),
) -> InventoryVariation:
    """Create a sellable bundle variation and its components in one transaction."""
    require_actor(actor)
    bundle = get_bundle_item(bundle_item_id)
    if not (sku or "").strip():
        raise ValidationFailed("SKU is required")
    if not (name or "").strip():
        raise ValidationFailed("Variation name is required")
    if isinstance(selling_price_cents, bool) or not isinstance(selling_price_cents, int) or selling_price_cents < 0:
        raise ValidationFailed("Price must be a non-negative integer number of cents")
    if db.session.query(InventoryVariation).filter_by(sku=sku.strip()).first() is not None:
        raise ValidationFailed(f"SKU {sku!r} already exists")

    variation = InventoryVariation(
        item_id=bundle.id,
        sku=sku.strip(),
        name=name.strip(),
        selling_price_cents=selling_price_cents,
    )
    db.session.add(variation)
    db.session.flush()

    _add_components(bundle, _coerce_specs(components))
    return variation


@ledger_operation("add_bundle_components")
def add_bundle_components(bundle_item_id: int, components, actor: Actor | None) -> list[BundleComponent]:
    require_actor(actor)
    bundle = get_bundle_item(bundle_item_id)
    return _add_components(bundle, _coerce_specs(components))


def _load_component(component_id: int) -> BundleComponent:
    component = db.session.get(BundleComponent, component_id)
    if component is None:
        raise NotFound(f"Bundle component {component_id} not found", component_id=component_id)
    return component


@ledger_operation("update_bundle_component")
def update_bundle_component(component_id: int, quantity: int, actor: Actor | None) -> BundleComponent:
    require_actor(actor)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationFailed("Quantity must be at least 1")
    component = _load_component(component_id)
    component.quantity = quantity
    db.session.flush()
    return component


@ledger_operation("remove_bundle_component")
def remove_bundle_component(component_id: int, actor: Actor | None) -> int:
    """Drop a component. Past adjustments are untouched."""
    require_actor(actor)
    component = _load_component(component_id)
    db.session.delete(component)
    db.session.flush()
    return component_id


def list_bundle_components(bundle_item_id: int) -> list[dict]:
    """Components in display order, each with its live stock per location."""
    get_bundle_item(bundle_item_id)
    result = []
    for component in _components(bundle_item_id):
        row = component.to_dict()
        row["variation"] = component.component_variation.to_dict()
        row["stock_levels"] = [
            {"location_id": level.location_id, "stock": level.stock}
            for level in sorted(component.component_variation.stock_levels, key=lambda lvl: lvl.location_id)
        ]
        result.append(row)
    return result


def list_bundles(location_id: int | None = None) -> list[dict]:
    """All bundles with freshly derived stock."""
    bundles = (
        db.session.query(InventoryItem)
        .filter_by(is_bundle=True)
        .order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
        .all()
    )
    result = []
    for bundle in bundles:
        row = bundle.to_dict()
        row["variations"] = [v.to_dict() for v in bundle.variations]
        row["components"] = [c.to_dict() for c in _components(bundle.id)]
        stock = compute_available_stock(bundle.id, location_id)
        row["calculated_stock"] = stock if location_id is not None else [
            {"location_id": loc_id, "available_stock": value} for loc_id, value in stock.items()
        ]
        result.append(row)
    return result


def get_bundle(bundle_item_id: int) -> dict:
    """
    One bundle with its variations, ordered components (each with live
    stock per location) and derived availability per location.
    """
    bundle = get_bundle_item(bundle_item_id)
    row = bundle.to_dict()
    row["variations"] = [v.to_dict() for v in bundle.variations]
    row["components"] = list_bundle_components(bundle.id)
    row["calculated_stock"] = [
        {"location_id": loc_id, "available_stock": value}
        for loc_id, value in compute_available_stock(bundle.id).items()
    ]
    return row
