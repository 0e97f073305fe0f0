# Overview: Stock ledger primitive; every stock mutation goes through post_adjustment.

"""
Stock Ledger Invariants (authoritative)

- InventoryStockLevel is a denormalized projection of InventoryAdjustment.
- Every stock change writes exactly one adjustment row in the same DB
  transaction as the stock row update; neither is committed without the other.
- stock_after == stock_before + change_amount for every adjustment.
- For every (variation, location): live stock == first stock_before +
  SUM(change_amount). verify_ledger() checks this fold.
- Deduction paths (manual deduction, transfer out, bundle sale) refuse to take
  stock below zero. Audit resolution is a correction and may go anywhere.
- Adjustments are append-only (see model mapper events).
"""
from __future__ import annotations

from typing import NamedTuple

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import ConsistencyViolation, InsufficientStock, NotFound, ValidationFailed
from ..models import InventoryAdjustment, InventoryStockLevel, InventoryVariation, StoreLocation
from .actor_service import Actor, require_actor, system_actor
from .concurrency import lock_for_update
from .results import ledger_operation


MAX_REASON_LENGTH = 500


class AdjustmentApplied(NamedTuple):
    new_stock: int
    adjustment_id: int


class LocationDeduction(NamedTuple):
    variation_id: int
    location_id: int
    quantity: int
    adjustment_id: int


def get_variation(variation_id: int) -> InventoryVariation:
    variation = db.session.get(InventoryVariation, variation_id)
    if variation is None:
        raise NotFound(f"Variation {variation_id} not found", variation_id=variation_id)
    return variation


def get_location(location_id: int) -> StoreLocation:
    location = db.session.get(StoreLocation, location_id)
    if location is None:
        raise NotFound(f"Location {location_id} not found", location_id=location_id)
    return location


def get_stock(variation_id: int, location_id: int) -> int:
    """Live stock for one key; 0 when no ledger row exists yet."""
    level = (
        db.session.query(InventoryStockLevel)
        .filter_by(variation_id=variation_id, location_id=location_id)
        .first()
    )
    return level.stock if level else 0


def get_stock_levels(variation_id: int) -> list[InventoryStockLevel]:
    return (
        db.session.query(InventoryStockLevel)
        .filter_by(variation_id=variation_id)
        .order_by(InventoryStockLevel.location_id.asc())
        .all()
    )


def lock_stock_level(variation_id: int, location_id: int, *, create: bool = True) -> InventoryStockLevel | None:
    """
    Read a ledger row with a row lock, creating a zero row when absent.

    Returns None only when create=False and no row exists.
    """
    level = lock_for_update(
        db.session.query(InventoryStockLevel).filter_by(variation_id=variation_id, location_id=location_id)
    ).first()
    if level is None and create:
        level = InventoryStockLevel(variation_id=variation_id, location_id=location_id, stock=0)
        db.session.add(level)
        db.session.flush()
    return level


def lock_stock_levels(keys) -> dict[tuple[int, int], InventoryStockLevel]:
    """
    Lock several ledger rows in a stable (variation_id, location_id) order.

    Multi-row writers (transfers, bundle sales) lock through here so two of
    them can never wait on each other in opposite orders.
    """
    return {key: lock_stock_level(*key) for key in sorted(set(keys))}


def _validate_reason(reason: str | None) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("reason is required")
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationFailed(f"reason must be at most {MAX_REASON_LENGTH} characters")
    return reason


def post_adjustment(
    *,
    variation_id: int,
    location_id: int,
    change_amount: int,
    reason: str,
    actor: Actor,
    enforce_non_negative: bool = True,
    approved_by_id: int | None = None,
    stock_level: InventoryStockLevel | None = None,
) -> tuple[InventoryStockLevel, InventoryAdjustment]:
    """
    Apply one signed change to a ledger row and append its adjustment.

    Core logic without commit; callers own the transaction. Pass an already
    locked stock_level to skip the lookup.

    Raises:
        InsufficientStock: deduction would leave stock below zero
        ConsistencyViolation: written values disagree with the arithmetic
    """
    if isinstance(change_amount, bool) or not isinstance(change_amount, int):
        raise ValidationFailed("change_amount must be an integer")
    reason = _validate_reason(reason)

    variation = get_variation(variation_id)
    if stock_level is None:
        stock_level = lock_stock_level(variation_id, location_id)

    stock_before = stock_level.stock
    stock_after = stock_before + change_amount

    if enforce_non_negative and change_amount < 0 and stock_after < 0:
        raise InsufficientStock(
            f"Insufficient stock for variation {variation_id} at location {location_id}. "
            f"On-hand: {stock_before}, requested: {-change_amount}",
            variation_id=variation_id,
            location_id=location_id,
            available=stock_before,
            requested=-change_amount,
        )

    stock_level.stock = stock_after

    adjustment = InventoryAdjustment(
        item_id=variation.item_id,
        variation_id=variation_id,
        location_id=location_id,
        change_amount=change_amount,
        reason=reason,
        stock_before=stock_before,
        stock_after=stock_after,
        adjusted_by_id=actor.id,
        approved_by_id=approved_by_id,
        approved=True,
    )
    db.session.add(adjustment)
    db.session.flush()

    if adjustment.stock_after != adjustment.stock_before + adjustment.change_amount or stock_level.stock != adjustment.stock_after:
        raise ConsistencyViolation(
            "Adjustment arithmetic mismatch",
            adjustment_id=adjustment.id,
            stock_before=adjustment.stock_before,
            change_amount=adjustment.change_amount,
            stock_after=adjustment.stock_after,
            ledger_stock=stock_level.stock,
        )

    current_app.logger.info(
        "Stock %+d for variation %s at location %s (%s -> %s) by actor %s: %s",
        change_amount, variation_id, location_id, stock_before, stock_after, actor.id, reason,
    )
    return stock_level, adjustment


@ledger_operation("apply_adjustment")
def apply_adjustment(
    variation_id: int,
    location_id: int,
    change_amount: int,
    reason: str,
    actor: Actor | None,
    *,
    enforce_non_negative: bool = True,
) -> AdjustmentApplied:
    """
    Manual stock adjustment (receiving, shrink, corrections).

    Returns AdjustmentApplied(new_stock, adjustment_id) on success.
    """
    actor = require_actor(actor)
    if change_amount == 0:
        raise ValidationFailed("change_amount must be non-zero")
    get_location(location_id)

    stock_level, adjustment = post_adjustment(
        variation_id=variation_id,
        location_id=location_id,
        change_amount=change_amount,
        reason=reason,
        actor=actor,
        enforce_non_negative=enforce_non_negative,
        approved_by_id=actor.id,
    )
    return AdjustmentApplied(new_stock=stock_level.stock, adjustment_id=adjustment.id)


def lock_variation_levels(variation_ids) -> dict[int, list[InventoryStockLevel]]:
    """Lock every ledger row of the given variations, ordered by (variation, location)."""
    variation_ids = sorted(set(variation_ids))
    levels = lock_for_update(
        db.session.query(InventoryStockLevel)
        .filter(InventoryStockLevel.variation_id.in_(variation_ids))
        .order_by(InventoryStockLevel.variation_id.asc(), InventoryStockLevel.location_id.asc())
    ).all()

    by_variation: dict[int, list[InventoryStockLevel]] = {vid: [] for vid in variation_ids}
    for level in levels:
        by_variation[level.variation_id].append(level)
    return by_variation


def deduct_across_locations(
    levels: list[InventoryStockLevel],
    quantity: int,
    *,
    reason: str,
    actor: Actor,
) -> list[LocationDeduction]:
    """
    Take `quantity` from already locked rows of one variation, largest stock
    first (ties: lowest location id). One adjustment per location touched.

    Raises InsufficientStock when the rows cannot cover the quantity; the
    caller's transaction discards any deductions already posted.
    """
    remaining = quantity
    deductions = []
    for level in sorted(levels, key=lambda lvl: (-lvl.stock, lvl.location_id)):
        if remaining <= 0:
            break
        take = min(level.stock, remaining)
        if take <= 0:
            continue
        _, adjustment = post_adjustment(
            variation_id=level.variation_id,
            location_id=level.location_id,
            change_amount=-take,
            reason=reason,
            actor=actor,
            enforce_non_negative=True,
            approved_by_id=actor.id,
            stock_level=level,
        )
        deductions.append(LocationDeduction(level.variation_id, level.location_id, take, adjustment.id))
        remaining -= take

    if remaining > 0:
        raise InsufficientStock(
            f"Insufficient stock across locations. Available: {quantity - remaining}, requested: {quantity}",
            available=quantity - remaining,
            requested=quantity,
        )
    return deductions


@ledger_operation("deduct_stock_for_order")
def deduct_stock_for_order(variation_id: int, quantity: int, order_id) -> list[LocationDeduction]:
    """
    Order-completion path for an ordinary (non-bundle) variation.

    Draws from whichever locations hold the most stock, attributed to the
    system actor. All or nothing: a shortfall leaves every row unchanged.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationFailed("quantity must be a positive integer")

    actor = system_actor()
    variation = get_variation(variation_id)
    if variation.item.is_bundle:
        raise ValidationFailed(
            "Bundle variations are deducted through their components",
            variation_id=variation_id,
        )

    levels = lock_variation_levels([variation_id])[variation_id]
    available = sum(max(level.stock, 0) for level in levels)
    if available < quantity:
        raise InsufficientStock(
            f"Insufficient stock for variation {variation_id}. Available: {available}, requested: {quantity}",
            variation_id=variation_id,
            available=available,
            requested=quantity,
        )

    return deduct_across_locations(levels, quantity, reason=f"Order completion - Order ID: {order_id}", actor=actor)


def list_adjustments(
    *,
    page: int = 1,
    limit: int = 10,
    variation_id: int | None = None,
    location_id: int | None = None,
) -> dict:
    """Newest-first page of adjustments with pagination metadata."""
    page = max(page, 1)
    limit = min(max(limit, 1), 200)

    q = db.session.query(InventoryAdjustment)
    if variation_id is not None:
        q = q.filter(InventoryAdjustment.variation_id == variation_id)
    if location_id is not None:
        q = q.filter(InventoryAdjustment.location_id == location_id)

    total = q.count()
    rows = (
        q.order_by(InventoryAdjustment.created_at.desc(), InventoryAdjustment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "adjustments": [row.to_dict() for row in rows],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        },
    }


def get_adjustment(adjustment_id: int) -> InventoryAdjustment:
    adjustment = db.session.get(InventoryAdjustment, adjustment_id)
    if adjustment is None:
        raise NotFound(f"Adjustment {adjustment_id} not found", adjustment_id=adjustment_id)
    return adjustment


def verify_ledger() -> list[dict]:
    """
    Fold the adjustment log and compare it with the ledger.

    For each key with adjustments, the chain must be continuous (each
    stock_before equals the previous stock_after) and the live stock must
    equal first stock_before + SUM(change_amount). Returns one dict per
    problem found; an empty list means the ledger is reconstructable.
    """
    problems: list[dict] = []

    totals = (
        db.session.query(
            InventoryAdjustment.variation_id,
            InventoryAdjustment.location_id,
            func.sum(InventoryAdjustment.change_amount).label("total_change"),
        )
        .group_by(InventoryAdjustment.variation_id, InventoryAdjustment.location_id)
        .all()
    )

    for row in totals:
        chain = (
            db.session.query(InventoryAdjustment)
            .filter_by(variation_id=row.variation_id, location_id=row.location_id)
            .order_by(InventoryAdjustment.id.asc())
            .all()
        )
        previous_after = None
        for adjustment in chain:
            if adjustment.stock_after != adjustment.stock_before + adjustment.change_amount:
                problems.append({
                    "kind": "arithmetic",
                    "adjustment_id": adjustment.id,
                    "variation_id": row.variation_id,
                    "location_id": row.location_id,
                })
            if previous_after is not None and adjustment.stock_before != previous_after:
                problems.append({
                    "kind": "chain_gap",
                    "adjustment_id": adjustment.id,
                    "variation_id": row.variation_id,
                    "location_id": row.location_id,
                    "expected_stock_before": previous_after,
                    "actual_stock_before": adjustment.stock_before,
                })
            previous_after = adjustment.stock_after

        expected = chain[0].stock_before + int(row.total_change or 0)
        live = get_stock(row.variation_id, row.location_id)
        if live != expected:
            problems.append({
                "kind": "drift",
                "variation_id": row.variation_id,
                "location_id": row.location_id,
                "expected_stock": expected,
                "live_stock": live,
            })

    return problems
