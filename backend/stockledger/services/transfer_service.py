# backend/stockledger/services/transfer_service.py
"""
Inter-location transfer service.

WHY: Move stock of one variation between two locations with an explicit
workflow and a full adjustment trail at both ends.

LIFECYCLE:
1. Pending: transfer created; stock still belongs to the source location
2. InTransit: shipped; stock still counted at the source
3. Completed: source debited and destination credited in one transaction

Stock is validated at creation and on every edit, but it only moves at the
transition into Completed, where it is validated again under row locks.
"""
from __future__ import annotations

from ..extensions import db
from ..errors import InsufficientStock, InvalidTransition, NotFound, ValidationFailed
from ..models import InventoryTransfer, TransferStatus
from ..time_utils import utcnow
from .actor_service import Actor, require_actor
from .concurrency import lock_for_update
from .ledger_service import get_location, get_stock, get_variation, lock_stock_levels, post_adjustment
from .lifecycle_service import is_transfer_editable, require_transfer_transition
from .results import ledger_operation


def _load_transfer(transfer_id: int, *, lock: bool = False) -> InventoryTransfer:
    query = db.session.query(InventoryTransfer).filter_by(id=transfer_id)
    if lock:
        query = lock_for_update(query)
    transfer = query.first()
    if transfer is None:
        raise NotFound(f"Transfer {transfer_id} not found", transfer_id=transfer_id)
    return transfer


def _validate_transfer_fields(
    *,
    item_id: int,
    variation_id: int,
    from_location_id: int,
    to_location_id: int,
    quantity,
) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationFailed("quantity must be an integer")
    if quantity <= 0:
        raise ValidationFailed("quantity must be positive")
    if from_location_id == to_location_id:
        raise InvalidTransition("Cannot transfer to the same location", location_id=from_location_id)

    variation = get_variation(variation_id)
    if variation.item_id != item_id:
        raise ValidationFailed(f"Variation {variation_id} does not belong to item {item_id}")
    get_location(from_location_id)
    get_location(to_location_id)

    on_hand = get_stock(variation_id, from_location_id)
    if on_hand < quantity:
        raise InsufficientStock(
            f"Insufficient stock for variation {variation_id} at location {from_location_id}. "
            f"On-hand: {on_hand}, requested: {quantity}",
            variation_id=variation_id,
            location_id=from_location_id,
            available=on_hand,
            requested=quantity,
        )


@ledger_operation("create_transfer")
def create_transfer(
    item_id: int,
    variation_id: int,
    from_location_id: int,
    to_location_id: int,
    quantity: int,
    actor: Actor | None,
) -> InventoryTransfer:
    """
    Create a transfer (status: Pending). Does not move stock.

    Raises (as failed results):
        InvalidTransition: from and to locations are the same
        InsufficientStock: source stock is below quantity
    """
    actor = require_actor(actor)
    _validate_transfer_fields(
        item_id=item_id,
        variation_id=variation_id,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        quantity=quantity,
    )

    transfer = InventoryTransfer(
        item_id=item_id,
        variation_id=variation_id,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        quantity=quantity,
        status=TransferStatus.PENDING.value,
        transfer_date=utcnow(),
        created_by_id=actor.id,
    )
    db.session.add(transfer)
    db.session.flush()
    return transfer


@ledger_operation("update_transfer")
def update_transfer(
    transfer_id: int,
    actor: Actor | None,
    *,
    item_id: int | None = None,
    variation_id: int | None = None,
    from_location_id: int | None = None,
    to_location_id: int | None = None,
    quantity: int | None = None,
) -> InventoryTransfer:
    """
    Edit a transfer that is not yet Completed.

    Omitted fields keep their current values. Availability is re-validated
    against whichever source location is selected after the edit.
    """
    require_actor(actor)
    transfer = _load_transfer(transfer_id, lock=True)
    if not is_transfer_editable(transfer):
        raise InvalidTransition(f"Cannot edit transfer in {transfer.status} status", transfer_id=transfer_id)

    merged = {
        "item_id": transfer.item_id if item_id is None else item_id,
        "variation_id": transfer.variation_id if variation_id is None else variation_id,
        "from_location_id": transfer.from_location_id if from_location_id is None else from_location_id,
        "to_location_id": transfer.to_location_id if to_location_id is None else to_location_id,
        "quantity": transfer.quantity if quantity is None else quantity,
    }
    _validate_transfer_fields(**merged)

    for field, value in merged.items():
        setattr(transfer, field, value)
    db.session.flush()
    return transfer


def _complete(transfer: InventoryTransfer, actor: Actor) -> None:
    if transfer.from_location_id == transfer.to_location_id:
        raise InvalidTransition("Cannot complete a transfer to the same location", transfer_id=transfer.id)

    source_key = (transfer.variation_id, transfer.from_location_id)
    dest_key = (transfer.variation_id, transfer.to_location_id)
    levels = lock_stock_levels([source_key, dest_key])

    post_adjustment(
        variation_id=transfer.variation_id,
        location_id=transfer.from_location_id,
        change_amount=-transfer.quantity,
        reason=(
            f"Inventory transferred out to Location #{transfer.to_location_id} "
            f"(Transfer #{transfer.id})"
        ),
        actor=actor,
        enforce_non_negative=True,
        approved_by_id=actor.id,
        stock_level=levels[source_key],
    )
    post_adjustment(
        variation_id=transfer.variation_id,
        location_id=transfer.to_location_id,
        change_amount=transfer.quantity,
        reason=(
            f"Inventory transferred in from Location #{transfer.from_location_id} "
            f"(Transfer #{transfer.id})"
        ),
        actor=actor,
        approved_by_id=actor.id,
        stock_level=levels[dest_key],
    )

    transfer.completed_by_id = actor.id
    transfer.completed_at = utcnow()


def _transition(transfer_id: int, new_status, actor: Actor | None) -> InventoryTransfer:
    actor = require_actor(actor)
    transfer = _load_transfer(transfer_id, lock=True)
    target = require_transfer_transition(transfer, new_status)

    if target == TransferStatus.COMPLETED:
        _complete(transfer, actor)

    transfer.status = target.value
    db.session.flush()
    return transfer


@ledger_operation("set_transfer_status")
def set_transfer_status(transfer_id: int, new_status, actor: Actor | None) -> InventoryTransfer:
    """
    Move a transfer through its lifecycle.

    Only the move into Completed touches the ledger. A failed completion
    (e.g. source depleted since creation) leaves the transfer in its prior
    status with no adjustments written.
    """
    return _transition(transfer_id, new_status, actor)


@ledger_operation("complete_transfer")
def complete_transfer(transfer_id: int, actor: Actor | None) -> InventoryTransfer:
    """Complete a Pending or InTransit transfer. Completing twice is rejected."""
    return _transition(transfer_id, TransferStatus.COMPLETED, actor)


@ledger_operation("delete_transfer")
def delete_transfer(transfer_id: int, actor: Actor | None) -> int:
    """Discard a transfer that never moved stock."""
    require_actor(actor)
    transfer = _load_transfer(transfer_id, lock=True)
    if not is_transfer_editable(transfer):
        raise InvalidTransition(f"Cannot delete transfer in {transfer.status} status", transfer_id=transfer_id)
    db.session.delete(transfer)
    db.session.flush()
    return transfer_id


def get_transfer(transfer_id: int) -> InventoryTransfer:
    return _load_transfer(transfer_id)


def list_transfers(*, status: str | None = None) -> list[InventoryTransfer]:
    q = db.session.query(InventoryTransfer)
    if status is not None:
        q = q.filter(InventoryTransfer.status == status)
    return q.order_by(InventoryTransfer.transfer_date.desc(), InventoryTransfer.id.desc()).all()
