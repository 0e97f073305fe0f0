# backend/stockledger/services/audit_service.py
"""
Physical stock audit (reconciliation) service.

WHY: Staff periodically count what is physically on the shelf. An audit
records the count next to the stock the system showed at that moment and
keeps the discrepancy until a manager resolves it.

LIFECYCLE:
1. Pending: audit created; actual_stock may be revised, ledger untouched
2. Resolved: discrepancy posted to the ledger as one adjustment (terminal)

NOTE: resolution applies the discrepancy captured against the creation-time
snapshot to the *live* stock. If stock moved between creation and
resolution, the correction is relative to the old snapshot. This is the
documented behavior; the adjustment row records both values for review.
"""
from __future__ import annotations

from ..extensions import db
from ..errors import InvalidTransition, NotFound, ValidationFailed
from ..models import AuditStatus, InventoryAudit
from ..time_utils import utcnow
from .actor_service import Actor, require_actor
from .concurrency import lock_for_update
from .ledger_service import get_location, get_stock, get_variation, lock_stock_level, post_adjustment
from .lifecycle_service import is_audit_editable, require_audit_transition
from .results import ledger_operation


def _validate_count(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailed(f"{field} must be an integer")
    return value


def _load_audit(audit_id: int, *, lock: bool = False) -> InventoryAudit:
    query = db.session.query(InventoryAudit).filter_by(id=audit_id)
    if lock:
        query = lock_for_update(query)
    audit = query.first()
    if audit is None:
        raise NotFound(f"Audit {audit_id} not found", audit_id=audit_id)
    return audit


@ledger_operation("create_audit")
def create_audit(
    item_id: int,
    variation_id: int,
    location_id: int,
    actual_stock: int,
    actor: Actor | None,
    recorded_stock: int | None = None,
) -> InventoryAudit:
    """
    Record a physical count (status: Pending).

    recorded_stock is the value staff saw when counting; when omitted the
    live ledger value is snapshotted. The ledger is not touched.
    """
    actor = require_actor(actor)
    actual_stock = _validate_count(actual_stock, "actual_stock")
    if actual_stock < 0:
        raise ValidationFailed("actual_stock cannot be negative")

    variation = get_variation(variation_id)
    if variation.item_id != item_id:
        raise ValidationFailed(f"Variation {variation_id} does not belong to item {item_id}")
    get_location(location_id)

    if recorded_stock is None:
        recorded_stock = get_stock(variation_id, location_id)
    recorded_stock = _validate_count(recorded_stock, "recorded_stock")

    audit = InventoryAudit(
        item_id=item_id,
        variation_id=variation_id,
        location_id=location_id,
        recorded_stock=recorded_stock,
        actual_stock=actual_stock,
        discrepancy=actual_stock - recorded_stock,
        status=AuditStatus.PENDING.value,
        audited_by_id=actor.id,
    )
    db.session.add(audit)
    db.session.flush()
    return audit


@ledger_operation("update_audit")
def update_audit(audit_id: int, actual_stock: int, actor: Actor | None) -> InventoryAudit:
    """Revise the physical count of a Pending audit against its original snapshot."""
    require_actor(actor)
    actual_stock = _validate_count(actual_stock, "actual_stock")
    if actual_stock < 0:
        raise ValidationFailed("actual_stock cannot be negative")

    audit = _load_audit(audit_id, lock=True)
    if not is_audit_editable(audit):
        raise InvalidTransition(f"Cannot edit audit in {audit.status} status", audit_id=audit_id)

    audit.actual_stock = actual_stock
    audit.discrepancy = actual_stock - audit.recorded_stock
    db.session.flush()
    return audit


@ledger_operation("resolve_audit")
def resolve_audit(audit_id: int, actor: Actor | None) -> InventoryAudit:
    """
    Post the audit discrepancy to the ledger (Pending -> Resolved).

    Writes exactly one auto-approved adjustment, reason
    "Adjustment from audit #<id>", even for a zero discrepancy.
    """
    actor = require_actor(actor)
    audit = _load_audit(audit_id, lock=True)
    target = require_audit_transition(audit, AuditStatus.RESOLVED)

    stock_level = lock_stock_level(audit.variation_id, audit.location_id, create=False)
    if stock_level is None:
        raise NotFound(
            f"No stock record for variation {audit.variation_id} at location {audit.location_id}",
            audit_id=audit_id,
        )

    _, adjustment = post_adjustment(
        variation_id=audit.variation_id,
        location_id=audit.location_id,
        change_amount=audit.discrepancy,
        reason=f"Adjustment from audit #{audit.id}",
        actor=actor,
        enforce_non_negative=False,
        approved_by_id=actor.id,
        stock_level=stock_level,
    )

    audit.status = target.value
    audit.resolved_by_id = actor.id
    audit.resolved_at = utcnow()
    audit.adjustment_id = adjustment.id
    db.session.flush()
    return audit


@ledger_operation("delete_audit")
def delete_audit(audit_id: int, actor: Actor | None) -> int:
    """Discard a Pending audit. Resolved audits are permanent evidence."""
    require_actor(actor)
    audit = _load_audit(audit_id, lock=True)
    if not is_audit_editable(audit):
        raise InvalidTransition(f"Cannot delete audit in {audit.status} status", audit_id=audit_id)
    db.session.delete(audit)
    db.session.flush()
    return audit_id


def get_audit(audit_id: int) -> InventoryAudit:
    return _load_audit(audit_id)


def list_audits(*, status: str | None = None, location_id: int | None = None) -> list[InventoryAudit]:
    q = db.session.query(InventoryAudit)
    if status is not None:
        q = q.filter(InventoryAudit.status == status)
    if location_id is not None:
        q = q.filter(InventoryAudit.location_id == location_id)
    return q.order_by(InventoryAudit.created_at.desc(), InventoryAudit.id.desc()).all()
