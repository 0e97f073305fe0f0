from __future__ import annotations

import enum

from sqlalchemy import event

from ..errors import ConsistencyViolation
from ..extensions import db
from ..time_utils import to_utc_z


class AuditStatus(str, enum.Enum):
    PENDING = "Pending"
    RESOLVED = "Resolved"


class TransferStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_TRANSIT = "InTransit"
    COMPLETED = "Completed"


class InventoryStockLevel(db.Model):
    """
    Ledger row: authoritative stock count for one (variation, location) pair.

    INVARIANTS:
    - Exactly one row per (variation_id, location_id).
    - Created lazily the first time stock is recorded for the pair.
    - stock >= 0 is enforced by deduction paths, not by the schema, so that
      pre-existing negative data can still be corrected by an audit.
    - stock == initial stock + SUM(change_amount) of the pair's adjustments.

    CONCURRENCY: rows are read with SELECT ... FOR UPDATE and carry an
    optimistic version_id so a lost update raises StaleDataError.
    """
    __tablename__ = "inventory_stock_levels"
    __table_args__ = (
        db.UniqueConstraint("variation_id", "location_id", name="uq_stock_levels_variation_location"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variation_id = db.Column(db.Integer, db.ForeignKey("inventory_variations.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("store_locations.id"), nullable=False, index=True)

    stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variation = db.relationship("InventoryVariation", backref=db.backref("stock_levels", lazy=True))
    location = db.relationship("StoreLocation")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryStockLevel variation_id={self.variation_id} "
            f"location_id={self.location_id} stock={self.stock}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variation_id": self.variation_id,
            "location_id": self.location_id,
            "stock": self.stock,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryAdjustment(db.Model):
    """
    Append-only record of one stock mutation.

    Every path that changes InventoryStockLevel.stock writes exactly one row
    here in the same transaction. Rows are never updated or deleted; the
    mapper events below refuse both.
    """
    __tablename__ = "inventory_adjustments"
    __table_args__ = (
        db.CheckConstraint(
            "stock_after = stock_before + change_amount",
            name="ck_inventory_adjustments_stock_after",
        ),
        db.Index("ix_inventory_adjustments_variation_location", "variation_id", "location_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    variation_id = db.Column(db.Integer, db.ForeignKey("inventory_variations.id"), nullable=False)
    location_id = db.Column(db.Integer, db.ForeignKey("store_locations.id"), nullable=False)

    change_amount = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(500), nullable=False)

    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    # Actor ids come from the auth collaborator
    adjusted_by_id = db.Column(db.Integer, nullable=False, index=True)
    approved_by_id = db.Column(db.Integer, nullable=True)
    approved = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    item = db.relationship("InventoryItem")
    variation = db.relationship("InventoryVariation")
    location = db.relationship("StoreLocation")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "variation_id": self.variation_id,
            "location_id": self.location_id,
            "change_amount": self.change_amount,
            "reason": self.reason,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "adjusted_by_id": self.adjusted_by_id,
            "approved_by_id": self.approved_by_id,
            "approved": self.approved,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(InventoryAdjustment, "before_update")
def _refuse_adjustment_update(mapper, connection, target):
    raise ConsistencyViolation(f"Inventory adjustment {target.id} is immutable")


@event.listens_for(InventoryAdjustment, "before_delete")
def _refuse_adjustment_delete(mapper, connection, target):
    raise ConsistencyViolation(f"Inventory adjustment {target.id} cannot be deleted")


class InventoryAudit(db.Model):
    """
    Physical count reconciliation task.

    LIFECYCLE: Pending -> Resolved (terminal).
    recorded_stock is a snapshot taken at creation and is never re-read;
    discrepancy = actual_stock - recorded_stock.
    """
    __tablename__ = "inventory_audits"
    __table_args__ = (
        db.Index("ix_inventory_audits_location_status", "location_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    variation_id = db.Column(db.Integer, db.ForeignKey("inventory_variations.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("store_locations.id"), nullable=False)

    recorded_stock = db.Column(db.Integer, nullable=False)
    actual_stock = db.Column(db.Integer, nullable=False)
    discrepancy = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=AuditStatus.PENDING.value, index=True)

    audited_by_id = db.Column(db.Integer, nullable=False)
    resolved_by_id = db.Column(db.Integer, nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    adjustment_id = db.Column(db.Integer, db.ForeignKey("inventory_adjustments.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    item = db.relationship("InventoryItem")
    variation = db.relationship("InventoryVariation")
    location = db.relationship("StoreLocation")
    adjustment = db.relationship("InventoryAdjustment")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "variation_id": self.variation_id,
            "location_id": self.location_id,
            "recorded_stock": self.recorded_stock,
            "actual_stock": self.actual_stock,
            "discrepancy": self.discrepancy,
            "status": self.status,
            "audited_by_id": self.audited_by_id,
            "resolved_by_id": self.resolved_by_id,
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
            "adjustment_id": self.adjustment_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class InventoryTransfer(db.Model):
    """
    Movement of one variation between two locations.

    LIFECYCLE:
    1. Pending: created, stock still belongs to the source location
    2. InTransit: shipped, stock still counted at the source
    3. Completed: stock moved (terminal, immutable)

    Only the transition into Completed touches the ledger.
    """
    __tablename__ = "inventory_transfers"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_inventory_transfers_quantity"),
        db.CheckConstraint("from_location_id <> to_location_id", name="ck_inventory_transfers_locations"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    variation_id = db.Column(db.Integer, db.ForeignKey("inventory_variations.id"), nullable=False, index=True)
    from_location_id = db.Column(db.Integer, db.ForeignKey("store_locations.id"), nullable=False, index=True)
    to_location_id = db.Column(db.Integer, db.ForeignKey("store_locations.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=TransferStatus.PENDING.value, index=True)

    transfer_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_by_id = db.Column(db.Integer, nullable=False)
    completed_by_id = db.Column(db.Integer, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    item = db.relationship("InventoryItem")
    variation = db.relationship("InventoryVariation")
    from_location = db.relationship("StoreLocation", foreign_keys=[from_location_id])
    to_location = db.relationship("StoreLocation", foreign_keys=[to_location_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "variation_id": self.variation_id,
            "from_location_id": self.from_location_id,
            "to_location_id": self.to_location_id,
            "quantity": self.quantity,
            "status": self.status,
            "transfer_date": to_utc_z(self.transfer_date),
            "created_by_id": self.created_by_id,
            "completed_by_id": self.completed_by_id,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "version_id": self.version_id,
        }


class BundleComponent(db.Model):
    """
    Composition edge: one component variation of a bundle item.

    Components are ordinary variations; bundles do not nest.
    """
    __tablename__ = "bundle_components"
    __table_args__ = (
        db.UniqueConstraint("bundle_item_id", "component_variation_id", name="uq_bundle_components_bundle_variation"),
        db.CheckConstraint("quantity >= 1", name="ck_bundle_components_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bundle_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    component_variation_id = db.Column(db.Integer, db.ForeignKey("inventory_variations.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_highlight = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bundle_item = db.relationship("InventoryItem", back_populates="bundle_components")
    component_variation = db.relationship("InventoryVariation")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bundle_item_id": self.bundle_item_id,
            "component_variation_id": self.component_variation_id,
            "quantity": self.quantity,
            "display_order": self.display_order,
            "is_highlight": self.is_highlight,
        }
