from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StoreLocation(db.Model):
    """
    Physical store or warehouse holding stock.

    Read-only for the ledger engine: locations are created by the
    location management collaborator and only referenced here.
    """
    __tablename__ = "store_locations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<StoreLocation id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryItem(db.Model):
    """
    Catalog item grouping one or more sellable variations.

    BUNDLES: an item flagged is_bundle=True has no authoritative stock rows of
    its own. Its availability is derived from BundleComponent rows.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_bundle", "is_bundle"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_bundle = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variations = db.relationship(
        "InventoryVariation",
        back_populates="item",
        lazy=True,
        order_by="InventoryVariation.id",
    )
    bundle_components = db.relationship(
        "BundleComponent",
        back_populates="bundle_item",
        lazy=True,
        order_by="BundleComponent.display_order",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} is_bundle={self.is_bundle}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_bundle": self.is_bundle,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryVariation(db.Model):
    """Sellable SKU belonging to an item. Never mutated by the ledger engine."""
    __tablename__ = "inventory_variations"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_inventory_variations_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents
    selling_price_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("InventoryItem", back_populates="variations")

    def __repr__(self) -> str:
        return f"<InventoryVariation id={self.id} sku={self.sku!r} item_id={self.item_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "sku": self.sku,
            "name": self.name,
            "selling_price_cents": self.selling_price_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Staff(db.Model):
    """
    Staff member read model used for adjustment attribution.

    Owned by the authentication collaborator. The ledger engine only reads it,
    e.g. to find the system actor for order-driven bundle deductions.
    """
    __tablename__ = "staff"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    role = db.Column(db.String(32), nullable=False, default="staff", index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Staff id={self.id} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
