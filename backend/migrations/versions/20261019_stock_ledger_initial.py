"""Stock ledger initial schema: catalog read models, ledger, audits, transfers, bundles

Revision ID: 20261019_stock_ledger_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_stock_ledger_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=nullable)


def upgrade():
    op.create_table(
        "store_locations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "staff",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_staff_role", "staff", ["role"], unique=False)

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_bundle", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_items_bundle", "inventory_items", ["is_bundle"], unique=False)

    op.create_table(
        "inventory_variations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("selling_price_cents", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku", name="uq_inventory_variations_sku"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_variations_item_id", "inventory_variations", ["item_id"], unique=False)

    op.create_table(
        "inventory_stock_levels",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("variation_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["variation_id"], ["inventory_variations.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["store_locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("variation_id", "location_id", name="uq_stock_levels_variation_location"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_stock_levels_variation_id", "inventory_stock_levels", ["variation_id"], unique=False)
    op.create_index("ix_inventory_stock_levels_location_id", "inventory_stock_levels", ["location_id"], unique=False)

    op.create_table(
        "inventory_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("variation_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("change_amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False),
        sa.Column("stock_before", sa.Integer(), nullable=False),
        sa.Column("stock_after", sa.Integer(), nullable=False),
        sa.Column("adjusted_by_id", sa.Integer(), nullable=False),
        sa.Column("approved_by_id", sa.Integer(), nullable=True),
        sa.Column("approved", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("stock_after = stock_before + change_amount", name="ck_inventory_adjustments_stock_after"),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["variation_id"], ["inventory_variations.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["store_locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_adjustments_item_id", "inventory_adjustments", ["item_id"], unique=False)
    op.create_index("ix_inventory_adjustments_adjusted_by_id", "inventory_adjustments", ["adjusted_by_id"], unique=False)
    op.create_index("ix_inventory_adjustments_created_at", "inventory_adjustments", ["created_at"], unique=False)
    op.create_index(
        "ix_inventory_adjustments_variation_location",
        "inventory_adjustments",
        ["variation_id", "location_id"],
        unique=False,
    )

    op.create_table(
        "inventory_audits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("variation_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("recorded_stock", sa.Integer(), nullable=False),
        sa.Column("actual_stock", sa.Integer(), nullable=False),
        sa.Column("discrepancy", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("audited_by_id", sa.Integer(), nullable=False),
        sa.Column("resolved_by_id", sa.Integer(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("adjustment_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["variation_id"], ["inventory_variations.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["store_locations.id"]),
        sa.ForeignKeyConstraint(["adjustment_id"], ["inventory_adjustments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_audits_item_id", "inventory_audits", ["item_id"], unique=False)
    op.create_index("ix_inventory_audits_variation_id", "inventory_audits", ["variation_id"], unique=False)
    op.create_index("ix_inventory_audits_status", "inventory_audits", ["status"], unique=False)
    op.create_index("ix_inventory_audits_location_status", "inventory_audits", ["location_id", "status"], unique=False)

    op.create_table(
        "inventory_transfers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("variation_id", sa.Integer(), nullable=False),
        sa.Column("from_location_id", sa.Integer(), nullable=False),
        sa.Column("to_location_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        _timestamp("transfer_date"),
        sa.Column("created_by_id", sa.Integer(), nullable=False),
        sa.Column("completed_by_id", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_inventory_transfers_quantity"),
        sa.CheckConstraint("from_location_id <> to_location_id", name="ck_inventory_transfers_locations"),
        sa.ForeignKeyConstraint(["item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["variation_id"], ["inventory_variations.id"]),
        sa.ForeignKeyConstraint(["from_location_id"], ["store_locations.id"]),
        sa.ForeignKeyConstraint(["to_location_id"], ["store_locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    for column in ("item_id", "variation_id", "from_location_id", "to_location_id", "status"):
        op.create_index(f"ix_inventory_transfers_{column}", "inventory_transfers", [column], unique=False)

    op.create_table(
        "bundle_components",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bundle_item_id", sa.Integer(), nullable=False),
        sa.Column("component_variation_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_highlight", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("quantity >= 1", name="ck_bundle_components_quantity"),
        sa.ForeignKeyConstraint(["bundle_item_id"], ["inventory_items.id"]),
        sa.ForeignKeyConstraint(["component_variation_id"], ["inventory_variations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bundle_item_id", "component_variation_id", name="uq_bundle_components_bundle_variation"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_bundle_components_bundle_item_id", "bundle_components", ["bundle_item_id"], unique=False)
    op.create_index(
        "ix_bundle_components_component_variation_id",
        "bundle_components",
        ["component_variation_id"],
        unique=False,
    )


def downgrade():
    op.drop_table("bundle_components")
    op.drop_table("inventory_transfers")
    op.drop_table("inventory_audits")
    op.drop_table("inventory_adjustments")
    op.drop_table("inventory_stock_levels")
    op.drop_table("inventory_variations")
    op.drop_table("inventory_items")
    op.drop_table("staff")
    op.drop_table("store_locations")
