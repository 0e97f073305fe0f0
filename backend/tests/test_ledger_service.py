"""
Stock ledger primitive tests.

Verifies:
- Every applied change writes one adjustment with consistent arithmetic
- Deductions never take stock below zero
- Rejections leave the ledger untouched
- Pagination and fold verification
"""

import pytest
from sqlalchemy import update

from stockledger.errors import InsufficientStock, NotFound, Unauthenticated, ValidationFailed
from stockledger.models import InventoryAdjustment, InventoryStockLevel
from stockledger.services import ledger_service


def _adjustments(db_session, variation, location):
    return (
        db_session.query(InventoryAdjustment)
        .filter_by(variation_id=variation.id, location_id=location.id)
        .order_by(InventoryAdjustment.id)
        .all()
    )


class TestApplyAdjustment:

    def test_receiving_creates_ledger_row_and_adjustment(self, db_session, actor, variation, loc_a):
        result = ledger_service.apply_adjustment(variation.id, loc_a.id, 12, "Received PO 7", actor)

        assert result.ok
        assert result.value.new_stock == 12
        assert ledger_service.get_stock(variation.id, loc_a.id) == 12

        rows = _adjustments(db_session, variation, loc_a)
        assert len(rows) == 1
        adj = rows[0]
        assert adj.id == result.value.adjustment_id
        assert (adj.stock_before, adj.change_amount, adj.stock_after) == (0, 12, 12)
        assert adj.reason == "Received PO 7"
        assert adj.adjusted_by_id == actor.id
        assert adj.approved is True
        assert adj.item_id == variation.item_id

    def test_deduction_within_stock(self, db_session, actor, variation, loc_a, seed_stock):
        seed_stock(variation, loc_a, 5)

        result = ledger_service.apply_adjustment(variation.id, loc_a.id, -3, "Damaged", actor)

        assert result.ok
        assert result.value.new_stock == 2
        last = _adjustments(db_session, variation, loc_a)[-1]
        assert (last.stock_before, last.change_amount, last.stock_after) == (5, -3, 2)

    def test_deduction_below_zero_is_rejected_without_writes(self, db_session, actor, variation, loc_a, seed_stock):
        seed_stock(variation, loc_a, 2)

        result = ledger_service.apply_adjustment(variation.id, loc_a.id, -3, "Shrink", actor)

        assert not result.ok
        assert result.code == InsufficientStock.code
        assert result.details["available"] == 2
        assert result.details["requested"] == 3
        assert ledger_service.get_stock(variation.id, loc_a.id) == 2
        assert len(_adjustments(db_session, variation, loc_a)) == 1

    def test_deduction_from_missing_row_is_rejected(self, db_session, actor, variation, loc_a):
        result = ledger_service.apply_adjustment(variation.id, loc_a.id, -1, "Shrink", actor)

        assert result.code == InsufficientStock.code
        assert db_session.query(InventoryStockLevel).count() == 0

    def test_negative_allowed_when_not_enforced(self, db_session, actor, variation, loc_a):
        result = ledger_service.apply_adjustment(
            variation.id, loc_a.id, -4, "Oversold correction", actor, enforce_non_negative=False
        )

        assert result.ok
        assert result.value.new_stock == -4

    def test_zero_change_is_rejected(self, db_session, actor, variation, loc_a):
        result = ledger_service.apply_adjustment(variation.id, loc_a.id, 0, "Nothing", actor)
        assert result.code == ValidationFailed.code

    def test_blank_reason_is_rejected(self, db_session, actor, variation, loc_a):
        result = ledger_service.apply_adjustment(variation.id, loc_a.id, 1, "   ", actor)
        assert result.code == ValidationFailed.code
        assert db_session.query(InventoryAdjustment).count() == 0

    def test_overlong_reason_is_rejected(self, db_session, actor, variation, loc_a):
        reason = "x" * (ledger_service.MAX_REASON_LENGTH + 1)
        result = ledger_service.apply_adjustment(variation.id, loc_a.id, 1, reason, actor)
        assert result.code == ValidationFailed.code

    def test_non_integer_change_is_rejected(self, db_session, actor, variation, loc_a):
        result = ledger_service.apply_adjustment(variation.id, loc_a.id, 1.5, "Half", actor)
        assert result.code == ValidationFailed.code

    def test_unknown_variation(self, db_session, actor, loc_a):
        result = ledger_service.apply_adjustment(999999, loc_a.id, 1, "Ghost", actor)
        assert result.code == NotFound.code

    def test_unknown_location(self, db_session, actor, variation):
        result = ledger_service.apply_adjustment(variation.id, 999999, 1, "Ghost", actor)
        assert result.code == NotFound.code

    def test_requires_actor(self, db_session, variation, loc_a):
        result = ledger_service.apply_adjustment(variation.id, loc_a.id, 1, "Anonymous", None)
        assert result.code == Unauthenticated.code
        assert db_session.query(InventoryAdjustment).count() == 0


class TestReads:

    def test_get_stock_defaults_to_zero(self, db_session, variation, loc_a):
        assert ledger_service.get_stock(variation.id, loc_a.id) == 0

    def test_stock_levels_per_location(self, db_session, variation, loc_a, loc_b, seed_stock):
        seed_stock(variation, loc_b, 3)
        seed_stock(variation, loc_a, 8)

        levels = ledger_service.get_stock_levels(variation.id)

        assert [(lvl.location_id, lvl.stock) for lvl in levels] == [(loc_a.id, 8), (loc_b.id, 3)]

    def test_list_adjustments_paginates_newest_first(self, db_session, actor, variation, loc_a):
        for qty in (1, 2, 3, 4, 5):
            assert ledger_service.apply_adjustment(variation.id, loc_a.id, qty, f"Receive {qty}", actor).ok

        page = ledger_service.list_adjustments(page=1, limit=2)

        assert page["pagination"] == {"total": 5, "page": 1, "limit": 2, "total_pages": 3}
        assert [a["change_amount"] for a in page["adjustments"]] == [5, 4]

        last = ledger_service.list_adjustments(page=3, limit=2)
        assert [a["change_amount"] for a in last["adjustments"]] == [1]

    def test_list_adjustments_filters(self, db_session, variation, loc_a, loc_b, seed_stock):
        seed_stock(variation, loc_a, 1)
        seed_stock(variation, loc_b, 2)

        page = ledger_service.list_adjustments(location_id=loc_b.id)

        assert page["pagination"]["total"] == 1
        assert page["adjustments"][0]["location_id"] == loc_b.id

    def test_get_adjustment_not_found(self, db_session):
        with pytest.raises(NotFound) as exc:
            ledger_service.get_adjustment(424242)
        assert exc.value.details["adjustment_id"] == 424242


class TestVerifyLedger:

    def test_consistent_after_operations(self, db_session, actor, variation, loc_a, seed_stock):
        seed_stock(variation, loc_a, 10)
        ledger_service.apply_adjustment(variation.id, loc_a.id, -4, "Sold", actor)
        ledger_service.apply_adjustment(variation.id, loc_a.id, 7, "Received", actor)

        assert ledger_service.verify_ledger() == []

    def test_detects_drift(self, db_session, variation, loc_a, seed_stock):
        seed_stock(variation, loc_a, 10)
        db_session.execute(
            update(InventoryStockLevel)
            .where(InventoryStockLevel.variation_id == variation.id)
            .values(stock=99)
        )
        db_session.commit()

        problems = ledger_service.verify_ledger()

        assert len(problems) == 1
        assert problems[0]["kind"] == "drift"
        assert problems[0]["expected_stock"] == 10
        assert problems[0]["live_stock"] == 99


class TestDeductStockForOrder:

    def test_draws_from_largest_stock_first(self, db_session, actor, variation, loc_a, loc_b, seed_stock):
        seed_stock(variation, loc_a, 3)
        seed_stock(variation, loc_b, 5)

        deductions = ledger_service.deduct_stock_for_order(variation.id, 6, "ORD-55").unwrap()

        assert [(d.location_id, d.quantity) for d in deductions] == [(loc_b.id, 5), (loc_a.id, 1)]
        assert ledger_service.get_stock(variation.id, loc_a.id) == 2
        assert ledger_service.get_stock(variation.id, loc_b.id) == 0

        for d in deductions:
            adjustment = db_session.get(InventoryAdjustment, d.adjustment_id)
            assert adjustment.reason == "Order completion - Order ID: ORD-55"
            assert adjustment.adjusted_by_id == actor.id
            assert adjustment.change_amount == -d.quantity

    def test_ties_prefer_lowest_location_id(self, db_session, variation, loc_a, loc_b, seed_stock):
        seed_stock(variation, loc_b, 4)
        seed_stock(variation, loc_a, 4)

        deductions = ledger_service.deduct_stock_for_order(variation.id, 3, "ORD-56").unwrap()

        assert [(d.location_id, d.quantity) for d in deductions] == [(min(loc_a.id, loc_b.id), 3)]

    def test_skips_empty_and_negative_locations(self, db_session, actor, variation, loc_a, loc_b, seed_stock):
        seed_stock(variation, loc_b, 2)
        ledger_service.apply_adjustment(
            variation.id, loc_a.id, -1, "Oversold", actor, enforce_non_negative=False
        ).unwrap()

        deductions = ledger_service.deduct_stock_for_order(variation.id, 2, "ORD-57").unwrap()

        assert [(d.location_id, d.quantity) for d in deductions] == [(loc_b.id, 2)]
        assert ledger_service.get_stock(variation.id, loc_a.id) == -1

    def test_shortfall_changes_nothing(self, db_session, variation, loc_a, loc_b, seed_stock):
        seed_stock(variation, loc_a, 2)
        seed_stock(variation, loc_b, 3)

        result = ledger_service.deduct_stock_for_order(variation.id, 6, "ORD-58")

        assert result.code == InsufficientStock.code
        assert result.details["available"] == 5
        assert ledger_service.get_stock(variation.id, loc_a.id) == 2
        assert ledger_service.get_stock(variation.id, loc_b.id) == 3
        assert db_session.query(InventoryAdjustment).count() == 2

    @pytest.mark.parametrize("quantity", [0, -3, True, 1.5])
    def test_quantity_must_be_positive_integer(self, db_session, admin, variation, quantity):
        result = ledger_service.deduct_stock_for_order(variation.id, quantity, "ORD-59")
        assert result.code == ValidationFailed.code

    def test_requires_system_admin(self, db_session, admin, variation, loc_a, seed_stock):
        seed_stock(variation, loc_a, 4)
        admin.is_active = False
        db_session.commit()

        result = ledger_service.deduct_stock_for_order(variation.id, 1, "ORD-60")

        assert result.code == NotFound.code
        assert ledger_service.get_stock(variation.id, loc_a.id) == 4

    def test_bundle_variation_is_rejected(self, db_session, actor):
        from stockledger.services import bundle_service

        bundle = bundle_service.create_bundle("Kit", actor).unwrap()
        kit = bundle_service.create_bundle_variation(bundle.id, "KIT-ORD", "Kit", 100, actor).unwrap()

        assert ledger_service.deduct_stock_for_order(kit.id, 1, "ORD-61").code == ValidationFailed.code
