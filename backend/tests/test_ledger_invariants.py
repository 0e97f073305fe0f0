"""
Ledger invariant tests.

Verifies:
- Live stock equals the fold of its adjustment log after mixed operations
- Adjustments are append-only (no update, no delete)
- The stock_after arithmetic is enforced by the schema
- Failed operations commit nothing and never raise across the boundary
- Concurrency conflicts are retried
"""

import pytest
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from stockledger.errors import ConsistencyViolation, OPERATION_FAILED, ValidationFailed
from stockledger.models import InventoryAdjustment, InventoryStockLevel
from stockledger.services import audit_service, bundle_service, ledger_service, transfer_service
from stockledger.services.concurrency import run_with_retry
from stockledger.services.results import ledger_operation


def _fold(db_session, variation_id, location_id):
    rows = (
        db_session.query(InventoryAdjustment)
        .filter_by(variation_id=variation_id, location_id=location_id)
        .order_by(InventoryAdjustment.id)
        .all()
    )
    return rows[0].stock_before + sum(r.change_amount for r in rows)


class TestFoldEquivalence:

    def test_every_ledger_row_matches_its_log(self, db_session, actor, make_variation, loc_a, loc_b, seed_stock):
        shampoo = make_variation("Shampoo")
        conditioner = make_variation("Conditioner")
        seed_stock(shampoo, loc_a, 20)
        seed_stock(conditioner, loc_a, 9)

        transfer = transfer_service.create_transfer(
            shampoo.item_id, shampoo.id, loc_a.id, loc_b.id, 6, actor
        ).unwrap()
        transfer_service.complete_transfer(transfer.id, actor).unwrap()

        audit = audit_service.create_audit(conditioner.item_id, conditioner.id, loc_a.id, 7, actor).unwrap()
        audit_service.resolve_audit(audit.id, actor).unwrap()

        ledger_service.apply_adjustment(shampoo.id, loc_b.id, -2, "Damaged", actor).unwrap()

        bundle = bundle_service.create_bundle("Kit", actor).unwrap()
        kit = bundle_service.create_bundle_variation(
            bundle.id, "KIT-1", "Kit", 1500, actor,
            components=[{"component_variation_id": shampoo.id}, {"component_variation_id": conditioner.id}],
        ).unwrap()
        bundle_service.deduct_bundle_stock(kit.id, 3, loc_a.id, "ORD-1", actor).unwrap()

        levels = db_session.query(InventoryStockLevel).all()
        assert levels
        for level in levels:
            assert level.stock == _fold(db_session, level.variation_id, level.location_id)
        assert ledger_service.verify_ledger() == []

        assert ledger_service.get_stock(shampoo.id, loc_a.id) == 20 - 6 - 3
        assert ledger_service.get_stock(shampoo.id, loc_b.id) == 6 - 2
        assert ledger_service.get_stock(conditioner.id, loc_a.id) == 7 - 3

    def test_every_adjustment_is_internally_consistent(self, db_session, actor, variation, loc_a, seed_stock):
        seed_stock(variation, loc_a, 3)
        ledger_service.apply_adjustment(variation.id, loc_a.id, -3, "Sold out", actor).unwrap()

        for adj in db_session.query(InventoryAdjustment).all():
            assert adj.stock_after == adj.stock_before + adj.change_amount


class TestAppendOnly:

    def test_adjustment_cannot_be_updated(self, db_session, variation, loc_a, seed_stock):
        applied = seed_stock(variation, loc_a, 5)
        adjustment = db_session.get(InventoryAdjustment, applied.adjustment_id)

        adjustment.reason = "Rewritten history"
        with pytest.raises(ConsistencyViolation):
            db_session.flush()
        db_session.rollback()

        assert db_session.get(InventoryAdjustment, applied.adjustment_id).reason == "Initial stock"

    def test_adjustment_cannot_be_deleted(self, db_session, variation, loc_a, seed_stock):
        applied = seed_stock(variation, loc_a, 5)
        adjustment = db_session.get(InventoryAdjustment, applied.adjustment_id)

        db_session.delete(adjustment)
        with pytest.raises(ConsistencyViolation):
            db_session.flush()
        db_session.rollback()

        assert db_session.query(InventoryAdjustment).count() == 1

    def test_schema_rejects_inconsistent_arithmetic(self, db_session, actor, variation, loc_a):
        db_session.add(InventoryAdjustment(
            item_id=variation.item_id,
            variation_id=variation.id,
            location_id=loc_a.id,
            change_amount=5,
            reason="Bad math",
            stock_before=0,
            stock_after=4,
            adjusted_by_id=actor.id,
        ))
        with pytest.raises(IntegrityError):
            db_session.flush()
        db_session.rollback()


class TestOperationBoundary:

    def test_consistency_violation_is_reported_as_operation_failed(self, app, db_session, variation, loc_a):
        @ledger_operation("drifted_check")
        def drifted_check():
            raise ConsistencyViolation("ledger row drifted", variation_id=variation.id)

        result = drifted_check()

        assert not result.ok
        assert result.code == OPERATION_FAILED
        assert "drifted" not in result.message

    def test_unexpected_error_rolls_back_partial_writes(self, app, db_session, actor, variation, loc_a):
        @ledger_operation("half_done")
        def half_done():
            ledger_service.post_adjustment(
                variation_id=variation.id,
                location_id=loc_a.id,
                change_amount=4,
                reason="Partial",
                actor=actor,
            )
            raise RuntimeError("boom")

        result = half_done()

        assert result.code == OPERATION_FAILED
        assert db_session.query(InventoryAdjustment).count() == 0
        assert ledger_service.get_stock(variation.id, loc_a.id) == 0

    def test_business_error_keeps_its_code(self, app, db_session):
        @ledger_operation("validate", mutating=False)
        def validate():
            raise ValidationFailed("bad input", field="quantity")

        result = validate()

        assert result.code == ValidationFailed.code
        assert result.details == {"field": "quantity"}
        with pytest.raises(RuntimeError):
            result.unwrap()

    def test_raw_function_is_exposed(self):
        assert ledger_service.apply_adjustment.raw.__name__ == "apply_adjustment"


class TestRetry:

    def test_stale_data_is_retried(self, app, db_session):
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise StaleDataError("version mismatch")
            return "done"

        assert run_with_retry(flaky, attempts=3, backoff_base=0) == "done"
        assert calls["n"] == 3

    def test_gives_up_after_attempts(self, app, db_session):
        def always_stale():
            raise StaleDataError("version mismatch")

        with pytest.raises(StaleDataError):
            run_with_retry(always_stale, attempts=2, backoff_base=0)

    def test_other_errors_are_not_retried(self, app, db_session):
        calls = {"n": 0}

        def broken():
            calls["n"] += 1
            raise ValueError("nope")

        with pytest.raises(ValueError):
            run_with_retry(broken, attempts=3, backoff_base=0)
        assert calls["n"] == 1

    def test_adjustment_count_matches_changes(self, db_session, actor, variation, loc_a):
        for qty in (3, -1, 2):
            ledger_service.apply_adjustment(variation.id, loc_a.id, qty, "Move", actor).unwrap()

        total = db_session.query(func.count(InventoryAdjustment.id)).scalar()
        assert total == 3
