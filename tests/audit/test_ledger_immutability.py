"""
Append-only stock ledger tests.

Verifies:
- StockMovement rows cannot be updated or deleted through the ORM
- Corrections are new movements and the replay still matches
- Listeners can be removed and restored (tests only)
"""

import pytest
from sqlalchemy import select

from stock_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.models.stock_movement import StockMovement


@pytest.fixture
def movement(create_product, session):
    product = create_product(quantity=20)
    return session.execute(
        select(StockMovement).where(StockMovement.product_id == product.id)
    ).scalar_one()


class TestLedgerImmutability:
    def test_update_blocked(self, movement, session):
        movement_id = str(movement.id)
        movement.quantity = 999

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "StockMovement"
        assert exc_info.value.entity_id == movement_id

    def test_delete_blocked(self, movement, session):
        session.delete(movement)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_logged(self, movement, session, captured_logs):
        movement.reason = "rewritten"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        (record,) = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert record["operation"] == "UPDATE"
        assert record["fields"] == ["reason"]

    def test_correction_is_a_new_movement(self, movement, stock_service, movement_selector,
                                          test_owner_id):
        stock_service.adjust_stock(test_owner_id, movement.product_id, 18, reason="Count")

        (adjustment, original) = movement_selector.history(movement.product_id)
        assert adjustment.quantity == -2
        assert original.quantity == 20
        assert movement_selector.verify_product(movement.product_id).is_consistent


def test_listeners_can_be_restored(movement, session):
    unregister_immutability_listeners()
    try:
        movement.notes = "allowed while unregistered"
        session.flush()
    finally:
        register_immutability_listeners()

    movement.notes = "blocked again"
    with pytest.raises(ImmutabilityViolationError):
        session.flush()
