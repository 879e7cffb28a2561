"""
Tests for ProductService.

Covers:
- Creation with initial stock routed through the ledger
- Validation: thresholds, SKU uniqueness, references, money fields
- Updates that refuse direct quantity writes
- Deletion keeps ledger rows and drops the aggregate entry
- Ratings
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.movements import MovementType
from stock_kernel.domain.stock_state import ProductStatus, StockStatus
from stock_kernel.exceptions import (
    CategoryNotFoundError,
    DuplicateSkuError,
    ProductNotFoundError,
    StockThresholdError,
    SupplierNotFoundError,
    ValidationError,
)


class TestCreateProduct:
    def test_initial_stock_is_a_ledger_receipt(self, create_product, movement_selector,
                                               stock_service, test_owner_id):
        product = create_product(quantity=25, cost=Decimal("4.00"))

        assert product.quantity == 25
        assert product.stock_status is StockStatus.IN_STOCK
        (movement,) = movement_selector.history(product.id)
        assert movement.movement_type is MovementType.IN
        assert movement.reason == "Initial stock"
        assert movement.unit_cost == Decimal("4.00")
        entry = stock_service.get_inventory(test_owner_id).snapshot.require_entry(product.id)
        assert entry.quantity == 25

    def test_zero_quantity_writes_no_movement(self, create_product, movement_selector):
        product = create_product(quantity=0)

        assert movement_selector.history(product.id) == []
        assert product.stock_status is StockStatus.OUT_OF_STOCK
        assert product.needs_reorder is True

    def test_inverted_thresholds(self, create_product):
        with pytest.raises(StockThresholdError):
            create_product(min_stock=50, max_stock=10)

    def test_duplicate_sku_per_owner(self, create_product, other_owner_id):
        create_product(sku="DUP-1")

        with pytest.raises(DuplicateSkuError):
            create_product(sku="DUP-1")

        # another owner may reuse it
        assert create_product(sku="DUP-1", owner_id=other_owner_id).sku == "DUP-1"

    def test_unknown_category(self, create_product):
        with pytest.raises(CategoryNotFoundError):
            create_product(category_id=uuid4())

    def test_unknown_supplier(self, create_product):
        with pytest.raises(SupplierNotFoundError):
            create_product(supplier_id=uuid4())

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"name": " "}, "name"),
            ({"sku": " "}, "sku"),
            ({"price": Decimal("-1")}, "price"),
            ({"cost": Decimal("-0.01")}, "cost"),
            ({"quantity": -1}, "quantity"),
        ],
    )
    def test_invalid_input(self, product_service, test_owner_id, kwargs, field):
        args = {"name": "Widget", "sku": "W-1", "price": Decimal("1")}
        args.update(kwargs)

        with pytest.raises(ValidationError) as exc_info:
            product_service.create_product(test_owner_id, **args)

        assert exc_info.value.field == field


class TestUpdateProduct:
    def test_quantity_cannot_be_written(self, create_product, product_service, test_owner_id):
        product = create_product(quantity=5)

        with pytest.raises(ValidationError) as exc_info:
            product_service.update_product(test_owner_id, product.id, quantity=500)

        assert exc_info.value.field == "quantity"
        assert product_service.get_product(test_owner_id, product.id).quantity == 5

    def test_unknown_field(self, create_product, product_service, test_owner_id):
        product = create_product()
        with pytest.raises(ValidationError):
            product_service.update_product(test_owner_id, product.id, colour="red")

    def test_price_and_status(self, create_product, product_service, test_owner_id):
        product = create_product(quantity=5)

        info = product_service.update_product(
            test_owner_id, product.id, price="12.50", status="discontinued"
        )

        assert info.price == Decimal("12.50")
        assert info.status is ProductStatus.DISCONTINUED
        assert info.needs_reorder is False

    def test_threshold_checked_against_stored_values(self, create_product, product_service,
                                                     test_owner_id):
        product = create_product(min_stock=10, max_stock=100)
        with pytest.raises(StockThresholdError):
            product_service.update_product(test_owner_id, product.id, min_stock=200)

    def test_sku_collision(self, create_product, product_service, test_owner_id):
        create_product(sku="A-1")
        product = create_product(sku="B-1")
        with pytest.raises(DuplicateSkuError):
            product_service.update_product(test_owner_id, product.id, sku="A-1")


class TestDeleteProduct:
    def test_ledger_retained_and_entry_dropped(self, create_product, product_service,
                                               stock_service, movement_selector,
                                               test_owner_id):
        product = create_product(quantity=10)

        product_service.delete_product(test_owner_id, product.id)

        with pytest.raises(ProductNotFoundError):
            product_service.get_product(test_owner_id, product.id)
        assert len(movement_selector.history(product.id)) == 1
        view = stock_service.get_inventory(test_owner_id)
        assert view.entries == ()
        assert view.statistics.total_products == 0


class TestRateProduct:
    def test_running_average(self, create_product, product_service, test_owner_id):
        product = create_product()
        product_service.rate_product(test_owner_id, product.id, 5)
        product_service.rate_product(test_owner_id, product.id, 4)

        info = product_service.rate_product(test_owner_id, product.id, 4)

        assert info.rating_count == 3
        assert info.total_rating == 13
        assert info.avg_rating == Decimal("4.33")

    @pytest.mark.parametrize("rating", [0, 6, 3.5])
    def test_out_of_range(self, create_product, product_service, test_owner_id, rating):
        product = create_product()
        with pytest.raises(ValidationError):
            product_service.rate_product(test_owner_id, product.id, rating)
