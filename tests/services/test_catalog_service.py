"""
Tests for CatalogService: categories and suppliers.

Covers:
- Category name uniqueness, colour validation and parent cycles
- Category deletion reassigns products and is blocked by subcategories
- Supplier code generation and uniqueness
- Supplier deletion blocked by products
- Running supplier performance
"""

import logging
from decimal import Decimal

import pytest

from stock_kernel.exceptions import (
    DuplicateNameError,
    EntityReferencedError,
    ValidationError,
)
from stock_kernel.models.catalog import SupplierStatus


class TestCategories:
    def test_create_with_defaults(self, catalog_service, test_actor_id):
        category = catalog_service.create_category("Hardware", test_actor_id)

        assert category.name == "Hardware"
        assert category.color.startswith("bg-")
        assert category.parent_id is None

    def test_creation_logged_at_info(self, catalog_service, test_actor_id, captured_logs):
        root = logging.getLogger("stock_kernel")
        previous = root.level
        root.setLevel(logging.INFO)
        try:
            category = catalog_service.create_category("Beverages", test_actor_id)
        finally:
            root.setLevel(previous)

        (record,) = [r for r in captured_logs() if r["message"] == "category_created"]
        assert record["category_id"] == str(category.id)
        assert record["category_name"] == "Beverages"

    def test_duplicate_name(self, catalog_service, test_actor_id):
        catalog_service.create_category("Tools", test_actor_id)
        with pytest.raises(DuplicateNameError):
            catalog_service.create_category(" Tools ", test_actor_id)

    def test_bad_colour(self, catalog_service, test_actor_id):
        with pytest.raises(ValidationError):
            catalog_service.create_category("Paint", test_actor_id, color="red")

    def test_parent_cycle_refused(self, catalog_service, test_actor_id):
        root = catalog_service.create_category("Root", test_actor_id)
        child = catalog_service.create_category("Child", test_actor_id, parent_id=root.id)

        with pytest.raises(ValidationError):
            catalog_service.update_category(root.id, test_actor_id, parent_id=child.id)

    def test_delete_reassigns_products(self, catalog_service, create_product,
                                       product_service, test_actor_id, test_owner_id):
        old = catalog_service.create_category("Old", test_actor_id)
        new = catalog_service.create_category("New", test_actor_id)
        product = create_product(category_id=old.id)

        moved = catalog_service.delete_category(old.id, test_actor_id, reassign_to=new.id)

        assert moved == 1
        assert product_service.get_product(test_owner_id, product.id).category_id == new.id

    def test_delete_without_target_uncategorises(self, catalog_service, create_product,
                                                 product_service, test_actor_id,
                                                 test_owner_id):
        category = catalog_service.create_category("Gone", test_actor_id)
        product = create_product(category_id=category.id)

        catalog_service.delete_category(category.id, test_actor_id)

        assert product_service.get_product(test_owner_id, product.id).category_id is None

    def test_delete_blocked_by_children(self, catalog_service, test_actor_id):
        parent = catalog_service.create_category("Parent", test_actor_id)
        catalog_service.create_category("Kid", test_actor_id, parent_id=parent.id)

        with pytest.raises(EntityReferencedError) as exc_info:
            catalog_service.delete_category(parent.id, test_actor_id)

        assert exc_info.value.count == 1


class TestSuppliers:
    def test_generated_code(self, catalog_service, test_actor_id):
        supplier = catalog_service.create_supplier("Acme", test_actor_id)

        assert supplier.code.startswith("SUP-240101-")
        assert supplier.status is SupplierStatus.ACTIVE
        assert supplier.lead_time_days == 7

    def test_duplicate_code(self, catalog_service, test_actor_id):
        catalog_service.create_supplier("Acme", test_actor_id, code="ACME")
        with pytest.raises(DuplicateNameError):
            catalog_service.create_supplier("Other", test_actor_id, code="ACME")

    def test_delete_blocked_by_products(self, catalog_service, create_product, test_actor_id):
        supplier = catalog_service.create_supplier("Busy", test_actor_id)
        create_product(supplier_id=supplier.id)

        with pytest.raises(EntityReferencedError):
            catalog_service.delete_supplier(supplier.id, test_actor_id)

    def test_rating_range(self, catalog_service, test_actor_id):
        supplier = catalog_service.create_supplier("Rated", test_actor_id)

        assert catalog_service.update_supplier(
            supplier.id, test_actor_id, rating="4.5"
        ).rating == Decimal("4.5")
        with pytest.raises(ValidationError):
            catalog_service.update_supplier(supplier.id, test_actor_id, rating=6)

    def test_order_performance(self, catalog_service, test_actor_id):
        supplier = catalog_service.create_supplier("Perf", test_actor_id)

        catalog_service.record_supplier_order(
            supplier.id, test_actor_id, on_time=True, quality_rating=90, response_time_hours=4
        )
        info = catalog_service.record_supplier_order(
            supplier.id, test_actor_id, on_time=False, quality_rating=80
        )

        assert info.total_orders == 2
        assert info.on_time_deliveries == 1
        assert info.delivery_performance == Decimal("50.00")
        assert info.quality_score == Decimal("85.00")
        # the order without a response time contributes the current mean
        assert info.response_time_hours == Decimal("4.00")

    def test_quality_out_of_range(self, catalog_service, test_actor_id):
        supplier = catalog_service.create_supplier("Bad", test_actor_id)
        with pytest.raises(ValidationError):
            catalog_service.record_supplier_order(
                supplier.id, test_actor_id, on_time=True, quality_rating=101
            )
