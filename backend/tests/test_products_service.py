"""
Product CRUD tests.

Verifies:
- a patch that overlaps a stock movement is rejected as a conflict
- constraint failures are reported for what they are
"""

import pytest

from app.errors import ConflictError
from app.extensions import db
from app.models import Product
from app.services import inventory_service, products_service
from tests.conftest import stock_of


class TestUpdateProduct:

    def test_price_change(self, make_product):
        product = make_product(price_cents=10000)
        updated = products_service.update_product(product.id, patch={"price_cents": 12000})
        assert updated.price_cents == 12000

    def test_patch_overlapping_stock_movement_conflicts(self, make_product):
        product = make_product(price_cents=10000, stock=10)
        loaded = products_service.get_product(product.id)
        assert loaded.version_id == 1

        # A sale reserves stock between the read and the write
        inventory_service.reserve_stock(product.id, 1)

        with pytest.raises(ConflictError) as exc_info:
            products_service.update_product(product.id, patch={"price_cents": 12000})

        assert exc_info.value.details == {"product_id": product.id}
        assert products_service.get_product(product.id).price_cents == 10000
        assert stock_of(product) == 10

    def test_retry_after_conflict_succeeds(self, make_product):
        product = make_product(price_cents=10000, stock=10)
        assert products_service.get_product(product.id).version_id == 1
        inventory_service.reserve_stock(product.id, 1)
        with pytest.raises(ConflictError):
            products_service.update_product(product.id, patch={"is_active": False})

        updated = products_service.update_product(product.id, patch={"is_active": False})
        assert updated.is_active is False

    def test_duplicate_sku(self, make_product):
        make_product(sku="RICE-5KG")
        other = make_product(sku="RICE-10KG")

        with pytest.raises(ConflictError) as exc_info:
            products_service.update_product(other.id, patch={"sku": "RICE-5KG"})

        assert exc_info.value.message == "SKU already exists"


class TestCreateProduct:

    def test_opening_stock(self, supplier, db_session):
        product = products_service.create_product(
            patch={"name": "Soap", "price_cents": 4500, "supplier_id": supplier.id, "stock_quantity": 12}
        )
        assert product.stock_quantity == 12
        assert product.low_stock_threshold == 10

    def test_duplicate_sku(self, make_product, supplier):
        make_product(sku="SOAP-1")
        with pytest.raises(ConflictError) as exc_info:
            products_service.create_product(
                patch={"sku": "SOAP-1", "name": "Soap", "price_cents": 4500, "supplier_id": supplier.id}
            )
        assert exc_info.value.message == "SKU already exists"

    def test_check_constraint_is_not_reported_as_sku(self, supplier, db_session):
        with pytest.raises(ConflictError) as exc_info:
            products_service.create_product(
                patch={"sku": "NEG-1", "name": "Broken", "price_cents": -1, "supplier_id": supplier.id}
            )

        assert exc_info.value.message == "Product violates a database constraint"
        assert db.session.query(Product).count() == 0
