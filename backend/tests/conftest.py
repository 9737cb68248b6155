"""
Pytest fixtures for the retail backend tests.

Provides test database setup, supplier/user/product factories, and test client.
"""

from datetime import datetime

import pytest
from sqlalchemy import update

from app import create_app
from app.config import TestConfig
from app.extensions import db
from app.models import Product, Sale, SaleLine, Supplier, User
from app.services.inventory_service import get_stock


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def supplier(db_session):
    s = Supplier(company_name="Acme Wholesale", contact_email="orders@acme.test")
    db_session.add(s)
    db_session.commit()
    return s


def _make_user(db_session, username: str, role: str) -> User:
    user = User(username=username, email=f"{username}@retail.test", role=role)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def cashier(db_session):
    return _make_user(db_session, "cashier", "staff")


@pytest.fixture(scope='function')
def supplier_user(db_session):
    return _make_user(db_session, "vendor", "supplier")


@pytest.fixture(scope='function')
def make_product(db_session, supplier):
    """Factory: make_product(price_cents=10000, stock=10, **fields)."""
    counter = {"n": 0}

    def _make(price_cents: int = 10000, stock: int = 10, **fields) -> Product:
        counter["n"] += 1
        product = Product(
            sku=fields.pop("sku", f"SKU-{counter['n']:03d}"),
            name=fields.pop("name", f"Product {counter['n']}"),
            price_cents=price_cents,
            stock_quantity=stock,
            supplier_id=supplier.id,
            **fields,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_sale_record(db_session, cashier):
    """
    Factory that persists a sale row directly (no stock movement), for
    reporting tests that need exact totals and timestamps.

    make_sale_record(lines=[(product, qty, unit_price_cents)], created_at=..., is_void=False,
                     subtotal_cents=None, tax_cents=None)
    """
    counter = {"n": 0}

    def _make(*, lines=(), created_at: datetime, is_void: bool = False,
              subtotal_cents: int | None = None, tax_cents: int | None = None) -> Sale:
        counter["n"] += 1
        sale_lines = [
            SaleLine(
                line_number=i,
                product_id=product.id,
                quantity=qty,
                unit_price_cents=unit,
                line_total_cents=unit * qty,
            )
            for i, (product, qty, unit) in enumerate(lines, start=1)
        ]
        if subtotal_cents is None:
            subtotal_cents = sum(line.line_total_cents for line in sale_lines)
        if tax_cents is None:
            tax_cents = (subtotal_cents * 1200 + 5000) // 10000
        sale = Sale(
            sale_number=f"SALE-{created_at:%Y%m%d}-{counter['n']:04d}",
            subtotal_cents=subtotal_cents,
            tax_cents=tax_cents,
            discount_cents=0,
            total_cents=subtotal_cents + tax_cents,
            payment_method="cash",
            is_void=is_void,
            voided_at=created_at if is_void else None,
            voided_by_user_id=cashier.id if is_void else None,
            cashier_id=cashier.id,
            created_at=created_at,
            lines=sale_lines,
        )
        db_session.add(sale)
        db_session.commit()
        return sale

    return _make


def backdate(sale: Sale, created_at: datetime) -> None:
    """Move a sale's timestamp (tests only; sales are otherwise immutable)."""
    db.session.execute(
        update(Sale)
        .where(Sale.id == sale.id)
        .values(created_at=created_at)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


def stock_of(product: Product) -> int:
    return get_stock(product.id)


def actor_headers(user: User) -> dict:
    """Helper to create the upstream auth header."""
    return {'X-User-Id': str(user.id)}
