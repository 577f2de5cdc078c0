"""
Pytest fixtures for stockpost backend tests.

Provides test database setup, tenant fixtures, catalog/variant/stock
factories and a test client with company context headers.
"""

from decimal import Decimal

import pytest
from sqlalchemy import text

from stockpost import create_app
from stockpost.extensions import db
from stockpost.models import (
    CatalogVariant,
    Company,
    CompanyAppointment,
    CompanyProduct,
    CompanyService,
    StockLot,
    User,
)
from stockpost.services import variant_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STOCK_ENFORCEMENT': 'lenient',
    })

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


@pytest.fixture(scope='function')
def company(db_session):
    """Company A (first tenant)."""
    company = Company(name="Company A - Glow Salon")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def other_company(db_session):
    """Company B (second tenant)."""
    company = Company(name="Company B - Beta Spa")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def buyer(db_session):
    user = User(first_name="Ada", last_name="Buyer", email="ada@example.com", phone="555-0101")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def supplier(db_session):
    user = User(first_name="Sid", last_name="Supplier", email="sid@example.com", phone="555-0202")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def product(db_session, company):
    product = CompanyProduct(company_id=company.id, name="Shampoo", description="Salon shampoo", unit="bottle")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def catalog_variants(db_session):
    """Three catalog entries: 250ml, 500ml, 1l."""
    entries = [
        CatalogVariant(name="250ml", sku="SHP-250"),
        CatalogVariant(name="500ml", sku="SHP-500"),
        CatalogVariant(name="1l", sku="SHP-1000"),
    ]
    db_session.add_all(entries)
    db_session.commit()
    return entries


@pytest.fixture(scope='function')
def variant(db_session, product, catalog_variants):
    """First (and therefore default) variant of the product."""
    return variant_service.create_variant(
        company_product_id=product.id,
        system_product_variant_id=catalog_variants[0].id,
        type="product",
    )


@pytest.fixture(scope='function')
def service(db_session, company):
    service = CompanyService(company_id=company.id, name="Haircut", description="Wash and cut", price=25)
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def make_lot(db_session):
    """Factory inserting a lot directly (bypasses intake so the pointer stays untouched)."""
    def _make(variant_id, quantity, purchase_date=None, *, cost_price=Decimal("1.00"), is_active=True, created_at=None):
        lot = StockLot(
            variant_id=variant_id,
            quantity=quantity,
            cost_price=cost_price,
            purchase_date=purchase_date,
            is_active=is_active,
        )
        if created_at is not None:
            lot.created_at = created_at
        db_session.add(lot)
        db_session.commit()
        return lot

    return _make


@pytest.fixture(scope='function')
def headers(company, buyer):
    """Company context headers as forwarded by the auth gateway."""
    return {
        "X-Company-Id": company.id,
        "X-User-Id": buyer.id,
        "X-User-Role": "admin",
    }


@pytest.fixture(scope='function')
def foreign_variant(db_session, other_company, catalog_variants):
    """A variant owned by Company B."""
    product = CompanyProduct(company_id=other_company.id, name="Conditioner")
    db_session.add(product)
    db_session.commit()
    return variant_service.create_variant(
        company_product_id=product.id,
        system_product_variant_id=catalog_variants[0].id,
        type="product",
    )


@pytest.fixture(scope='function')
def foreign_service(db_session, other_company):
    """A service owned by Company B."""
    service = CompanyService(company_id=other_company.id, name="Massage", price=60)
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def appointment(db_session, company, buyer, service):
    """An unpaid appointment of Company A."""
    appointment = CompanyAppointment(
        company_id=company.id, user_id=buyer.id, service_id=service.id, space_id="chair00001",
    )
    db_session.add(appointment)
    db_session.commit()
    return appointment


@pytest.fixture(scope='function')
def foreign_keys_off(db_session):
    """Legacy data written before SQLite enforced foreign keys."""
    db_session.commit()
    db_session.execute(text("PRAGMA foreign_keys=OFF"))
    db_session.commit()
    yield db_session
    db_session.rollback()
    db_session.execute(text("PRAGMA foreign_keys=ON"))
    db_session.commit()
