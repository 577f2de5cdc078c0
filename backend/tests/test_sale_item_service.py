from datetime import datetime
from decimal import Decimal

import pytest

from stockpost.models import Sale, SaleItem
from stockpost.services import sale_item_service
from stockpost.validation import ValidationError


@pytest.fixture
def sale(db_session, company, buyer):
    sale = Sale(user_id=buyer.id, company_id=company.id)
    db_session.add(sale)
    db_session.commit()
    return sale


def test_normalize_service_line_drops_variant(service):
    line = sale_item_service.normalize_item({
        "item_type": "service",
        "service_id": service.id,
        "variant_id": "ignored000",
        "quantity": "2",
        "unit_price": "10",
    })
    assert line == {
        "item_type": "service",
        "service_id": service.id,
        "variant_id": None,
        "quantity": 2,
        "unit_price": Decimal("10.00"),
        "discount": Decimal("0.00"),
    }


@pytest.mark.parametrize(
    "raw",
    [
        {"item_type": "bundle", "service_id": "x"},
        {"item_type": "service"},
        {"item_type": "product"},
        {"item_type": "product", "variant_id": "v", "quantity": 0},
        {"item_type": "product", "variant_id": "v", "unit_price": "-1"},
        {"item_type": "product", "variant_id": "v", "discount": 101},
        "not-a-dict",
    ],
)
def test_normalize_rejects_invalid_lines(raw):
    with pytest.raises(ValidationError):
        sale_item_service.normalize_item(raw)


def test_create_items_is_all_or_nothing(db_session, sale, service, variant):
    with pytest.raises(ValidationError):
        sale_item_service.create_items(sale.id, [
            {"item_type": "service", "service_id": service.id, "unit_price": 5},
            {"item_type": "product", "unit_price": 5},
        ])
    assert db_session.query(SaleItem).count() == 0


def test_list_items_puts_services_before_products(db_session, sale, service, variant):
    product_line = SaleItem(
        sale_id=sale.id, item_type="product", variant_id=variant.id, quantity=1, unit_price=Decimal("1.00"),
        created_at=datetime(2026, 1, 1, 8, 0, 0),
    )
    late_service = SaleItem(
        sale_id=sale.id, item_type="service", service_id=service.id, quantity=1, unit_price=Decimal("1.00"),
        created_at=datetime(2026, 1, 1, 10, 0, 0),
    )
    early_service = SaleItem(
        sale_id=sale.id, item_type="service", service_id=service.id, quantity=1, unit_price=Decimal("1.00"),
        created_at=datetime(2026, 1, 1, 9, 0, 0),
    )
    db_session.add_all([product_line, late_service, early_service])
    db_session.commit()

    ids = [item.id for item in sale_item_service.list_items(sale.id)]
    assert ids == [early_service.id, late_service.id, product_line.id]


def test_product_id_is_derived_from_variant(db_session, sale, variant, product):
    created = sale_item_service.create_items(sale.id, [
        {"item_type": "product", "variant_id": variant.id, "quantity": 1, "unit_price": 3},
    ])
    assert created[0].product_id == product.id


def test_delete_item_and_delete_for_sale(db_session, sale, service):
    items = sale_item_service.create_items(sale.id, [
        {"item_type": "service", "service_id": service.id, "unit_price": 5},
        {"item_type": "service", "service_id": service.id, "unit_price": 6},
        {"item_type": "service", "service_id": service.id, "unit_price": 7},
    ])

    first_id = items[0].id
    assert sale_item_service.delete_item(first_id) is True
    assert sale_item_service.delete_item(first_id) is False
    assert sale_item_service.get_item(first_id) is None

    assert sale_item_service.delete_items_for_sale(sale.id) == 2
    assert sale_item_service.list_items(sale.id) == []
