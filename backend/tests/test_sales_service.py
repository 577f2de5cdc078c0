"""
Sale ledger tests: atomic creation, FIFO deduction through sales, stock
enforcement modes, recalculation, deletion, enrichment and listing.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from stockpost.models import CompanyAppointment, CompanyClient, Sale, SaleItem, StockLot, User, Variant
from stockpost.services import sales_service, stock_service
from stockpost.services.sales_service import InsufficientStockError
from stockpost.time_utils import utcnow
from stockpost.validation import ConflictError, NotFoundError, ValidationError


def _round_trip_sale(buyer, company, service, variant, **extra):
    return sales_service.create_sale(
        user_id=buyer.id,
        company_id=company.id,
        services_used=[{"service_id": service.id, "quantity": 2, "unit_price": 10, "discount": 0}],
        products_used=[{"variant_id": variant.id, "quantity": 3, "unit_price": 5, "discount": 10}],
        **extra,
    )


class TestCreateSale:
    def test_round_trip_totals(self, db_session, company, buyer, service, variant):
        sale = _round_trip_sale(buyer, company, service, variant)

        assert sale.subtotal == Decimal("35.00")
        assert sale.discount_amount == Decimal("1.50")
        assert sale.total_amount == Decimal("33.50")

        fetched = sales_service.get_sale(sale.id)
        assert sum(item.quantity * item.unit_price for item in fetched.items) == Decimal("35.00")
        assert fetched.total_amount == fetched.subtotal - fetched.discount_amount

        data = fetched.to_dict()
        assert data["total_amount"] == "33.50"
        assert [i["item_type"] for i in data["items"]] == ["service", "product"]
        assert data["services_used"][0]["service_id"] == service.id
        assert data["products_used"][0]["variant_id"] == variant.id
        assert data["user_name"] == "Ada Buyer"
        assert data["company_name"] == company.name

    def test_sale_deducts_stock_fifo(self, db_session, company, buyer, variant, make_lot):
        l1 = make_lot(variant.id, 5, date(2026, 1, 1))
        l2 = make_lot(variant.id, 5, date(2026, 2, 1))

        sales_service.create_sale(
            user_id=buyer.id,
            company_id=company.id,
            products_used=[{"variant_id": variant.id, "quantity": 7, "unit_price": 2}],
        )

        db_session.expire_all()
        assert db_session.get(StockLot, l1.id).quantity == 0
        assert db_session.get(StockLot, l2.id).quantity == 3

    def test_sale_without_lots_still_commits(self, db_session, company, buyer, variant):
        sale = sales_service.create_sale(
            user_id=buyer.id,
            company_id=company.id,
            products_used=[{"variant_id": variant.id, "quantity": 2, "unit_price": 4}],
        )
        assert sales_service.get_sale(sale.id) is not None
        assert stock_service.get_total_available(variant.id) == 0

    def test_lenient_oversell_commits_and_floors_lots(self, db_session, company, buyer, variant, make_lot, caplog):
        lot = make_lot(variant.id, 2, date(2026, 1, 1))

        sale = sales_service.create_sale(
            user_id=buyer.id,
            company_id=company.id,
            products_used=[{"variant_id": variant.id, "quantity": 5, "unit_price": 1}],
        )

        assert sales_service.get_sale(sale.id) is not None
        db_session.expire_all()
        assert db_session.get(StockLot, lot.id).quantity == 0
        assert "oversold" in caplog.text

    def test_empty_sale_has_zero_totals(self, db_session, company, buyer):
        sale = sales_service.create_sale(user_id=buyer.id, company_id=company.id)
        assert sale.total_amount == Decimal("0.00")
        assert sale.to_dict()["items"] == []

    def test_supplied_totals_are_checked_not_trusted(self, db_session, company, buyer, service, variant, caplog):
        sale = _round_trip_sale(buyer, company, service, variant, total_amount="99.99", subtotal="35")
        assert sale.total_amount == Decimal("33.50")
        assert "total_amount" in caplog.text
        assert "differs from computed" in caplog.text

    @pytest.mark.parametrize("missing", ["user_id", "company_id"])
    def test_requires_user_and_company(self, db_session, company, buyer, missing):
        kwargs = {"user_id": buyer.id, "company_id": company.id}
        kwargs[missing] = None
        with pytest.raises(ValidationError):
            sales_service.create_sale(**kwargs)
        assert db_session.query(Sale).count() == 0

    def test_unknown_buyer_rejected(self, db_session, company):
        with pytest.raises(ValidationError):
            sales_service.create_sale(user_id="missing000", company_id=company.id)
        assert db_session.query(Sale).count() == 0

    def test_invalid_line_writes_nothing(self, db_session, company, buyer, service, variant, make_lot):
        lot = make_lot(variant.id, 5)
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                user_id=buyer.id,
                company_id=company.id,
                services_used=[{"service_id": service.id, "unit_price": 1}],
                products_used=[{"quantity": 1, "unit_price": 1}],
            )
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        db_session.expire_all()
        assert db_session.get(StockLot, lot.id).quantity == 5

    def test_foreign_variant_line_is_not_found(self, db_session, company, buyer, foreign_variant, make_lot):
        foreign_lot = make_lot(foreign_variant.id, 10)
        with pytest.raises(NotFoundError, match="Variant not found"):
            sales_service.create_sale(
                user_id=buyer.id,
                company_id=company.id,
                products_used=[{"variant_id": foreign_variant.id, "quantity": 4, "unit_price": 1}],
            )
        assert db_session.query(Sale).count() == 0
        db_session.expire_all()
        assert db_session.get(StockLot, foreign_lot.id).quantity == 10

    def test_foreign_service_line_is_not_found(self, db_session, company, buyer, foreign_service):
        with pytest.raises(NotFoundError, match="Service not found"):
            sales_service.create_sale(
                user_id=buyer.id,
                company_id=company.id,
                services_used=[{"service_id": foreign_service.id, "quantity": 1, "unit_price": 60}],
            )
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    @pytest.mark.parametrize("field, line", [
        ("services_used", {"service_id": "nosuch0000", "unit_price": 1}),
        ("products_used", {"variant_id": "nosuch0000", "unit_price": 1}),
    ])
    def test_unknown_line_reference_is_not_found(self, db_session, company, buyer, field, line):
        with pytest.raises(NotFoundError, match="nosuch0000"):
            sales_service.create_sale(user_id=buyer.id, company_id=company.id, **{field: [line]})
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_foreign_keys_are_enforced(self, db_session):
        assert db_session.execute(text("PRAGMA foreign_keys")).scalar() == 1
        db_session.add(SaleItem(
            sale_id="nosale0000", item_type="product", variant_id="nosuch0000", quantity=1, unit_price=1,
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestStrictEnforcement:
    def test_shortage_rolls_back_everything(self, db_session, company, buyer, variant, make_lot):
        lot = make_lot(variant.id, 5, date(2026, 1, 1))

        # Two lines for the same variant: each fits alone, together they do not
        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.create_sale(
                user_id=buyer.id,
                company_id=company.id,
                products_used=[
                    {"variant_id": variant.id, "quantity": 3, "unit_price": 1},
                    {"variant_id": variant.id, "quantity": 3, "unit_price": 1},
                ],
                stock_enforcement="strict",
            )

        assert exc_info.value.details["items"] == [
            {"variant_id": variant.id, "requested_quantity": 6, "on_hand": 5}
        ]
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(CompanyClient).count() == 0
        db_session.expire_all()
        assert db_session.get(StockLot, lot.id).quantity == 5

    def test_sufficient_stock_posts(self, db_session, company, buyer, variant, make_lot):
        lot = make_lot(variant.id, 5)
        sales_service.create_sale(
            user_id=buyer.id,
            company_id=company.id,
            products_used=[{"variant_id": variant.id, "quantity": 5, "unit_price": 1}],
            stock_enforcement="strict",
        )
        db_session.expire_all()
        assert db_session.get(StockLot, lot.id).quantity == 0

    def test_unknown_mode_rejected(self, db_session, company, buyer):
        with pytest.raises(ValueError):
            sales_service.create_sale(user_id=buyer.id, company_id=company.id, stock_enforcement="sometimes")


class TestClientTracking:
    def test_sales_accumulate_on_client_row(self, db_session, company, buyer, service, variant):
        _round_trip_sale(buyer, company, service, variant)
        _round_trip_sale(buyer, company, service, variant)

        db_session.expire_all()
        client = db_session.query(CompanyClient).filter_by(company_id=company.id, user_id=buyer.id).one()
        assert client.total_sales == 2
        assert client.total_spent == Decimal("67.00")
        assert client.total_appointments == 0
        assert client.first_interaction_date == utcnow().date()

    def test_tracking_failure_does_not_undo_sale(self, db_session, company, buyer, service, variant, monkeypatch, caplog):
        def _boom(*args, **kwargs):
            raise RuntimeError("tracking store offline")

        monkeypatch.setattr(sales_service, "record_interaction", _boom)

        sale = _round_trip_sale(buyer, company, service, variant)

        assert sales_service.get_sale(sale.id) is not None
        assert db_session.query(SaleItem).filter_by(sale_id=sale.id).count() == 2
        assert db_session.query(CompanyClient).count() == 0
        assert "Failed to record client interaction" in caplog.text


class TestDeleteSaleItem:
    def test_delete_item_recalculates_totals(self, db_session, company, buyer, service, variant):
        sale = _round_trip_sale(buyer, company, service, variant)
        product_line = next(i for i in sale.items if i.item_type == "product")
        product_line_id = product_line.id

        updated = sales_service.delete_sale_item(sale.id, product_line_id)

        assert updated.subtotal == Decimal("20.00")
        assert updated.discount_amount == Decimal("0.00")
        assert updated.total_amount == Decimal("20.00")
        assert [i.item_type for i in updated.items] == ["service"]

    def test_second_delete_is_not_found(self, db_session, company, buyer, service, variant):
        sale = _round_trip_sale(buyer, company, service, variant)
        sale_id = sale.id
        item_id = sale.items[0].id

        sales_service.delete_sale_item(sale_id, item_id)
        with pytest.raises(NotFoundError):
            sales_service.delete_sale_item(sale_id, item_id)

        db_session.expire_all()
        assert db_session.get(Sale, sale_id).total_amount == Decimal("13.50")

    def test_item_of_another_sale_is_not_found(self, db_session, company, buyer, service, variant):
        first = _round_trip_sale(buyer, company, service, variant)
        second = _round_trip_sale(buyer, company, service, variant)
        foreign_item_id = second.items[0].id

        with pytest.raises(NotFoundError):
            sales_service.delete_sale_item(first.id, foreign_item_id)
        assert db_session.query(SaleItem).count() == 4

    def test_unknown_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.delete_sale_item("missing000", "missing000")

    def test_recalculate_unknown_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.recalculate_totals("missing000")

    def test_stock_is_not_restored(self, db_session, company, buyer, variant, make_lot):
        lot = make_lot(variant.id, 5)
        sale = sales_service.create_sale(
            user_id=buyer.id,
            company_id=company.id,
            products_used=[{"variant_id": variant.id, "quantity": 2, "unit_price": 1}],
        )
        sales_service.delete_sale_item(sale.id, sale.items[0].id)
        db_session.expire_all()
        assert db_session.get(StockLot, lot.id).quantity == 3


class TestDeleteSale:
    def test_delete_sale_removes_items_then_header(self, db_session, company, buyer, service, variant):
        sale_id = _round_trip_sale(buyer, company, service, variant).id

        assert sales_service.delete_sale(sale_id) is True
        assert sales_service.get_sale(sale_id) is None
        assert db_session.query(SaleItem).filter_by(sale_id=sale_id).count() == 0

        assert sales_service.delete_sale(sale_id) is False

    def test_missing_header_rolls_back_item_delete(self, foreign_keys_off, company, buyer, service):
        db_session = foreign_keys_off
        # Orphaned lines for a sale id with no header row
        db_session.add(SaleItem(
            sale_id="ghost00000", item_type="service", service_id=service.id, quantity=1, unit_price=Decimal("1.00"),
        ))
        db_session.commit()

        assert sales_service.delete_sale("ghost00000") is False
        assert db_session.query(SaleItem).filter_by(sale_id="ghost00000").count() == 1


class TestAppointmentLink:
    def test_sale_settles_appointment(self, db_session, company, buyer, service, appointment):
        sale = sales_service.create_sale(
            user_id=buyer.id,
            company_id=company.id,
            appointment_id=appointment.id,
            services_used=[{"service_id": service.id, "unit_price": 25}],
        )

        data = sales_service.get_sale(sale.id).to_dict()
        assert data["appointment_id"] == appointment.id
        assert data["appointment_service_id"] == service.id
        assert data["space_id"] == "chair00001"
        assert sales_service.get_sale_by_appointment(appointment.id).id == sale.id

    def test_sale_without_appointment(self, db_session, company, buyer, appointment):
        sale = sales_service.create_sale(user_id=buyer.id, company_id=company.id)

        data = sale.to_dict()
        assert data["appointment_id"] is None
        assert data["space_id"] is None
        assert sales_service.get_sale_by_appointment(appointment.id) is None
        assert sales_service.get_sale_by_appointment("nosuch0000") is None

    def test_foreign_appointment_is_not_found(self, db_session, company, other_company, buyer, appointment):
        with pytest.raises(NotFoundError, match="Appointment not found"):
            sales_service.create_sale(user_id=buyer.id, company_id=other_company.id, appointment_id=appointment.id)
        assert db_session.query(Sale).count() == 0

    def test_appointment_settles_only_once(self, db_session, company, buyer, appointment):
        first = sales_service.create_sale(user_id=buyer.id, company_id=company.id, appointment_id=appointment.id)

        with pytest.raises(ConflictError):
            sales_service.create_sale(user_id=buyer.id, company_id=company.id, appointment_id=appointment.id)
        assert db_session.query(Sale).count() == 1
        assert sales_service.get_sale_by_appointment(appointment.id).id == first.id

    def test_deleting_sale_unlinks_appointment(self, db_session, company, buyer, appointment):
        sale_id = sales_service.create_sale(user_id=buyer.id, company_id=company.id, appointment_id=appointment.id).id
        appointment_id = appointment.id

        assert sales_service.delete_sale(sale_id) is True

        db_session.expire_all()
        assert db_session.get(CompanyAppointment, appointment_id).sale_id is None
        assert sales_service.get_sale_by_appointment(appointment_id) is None


class TestEnrichSale:
    def test_lines_carry_display_details(self, db_session, company, buyer, service, variant, product):
        sale = _round_trip_sale(buyer, company, service, variant)

        data = sales_service.enrich_sale(sale)

        service_line = data["services_used"][0]
        assert service_line["name"] == "Haircut"
        assert service_line["description"] == "Wash and cut"

        product_line = data["products_used"][0]
        assert product_line["product_id"] == product.id
        assert product_line["name"] == "Shampoo - 250ml"
        assert product_line["unit"] == "bottle"

    def test_missing_references_fall_back_to_placeholders(self, foreign_keys_off, company, buyer, service, variant):
        db_session = foreign_keys_off
        sale_id = _round_trip_sale(buyer, company, service, variant).id
        db_session.query(Variant).filter_by(id=variant.id).delete()
        db_session.delete(service)
        db_session.commit()

        db_session.expire_all()
        data = sales_service.enrich_sale(sales_service.get_sale(sale_id))

        assert data["services_used"][0]["name"] == "Service"
        assert data["services_used"][0]["description"] is None
        assert data["products_used"][0]["name"] == "Product"
        assert "product_id" not in data["products_used"][0]


class TestListSales:
    def test_scoped_filtered_and_paginated(self, db_session, company, other_company, buyer, service, variant):
        other_buyer = User(first_name="Zed", last_name="Other", email="zed@example.com")
        db_session.add(other_buyer)
        db_session.commit()

        first = _round_trip_sale(buyer, company, service, variant)
        sales_service.create_sale(user_id=other_buyer.id, company_id=company.id, staff_id="staff00001")
        sales_service.create_sale(user_id=buyer.id, company_id=other_company.id)

        everything = sales_service.list_sales(company.id)
        assert everything["count"] == 2
        assert "pagination" not in everything

        by_service = sales_service.list_sales(company.id, service_id=service.id)
        assert [s["id"] for s in by_service["items"]] == [first.id]

        by_staff = sales_service.list_sales(company.id, staff_id="staff00001")
        assert by_staff["items"][0]["user_id"] == other_buyer.id

        by_search = sales_service.list_sales(company.id, search="ada bu")
        assert [s["id"] for s in by_search["items"]] == [first.id]

        today = utcnow().date()
        assert sales_service.list_sales(company.id, date_from=today.isoformat())["count"] == 2
        assert sales_service.list_sales(company.id, date_to=(today - timedelta(days=1)).isoformat())["count"] == 0

        paged = sales_service.list_sales(company.id, page=2, per_page=1)
        assert paged["count"] == 1
        assert paged["pagination"] == {
            "page": 2,
            "per_page": 1,
            "total": 2,
            "total_pages": 2,
            "has_next": False,
            "has_prev": True,
        }
        # Newest first: page 2 holds the older sale
        assert paged["items"][0]["id"] == first.id

    def test_bad_date_is_validation_error(self, db_session, company):
        with pytest.raises(ValidationError):
            sales_service.list_sales(company.id, date_from="not-a-date")
