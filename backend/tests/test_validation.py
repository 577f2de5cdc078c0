from datetime import date
from decimal import Decimal

import pytest

from stockpost.models import StockLot
from stockpost.validation import (
    ModelValidationPolicy,
    ValidationError,
    parse_discount,
    parse_money,
    parse_positive_int,
    to_money_str,
    validate_payload,
)


POLICY = ModelValidationPolicy(
    writable_fields={"variant_id", "quantity", "cost_price", "purchase_date", "batch_number", "is_active"},
    required_on_create={"variant_id", "quantity", "cost_price"},
)


class TestParsers:
    @pytest.mark.parametrize("raw,expected", [(3, 3), ("7", 7), (" 12 ", 12), (4.0, 4)])
    def test_positive_int_accepts(self, raw, expected):
        assert parse_positive_int(raw, "quantity") == expected

    @pytest.mark.parametrize("raw", [0, -1, "1.5", "1e3", "", None, True, [1]])
    def test_positive_int_rejects(self, raw):
        with pytest.raises(ValidationError):
            parse_positive_int(raw, "quantity")

    def test_zero_allowed_when_asked(self):
        assert parse_positive_int("0", "quantity", allow_zero=True) == 0

    def test_money_rounds_half_up(self):
        assert parse_money("2.345", "unit_price") == Decimal("2.35")
        assert parse_money(0, "unit_price") == Decimal("0.00")

    @pytest.mark.parametrize("raw", ["-0.01", "abc", "NaN", None, "10000000000"])
    def test_money_rejects(self, raw):
        with pytest.raises(ValidationError):
            parse_money(raw, "unit_price")

    def test_discount_bounds(self):
        assert parse_discount(None) == Decimal("0.00")
        assert parse_discount("100") == Decimal("100.00")
        with pytest.raises(ValidationError):
            parse_discount("100.01")

    def test_money_str(self):
        assert to_money_str(Decimal("5")) == "5.00"
        assert to_money_str(None) is None


class TestValidatePayload:
    def test_create_requires_fields(self):
        with pytest.raises(ValidationError, match="cost_price"):
            validate_payload(model=StockLot, payload={"variant_id": "v", "quantity": 1}, policy=POLICY, partial=False)

    def test_rejects_non_writable_field(self):
        with pytest.raises(ValidationError, match="Field not allowed"):
            validate_payload(model=StockLot, payload={"id": "x"}, policy=POLICY, partial=True)

    def test_coerces_types(self):
        patch = validate_payload(
            model=StockLot,
            payload={"quantity": "4", "purchase_date": "2026-02-03", "is_active": "false", "batch_number": " B1 "},
            policy=POLICY,
            partial=True,
        )
        assert patch == {
            "quantity": 4,
            "purchase_date": date(2026, 2, 3),
            "is_active": False,
            "batch_number": "B1",
        }

    def test_rejects_float_quantity(self):
        with pytest.raises(ValidationError):
            validate_payload(model=StockLot, payload={"quantity": 1.5}, policy=POLICY, partial=True)

    def test_rejects_null_on_required_column(self):
        with pytest.raises(ValidationError, match="cannot be null"):
            validate_payload(model=StockLot, payload={"quantity": None}, policy=POLICY, partial=True)

    def test_rejects_non_dict(self):
        with pytest.raises(ValidationError):
            validate_payload(model=StockLot, payload=["quantity"], policy=POLICY, partial=True)
