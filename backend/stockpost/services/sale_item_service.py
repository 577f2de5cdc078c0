# Overview: Service-layer operations for sale line items.

# backend/stockpost/services/sale_item_service.py

from __future__ import annotations

import logging

from ..extensions import db
from ..models import SaleItem
from ..models.sales import ITEM_TYPE_SERVICE, ITEM_TYPES, item_type_rank
from ..validation import ValidationError, parse_discount, parse_money, parse_positive_int
from .concurrency import run_in_transaction

logger = logging.getLogger(__name__)


def normalize_item(raw: dict) -> dict:
    """
    Validate one line spec and return the cleaned column values.

    Raises ValidationError before anything is written.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Each item must be an object")

    item_type = raw.get("item_type")
    if item_type not in ITEM_TYPES:
        raise ValidationError(f"item_type must be one of: {', '.join(ITEM_TYPES)}")

    service_id = raw.get("service_id") or None
    variant_id = raw.get("variant_id") or None
    if item_type == ITEM_TYPE_SERVICE:
        if not service_id:
            raise ValidationError("service_id is required for service items")
        variant_id = None
    else:
        if not variant_id:
            raise ValidationError("variant_id is required for product items")
        service_id = None

    quantity = raw.get("quantity", 1)
    return {
        "item_type": item_type,
        "service_id": service_id,
        "variant_id": variant_id,
        "quantity": parse_positive_int(1 if quantity is None else quantity, "quantity"),
        "unit_price": parse_money(raw.get("unit_price", 0) or 0, "unit_price"),
        "discount": parse_discount(raw.get("discount")),
    }


def create_items(sale_id: str, items: list[dict], session=None) -> list[SaleItem]:
    """Insert every line for a sale; all or nothing."""
    if not sale_id:
        raise ValidationError("sale_id is required")
    cleaned = [normalize_item(raw) for raw in (items or [])]

    def _op(s):
        created = [SaleItem(sale_id=sale_id, **values) for values in cleaned]
        s.add_all(created)
        s.flush()
        return created

    return run_in_transaction(_op, operation="creating sale items", session=session)


def list_items(sale_id: str, *, session=None) -> list[SaleItem]:
    s = session or db.session
    return (
        s.query(SaleItem)
        .filter(SaleItem.sale_id == sale_id)
        .order_by(item_type_rank(), SaleItem.created_at.asc())
        .all()
    )


def get_item(item_id: str) -> SaleItem | None:
    return db.session.get(SaleItem, item_id)


def delete_item(item_id: str, *, session=None) -> bool:
    def _op(s):
        affected = s.query(SaleItem).filter_by(id=item_id).delete(synchronize_session="fetch")
        return affected > 0

    return run_in_transaction(_op, operation="deleting sale item", session=session)


def delete_items_for_sale(sale_id: str, *, session=None) -> int:
    def _op(s):
        return s.query(SaleItem).filter_by(sale_id=sale_id).delete(synchronize_session="fetch")

    return run_in_transaction(_op, operation="deleting sale items", session=session)
