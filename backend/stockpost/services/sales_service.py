"""
Sales Service - atomic sale posting with FIFO stock deduction

WHY: A sale, its lines and the stock it consumes must land together or not at
all. Totals are derived from the lines so they can never drift from them.

Flow for create_sale:
    validate -> header -> lines (sale_item_service) -> FIFO per product line
    (stock_service) -> commit -> client tracking (own transaction, best effort)
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..config import STOCK_ENFORCEMENT_LENIENT, STOCK_ENFORCEMENT_STRICT
from ..extensions import db
from ..models import CompanyAppointment, CompanyService, Sale, SaleItem, User, Company, Variant
from ..models.sales import ITEM_TYPE_PRODUCT, ITEM_TYPE_SERVICE
from ..validation import ConflictError, NotFoundError, ValidationError, to_money
from stockpost.time_utils import parse_iso_date, utcnow
from .client_tracking_service import INTERACTION_SALE, record_interaction
from .concurrency import lock_for_update, run_in_transaction
from .sale_item_service import (
    create_items,
    delete_item,
    delete_items_for_sale,
    list_items,
    normalize_item,
)
from .stock_service import deduct_fifo, get_total_available

logger = logging.getLogger(__name__)

SERVICE_PLACEHOLDER = "Service"
PRODUCT_PLACEHOLDER = "Product"


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(SaleError):
    """Strict stock enforcement only: product lines exceed active stock."""


class _SaleHeaderMissing(Exception):
    pass


def compute_totals(items) -> tuple[Decimal, Decimal, Decimal]:
    """
    (subtotal, discount_amount, total_amount) for a set of lines.

    Works on SaleItem rows and on normalized line dicts alike.
    """
    subtotal = Decimal("0")
    discount_amount = Decimal("0")
    for item in items:
        if isinstance(item, dict):
            qty, price, pct = item["quantity"], item["unit_price"], item["discount"]
        else:
            qty, price, pct = item.quantity, item.unit_price, item.discount
        line = Decimal(qty) * Decimal(price or 0)
        subtotal += line
        discount_amount += line * Decimal(pct or 0) / Decimal(100)

    subtotal = to_money(subtotal)
    discount_amount = to_money(discount_amount)
    return subtotal, discount_amount, subtotal - discount_amount


def _collect_lines(services_used, products_used) -> list[dict]:
    for name, lines in (("services_used", services_used), ("products_used", products_used)):
        if lines is not None and not isinstance(lines, list):
            raise ValidationError(f"{name} must be a list")

    collected = []
    for raw in services_used or []:
        if not isinstance(raw, dict):
            raise ValidationError("Each service line must be an object")
        collected.append(normalize_item({**raw, "item_type": ITEM_TYPE_SERVICE}))
    for raw in products_used or []:
        if not isinstance(raw, dict):
            raise ValidationError("Each product line must be an object")
        # product_id is accepted from callers but never stored; it is derived from the variant
        collected.append(normalize_item({**raw, "item_type": ITEM_TYPE_PRODUCT}))
    return collected


def _warn_on_total_mismatch(label: str, supplied, computed: Decimal) -> None:
    if supplied is None or supplied == "":
        return
    try:
        supplied_money = to_money(Decimal(str(supplied)))
    except ArithmeticError:
        logger.warning("Ignoring non-numeric %s supplied by caller: %r", label, supplied)
        return
    if supplied_money != computed:
        logger.warning("Caller %s %s differs from computed %s; using computed value", label, supplied_money, computed)


def _validate_on_hand(session, lines: list[dict]) -> None:
    variant_totals: dict[str, int] = {}
    for line in lines:
        variant_totals[line["variant_id"]] = variant_totals.get(line["variant_id"], 0) + line["quantity"]

    insufficient = []
    for variant_id, qty in variant_totals.items():
        on_hand = get_total_available(variant_id, session=session)
        if on_hand < qty:
            insufficient.append({
                "variant_id": variant_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStockError(
            "Insufficient inventory to post sale",
            details={"items": insufficient},
        )


def _require_line_references(session, company_id: str, lines: list[dict]) -> None:
    """
    MULTI-TENANT: every line must point at a service or variant of `company_id`.

    Lines of another company are reported exactly like missing ones, so a
    sale can never consume another tenant's lots.
    """
    for line in lines:
        if line["item_type"] == ITEM_TYPE_SERVICE:
            service = session.get(CompanyService, line["service_id"])
            if service is None or service.company_id != company_id:
                raise NotFoundError(f"Service not found: {line['service_id']}")
        else:
            variant = session.get(Variant, line["variant_id"])
            product = variant.company_product if variant is not None else None
            if product is None or product.company_id != company_id:
                raise NotFoundError(f"Variant not found: {line['variant_id']}")


def _stock_enforcement(override: str | None) -> str:
    mode = override or current_app.config.get("STOCK_ENFORCEMENT", STOCK_ENFORCEMENT_LENIENT)
    if mode not in (STOCK_ENFORCEMENT_LENIENT, STOCK_ENFORCEMENT_STRICT):
        raise ValueError(f"Unknown STOCK_ENFORCEMENT mode: {mode!r}")
    return mode


def create_sale(
    *,
    user_id: str,
    company_id: str,
    staff_id: str | None = None,
    appointment_id: str | None = None,
    services_used: list | None = None,
    products_used: list | None = None,
    total_amount=None,
    subtotal=None,
    discount_amount=None,
    stock_enforcement: str | None = None,
) -> Sale:
    """
    Record a sale with its lines and deduct product stock FIFO, atomically.

    Lenient enforcement: a product line whose variant has no (or too little)
    active stock is logged and the sale still commits.
    Strict enforcement: availability is checked per variant before any
    deduction; a shortage raises InsufficientStockError and nothing is written.

    Totals are always computed from the lines; supplied totals are only
    compared and a mismatch is logged.

    appointment_id, when given, links that appointment of the same company
    to the new sale.
    """
    if not user_id:
        raise ValidationError("user_id is required")
    if not company_id:
        raise ValidationError("company_id is required")

    mode = _stock_enforcement(stock_enforcement)
    lines = _collect_lines(services_used, products_used)
    sub, disc, total = compute_totals(lines)
    _warn_on_total_mismatch("subtotal", subtotal, sub)
    _warn_on_total_mismatch("discount_amount", discount_amount, disc)
    _warn_on_total_mismatch("total_amount", total_amount, total)

    product_lines = [line for line in lines if line["item_type"] == ITEM_TYPE_PRODUCT]

    def _op(s):
        if s.get(User, user_id) is None:
            raise ValidationError("user_id does not reference a known user")
        if s.get(Company, company_id) is None:
            raise ValidationError("company_id does not reference a known company")
        _require_line_references(s, company_id, lines)
        appointment = None
        if appointment_id:
            appointment = s.get(CompanyAppointment, appointment_id)
            if appointment is None or appointment.company_id != company_id:
                raise NotFoundError("Appointment not found")
            if appointment.sale_id:
                raise ConflictError("Appointment is already linked to a sale")

        sale = Sale(
            user_id=user_id,
            company_id=company_id,
            staff_id=staff_id or None,
            subtotal=sub,
            discount_amount=disc,
            total_amount=total,
        )
        s.add(sale)
        s.flush()

        if lines:
            create_items(sale.id, lines, session=s)
        if appointment is not None:
            appointment.sale_id = sale.id

        if mode == STOCK_ENFORCEMENT_STRICT:
            _validate_on_hand(s, product_lines)

        for line in product_lines:
            allocation = deduct_fifo(line["variant_id"], line["quantity"], session=s)
            if not allocation.is_complete:
                logger.warning(
                    "Sale %s oversold variant %s by %d unit(s)",
                    sale.id, line["variant_id"], allocation.shortfall,
                )

        logger.info(
            "Created sale %s for user %s at company %s (%d line(s), total=%s)",
            sale.id, user_id, company_id, len(lines), total,
        )
        return sale

    sale = run_in_transaction(_op, operation="creating sale", immediate=True)

    try:
        record_interaction(company_id, user_id, INTERACTION_SALE, total)
    except Exception:
        logger.exception("Failed to record client interaction for sale %s", sale.id)

    return sale


def get_sale(sale_id: str) -> Sale | None:
    return db.session.get(Sale, sale_id)


def get_sale_by_appointment(appointment_id: str) -> Sale | None:
    """The sale that settled an appointment; None when unknown or not yet paid."""
    appointment = db.session.get(CompanyAppointment, appointment_id)
    if appointment is None or not appointment.sale_id:
        return None
    return get_sale(appointment.sale_id)


def list_sales(
    company_id: str,
    *,
    user_id: str | None = None,
    staff_id: str | None = None,
    service_id: str | None = None,
    date_from=None,
    date_to=None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Company-scoped sale listing, newest first, with optional pagination.

    Args:
        company_id: Tenant scope (required)
        user_id / staff_id: exact-match filters
        service_id: sales having at least one line for that service
        date_from / date_to: inclusive calendar-date bounds on created_at
        search: substring match on buyer name, email, phone or sale id
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    if not company_id:
        raise ValidationError("company_id is required")

    q = db.session.query(Sale).filter(Sale.company_id == company_id)

    if user_id:
        q = q.filter(Sale.user_id == user_id)
    if staff_id:
        q = q.filter(Sale.staff_id == staff_id)
    if service_id:
        q = q.filter(
            db.session.query(SaleItem.id)
            .filter(SaleItem.sale_id == Sale.id, SaleItem.service_id == service_id)
            .exists()
        )

    try:
        start = parse_iso_date(date_from)
        end = parse_iso_date(date_to)
    except ValueError:
        raise ValidationError("date_from/date_to must be ISO-8601 dates")
    if start:
        q = q.filter(Sale.created_at >= datetime.combine(start, time.min))
    if end:
        q = q.filter(Sale.created_at < datetime.combine(end + timedelta(days=1), time.min))

    if search and search.strip():
        term = f"%{search.strip()}%"
        q = q.outerjoin(User, User.id == Sale.user_id).filter(
            or_(
                User.first_name.ilike(term),
                User.last_name.ilike(term),
                User.email.ilike(term),
                User.phone.ilike(term),
                (User.first_name + " " + User.last_name).ilike(term),
                Sale.id.ilike(term),
            )
        )

    q = q.order_by(Sale.created_at.desc(), Sale.id.asc())

    if page is None:
        sales = q.all()
        return {
            "items": [s.to_dict() for s in sales],
            "count": len(sales),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = q.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    sales = q.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [s.to_dict() for s in sales],
        "count": len(sales),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def recalculate_totals(sale_id: str, *, session=None) -> Sale:
    """Recompute subtotal/discount/total from the sale's current lines and persist them."""
    def _op(s):
        sale = lock_for_update(s.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFoundError("Sale not found")

        sale.subtotal, sale.discount_amount, sale.total_amount = compute_totals(list_items(sale_id, session=s))
        sale.updated_at = utcnow()
        s.flush()
        return sale

    return run_in_transaction(_op, operation="recalculating sale totals", session=session)


def delete_sale_item(sale_id: str, item_id: str) -> Sale:
    """
    Remove one line and recompute totals in the same transaction.

    A missing sale or a line that is not (or no longer) on the sale raises
    NotFoundError and leaves the totals untouched. Stock is not restored.
    """
    def _op(s):
        sale = lock_for_update(s.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFoundError("Sale not found")
        item = s.query(SaleItem).filter_by(id=item_id, sale_id=sale_id).first()
        if item is None:
            raise NotFoundError("Sale item not found")

        delete_item(item_id, session=s)
        return recalculate_totals(sale_id, session=s)

    sale = run_in_transaction(_op, operation="deleting sale item", immediate=True)
    logger.info("Removed item %s from sale %s (total=%s)", item_id, sale_id, sale.total_amount)
    return sale


def delete_sale(sale_id: str) -> bool:
    """
    Delete every line, then the header. A linked appointment is kept and
    unlinked. False (and nothing deleted) when the sale does not exist.
    """
    def _op(s):
        removed_items = delete_items_for_sale(sale_id, session=s)
        s.query(CompanyAppointment).filter_by(sale_id=sale_id).update(
            {"sale_id": None}, synchronize_session="fetch"
        )
        affected = s.query(Sale).filter_by(id=sale_id).delete(synchronize_session="fetch")
        if affected == 0:
            raise _SaleHeaderMissing(sale_id)
        logger.info("Deleted sale %s with %d item(s)", sale_id, removed_items)
        return True

    try:
        return run_in_transaction(_op, operation="deleting sale", immediate=True)
    except _SaleHeaderMissing:
        return False


def _enrich_service_line(line: dict) -> dict:
    try:
        service = db.session.get(CompanyService, line["service_id"])
    except SQLAlchemyError as exc:
        logger.warning("Could not enrich service %s: %s", line.get("service_id"), exc)
        return {**line, "name": SERVICE_PLACEHOLDER, "description": None}
    return {
        **line,
        "name": (service.name if service else None) or SERVICE_PLACEHOLDER,
        "description": service.description if service else None,
    }


def _enrich_product_line(line: dict) -> dict:
    try:
        variant = db.session.get(Variant, line["variant_id"])
        if variant is None or not variant.company_product_id:
            logger.warning("Variant %s not found or has no company product", line.get("variant_id"))
            return {**line, "name": PRODUCT_PLACEHOLDER, "description": None}

        product = variant.company_product
        product_name = (product.name if product else None) or PRODUCT_PLACEHOLDER
        return {
            **line,
            "product_id": variant.company_product_id,
            "name": f"{product_name} - {variant.name}" if variant.name else product_name,
            "description": product.description if product else None,
            "unit": product.unit if product else None,
        }
    except SQLAlchemyError as exc:
        logger.warning("Could not enrich product line for variant %s: %s", line.get("variant_id"), exc)
        return {**line, "name": PRODUCT_PLACEHOLDER, "description": None}


def enrich_sale(sale: Sale) -> dict:
    """
    Sale payload with display details on every line.

    Read-only and best effort: lookups that fail fall back to the
    "Service"/"Product" placeholders instead of raising.
    """
    data = sale.to_dict()
    data["services_used"] = [_enrich_service_line(line) for line in data["services_used"]]
    data["products_used"] = [_enrich_product_line(line) for line in data["products_used"]]
    return data
