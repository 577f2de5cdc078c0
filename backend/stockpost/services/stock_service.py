# Overview: Service-layer operations for stock lots; encapsulates business logic and database work.

# backend/stockpost/services/stock_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import case, func

from ..extensions import db
from ..models import StockLot, Variant, User
from ..validation import (
    NotFoundError,
    ValidationError,
    parse_money,
    parse_positive_int,
)
from stockpost.time_utils import parse_iso_date, utcnow
from .concurrency import lock_for_update, run_in_transaction
"""
Stock Ledger Invariants (authoritative)

Lot model:
- Stock for a variant is a set of discrete lots, each with its own quantity,
  cost, optional sell price, supplier, batch and expiry.
- Available stock = SUM(quantity) over ACTIVE lots only; 0 when none exist.
- Lot quantity never goes negative.

FIFO order:
- purchase_date ASC (lots without a purchase date sort first), then
  created_at ASC. This order is load-bearing: deduct_fifo consumes lots in it.

Deduction:
- Candidate lots are locked (SELECT ... FOR UPDATE) before being read.
- A shortage is reported in the returned StockAllocation, never raised.
  Whether a shortage blocks a sale is the sale ledger's policy decision.
"""

logger = logging.getLogger(__name__)

STOCK_LOT_MUTABLE_FIELDS = {
    "quantity",
    "cost_price",
    "sell_price",
    "purchase_date",
    "expiry_date",
    "supplier_id",
    "batch_number",
    "is_active",
}


@dataclass(frozen=True)
class LotDeduction:
    lot_id: str
    quantity_before: int
    quantity_deducted: int
    quantity_after: int


@dataclass
class StockAllocation:
    """Outcome of one FIFO deduction for one variant."""
    variant_id: str
    requested: int
    deductions: list[LotDeduction] = field(default_factory=list)
    shortfall: int = 0
    lots_found: bool = True

    @property
    def allocated(self) -> int:
        return self.requested - self.shortfall

    @property
    def is_complete(self) -> bool:
        return self.shortfall == 0


def fifo_order():
    """ORDER BY clauses defining FIFO consumption order."""
    undated_first = case((StockLot.purchase_date.is_(None), 0), else_=1)
    return (undated_first, StockLot.purchase_date.asc(), StockLot.created_at.asc())


def _require_variant(session, variant_id) -> Variant:
    if not variant_id:
        raise ValidationError("variant_id is required")
    variant = session.get(Variant, variant_id)
    if variant is None:
        raise NotFoundError("Variant not found")
    return variant


def _require_supplier(session, supplier_id) -> None:
    if supplier_id and session.get(User, supplier_id) is None:
        raise ValidationError("supplier_id does not reference a known user")


def create_stock_lot(
    *,
    variant_id: str,
    quantity,
    cost_price=0,
    sell_price=None,
    purchase_date=None,
    expiry_date=None,
    supplier_id: str | None = None,
    batch_number: str | None = None,
    is_active: bool = True,
    session=None,
) -> StockLot:
    """
    Record one purchased batch for a variant.

    Does NOT touch the variant's active-stock pointer; use intake_stock for
    the full stock-intake contract.
    """
    if not variant_id:
        raise ValidationError("variant_id is required")
    if quantity is None:
        raise ValidationError("quantity must be greater than 0")
    qty = parse_positive_int(quantity, "quantity")
    cost = parse_money(cost_price if cost_price is not None else 0, "cost_price")
    sell = parse_money(sell_price, "sell_price") if sell_price is not None else None

    try:
        purchase = parse_iso_date(purchase_date)
        expiry = parse_iso_date(expiry_date)
    except ValueError:
        raise ValidationError("purchase_date/expiry_date must be ISO-8601 dates")
    if purchase and expiry and expiry < purchase:
        raise ValidationError("expiry_date cannot be before purchase_date")

    def _op(s):
        _require_variant(s, variant_id)
        _require_supplier(s, supplier_id)

        lot = StockLot(
            variant_id=variant_id,
            quantity=qty,
            cost_price=cost,
            sell_price=sell,
            purchase_date=purchase,
            expiry_date=expiry,
            supplier_id=supplier_id or None,
            batch_number=(batch_number or None),
            is_active=bool(is_active),
        )
        s.add(lot)
        s.flush()
        logger.info("Created stock lot %s for variant %s (qty=%d, cost=%s)", lot.id, variant_id, qty, cost)
        return lot

    return run_in_transaction(_op, operation="creating stock entry", session=session)


def intake_stock(*, variant_id: str, session=None, **lot_fields) -> StockLot:
    """
    Stock intake: create the lot and, when the variant has no active-stock
    pointer yet, point it at the new lot. Both writes share one transaction.
    """
    from .variant_service import assign_active_stock_if_unset

    def _op(s):
        lot = create_stock_lot(variant_id=variant_id, session=s, **lot_fields)
        assign_active_stock_if_unset(variant_id, lot.id, session=s)
        return lot

    return run_in_transaction(_op, operation="receiving stock", session=session)


def get_stock_lot(lot_id: str) -> StockLot | None:
    return db.session.get(StockLot, lot_id)


def list_stock_lots(variant_id: str, *, active_only: bool = False, session=None) -> list[StockLot]:
    s = session or db.session
    q = s.query(StockLot).filter(StockLot.variant_id == variant_id)
    if active_only:
        q = q.filter(StockLot.is_active.is_(True))
    return q.order_by(*fifo_order()).all()


def get_total_available(variant_id: str, *, session=None) -> int:
    """
    Sum of quantity across ACTIVE lots only.

    Returns 0 (not an error) when the variant has no lots.
    """
    s = session or db.session
    total = s.query(
        func.coalesce(func.sum(StockLot.quantity), 0)
    ).filter(
        StockLot.variant_id == variant_id,
        StockLot.is_active.is_(True),
    ).scalar()
    return int(total or 0)


def _apply_stock_lot_patch(s, lot: StockLot, patch: dict) -> None:
    for key, value in patch.items():
        if key not in STOCK_LOT_MUTABLE_FIELDS:
            continue
        if key == "quantity":
            value = parse_positive_int(value, "quantity", allow_zero=True)
        elif key == "cost_price":
            value = parse_money(value if value is not None else 0, "cost_price")
        elif key == "sell_price":
            value = parse_money(value, "sell_price") if value is not None else None
        elif key in ("purchase_date", "expiry_date"):
            try:
                value = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{key} must be an ISO-8601 date")
        elif key == "supplier_id":
            value = value or None
            _require_supplier(s, value)
        elif key == "batch_number":
            value = value or None
        elif key == "is_active":
            value = bool(value)
        setattr(lot, key, value)

    if lot.purchase_date and lot.expiry_date and lot.expiry_date < lot.purchase_date:
        raise ValidationError("expiry_date cannot be before purchase_date")


def update_stock_lot(lot_id: str, patch: dict, *, session=None) -> StockLot:
    """Partial update: only keys present in patch change."""
    def _op(s):
        lot = lock_for_update(s.query(StockLot).filter_by(id=lot_id)).first()
        if lot is None:
            raise NotFoundError("Stock entry not found")
        _apply_stock_lot_patch(s, lot, patch or {})
        lot.updated_at = utcnow()
        s.flush()
        return lot

    return run_in_transaction(_op, operation="updating stock entry", session=session)


def deactivate_stock_lot(lot_id: str, *, session=None) -> bool:
    """Soft removal: the lot stays for history but stops counting as stock."""
    def _op(s):
        affected = s.query(StockLot).filter_by(id=lot_id).update(
            {StockLot.is_active: False, StockLot.updated_at: utcnow()},
            synchronize_session="fetch",
        )
        return affected > 0

    return run_in_transaction(_op, operation="deactivating stock entry", session=session)


def delete_stock_lot(lot_id: str, *, session=None) -> bool:
    def _op(s):
        affected = s.query(StockLot).filter_by(id=lot_id).delete(synchronize_session="fetch")
        return affected > 0

    return run_in_transaction(_op, operation="deleting stock entry", session=session)


def deduct_fifo(variant_id: str, quantity: int, *, session) -> StockAllocation:
    """
    Deduct `quantity` units from the variant's active lots, oldest first.

    Must run inside the caller's transaction (the sale ledger's). Each lot
    gives min(remaining, lot.quantity); quantities floor at 0. Running out of
    lots leaves the remainder in StockAllocation.shortfall and logs a warning.
    """
    if quantity is None or quantity <= 0:
        raise ValidationError("quantity must be greater than 0")

    allocation = StockAllocation(variant_id=variant_id, requested=quantity)

    lots = lock_for_update(
        session.query(StockLot).filter(
            StockLot.variant_id == variant_id,
            StockLot.is_active.is_(True),
        ).order_by(*fifo_order())
    ).all()

    if not lots:
        allocation.lots_found = False
        allocation.shortfall = quantity
        logger.warning("No active stock found for variant %s, skipping stock update", variant_id)
        return allocation

    remaining = quantity
    for lot in lots:
        if remaining <= 0:
            break
        current = int(lot.quantity or 0)
        if current <= 0:
            continue

        take = min(remaining, current)
        lot.quantity = max(0, current - take)
        lot.updated_at = utcnow()
        allocation.deductions.append(
            LotDeduction(
                lot_id=lot.id,
                quantity_before=current,
                quantity_deducted=take,
                quantity_after=lot.quantity,
            )
        )
        logger.debug(
            "Updated stock lot %s for variant %s: %d -> %d (deducted %d)",
            lot.id, variant_id, current, lot.quantity, take,
        )
        remaining -= take

    session.flush()
    allocation.shortfall = remaining

    if remaining > 0:
        logger.warning(
            "Inventory shortfall for variant %s: requested %d, deducted %d, short %d",
            variant_id, quantity, quantity - remaining, remaining,
        )
    else:
        logger.info("Deducted %d units from variant %s", quantity, variant_id)
    return allocation
