# Overview: Flask API routes for stock lots; parses input and returns JSON responses.

# backend/stockpost/routes/stock.py
"""
Stock lot routes.

MULTI-TENANT: Every lot is reached through its variant, and the variant's
product must belong to g.company_id (set by @require_company_context).
Lots of another company answer 404, same as missing ones.
"""
from flask import Blueprint, request, g, current_app

from ..models import StockLot
from ..services import stock_service
from ..services.concurrency import TransactionFailure
from ..services.variant_service import require_variant_in_company
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_stock_lot,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_company_context

STOCK_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "variant_id",
        "quantity",
        "cost_price",
        "sell_price",
        "purchase_date",
        "expiry_date",
        "supplier_id",
        "batch_number",
        "is_active",
    },
    required_on_create={"variant_id", "quantity", "cost_price"},
)

STOCK_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "quantity",
        "cost_price",
        "sell_price",
        "purchase_date",
        "expiry_date",
        "supplier_id",
        "batch_number",
        "is_active",
    },
)

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _lot_in_company(lot_id: str) -> StockLot:
    lot = stock_service.get_stock_lot(lot_id)
    if lot is None:
        raise NotFoundError("Stock entry not found")
    try:
        require_variant_in_company(lot.variant_id, g.company_id)
    except NotFoundError:
        raise NotFoundError("Stock entry not found")
    return lot


@stock_bp.get("/variant/<variant_id>")
@require_company_context
def list_variant_stock_route(variant_id: str):
    """
    List a variant's lots in FIFO order.

    Query params:
    - active_only: "true" to hide deactivated lots
    """
    active_only = request.args.get("active_only", "false").lower() in ("1", "true", "yes")
    try:
        require_variant_in_company(variant_id, g.company_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    lots = stock_service.list_stock_lots(variant_id, active_only=active_only)
    return {"items": [lot.to_dict() for lot in lots], "count": len(lots)}


@stock_bp.get("/variant/<variant_id>/total")
@require_company_context
def variant_total_route(variant_id: str):
    try:
        require_variant_in_company(variant_id, g.company_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {"variant_id": variant_id, "total_available": stock_service.get_total_available(variant_id)}


@stock_bp.get("/<lot_id>")
@require_company_context
def get_stock_route(lot_id: str):
    try:
        lot = _lot_in_company(lot_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"stock": lot.to_dict()}


@stock_bp.post("")
@require_company_context
def create_stock_route():
    """
    Receive a new lot for a variant.

    The first lot received for a variant also becomes its active stock.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=StockLot, payload=payload, policy=STOCK_CREATE_POLICY, partial=False)
        enforce_rules_stock_lot(patch, creating=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    variant_id = patch.pop("variant_id")
    try:
        require_variant_in_company(variant_id, g.company_id)
        lot = stock_service.intake_stock(variant_id=variant_id, **patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400
    except TransactionFailure:
        current_app.logger.exception("Failed to create stock entry")
        return {"error": "Internal server error"}, 500

    return {"stock": lot.to_dict()}, 201


@stock_bp.put("/<lot_id>")
@require_company_context
def update_stock_route(lot_id: str):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=StockLot, payload=payload, policy=STOCK_UPDATE_POLICY, partial=True)
        enforce_rules_stock_lot(patch, creating=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        _lot_in_company(lot_id)
        lot = stock_service.update_stock_lot(lot_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValueError as e:
        return {"error": str(e)}, 400
    except TransactionFailure:
        current_app.logger.exception("Failed to update stock entry %s", lot_id)
        return {"error": "Internal server error"}, 500

    return {"stock": lot.to_dict()}


@stock_bp.put("/<lot_id>/deactivate")
@require_company_context
def deactivate_stock_route(lot_id: str):
    try:
        _lot_in_company(lot_id)
        stock_service.deactivate_stock_lot(lot_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except TransactionFailure:
        current_app.logger.exception("Failed to deactivate stock entry %s", lot_id)
        return {"error": "Internal server error"}, 500

    return {"message": "Stock entry deactivated"}


@stock_bp.delete("/<lot_id>")
@require_company_context
def delete_stock_route(lot_id: str):
    try:
        _lot_in_company(lot_id)
        stock_service.delete_stock_lot(lot_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except TransactionFailure:
        current_app.logger.exception("Failed to delete stock entry %s", lot_id)
        return {"error": "Internal server error"}, 500

    return {"message": "Stock entry deleted"}
