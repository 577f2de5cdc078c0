# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/stockpost/routes/sales.py
"""Sales API routes, scoped to the caller's company"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.concurrency import TransactionFailure
from ..services.sales_service import SaleError, InsufficientStockError
from ..validation import ConflictError, ValidationError, NotFoundError
from ..decorators import require_company_context


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_in_company(sale_id: str):
    sale = sales_service.get_sale(sale_id)
    if sale is None or sale.company_id != g.company_id:
        raise NotFoundError("Sale not found")
    return sale


@sales_bp.get("")
@require_company_context
def list_sales_route():
    """
    List the company's sales, newest first.

    Query params:
    - user_id, staff_id, service_id: exact filters
    - date_from, date_to: YYYY-MM-DD, inclusive
    - search: buyer name / email / phone / sale id
    - page, per_page: pagination (all rows when page is omitted)
    """
    try:
        result = sales_service.list_sales(
            g.company_id,
            user_id=request.args.get("user_id"),
            staff_id=request.args.get("staff_id"),
            service_id=request.args.get("service_id"),
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            search=request.args.get("search"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result), 200


@sales_bp.get("/<sale_id>")
@require_company_context
def get_sale_route(sale_id: str):
    """Get one sale; ?enrich=true adds service/product display details to each line."""
    try:
        sale = _sale_in_company(sale_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    enrich = request.args.get("enrich", "false").lower() in ("1", "true", "yes")
    data = sales_service.enrich_sale(sale) if enrich else sale.to_dict()
    return jsonify({"sale": data}), 200


@sales_bp.get("/by-appointment/<appointment_id>")
@require_company_context
def get_sale_by_appointment_route(appointment_id: str):
    sale = sales_service.get_sale_by_appointment(appointment_id)
    if sale is None or sale.company_id != g.company_id:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.post("")
@require_company_context
def create_sale_route():
    """
    Record a completed sale.

    Body:
    {
      "user_id": "...",            buyer (required)
      "staff_id": "...",           optional
      "appointment_id": "...",     optional, appointment this sale settles
      "services_used": [{"service_id", "quantity", "unit_price", "discount"}],
      "products_used": [{"variant_id", "quantity", "unit_price", "discount"}],
      "total_amount" / "subtotal" / "discount_amount": optional, checked against the lines
    }

    The company is always the caller's; a company_id in the body is ignored.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        sale = sales_service.create_sale(
            user_id=data.get("user_id"),
            company_id=g.company_id,
            staff_id=data.get("staff_id"),
            appointment_id=data.get("appointment_id"),
            services_used=data.get("services_used"),
            products_used=data.get("products_used"),
            total_amount=data.get("total_amount"),
            subtotal=data.get("subtotal"),
            discount_amount=data.get("discount_amount"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TransactionFailure:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict()}), 201


@sales_bp.delete("/<sale_id>")
@require_company_context
def delete_sale_route(sale_id: str):
    try:
        _sale_in_company(sale_id)
        deleted = sales_service.delete_sale(sale_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except TransactionFailure:
        current_app.logger.exception("Failed to delete sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500

    if not deleted:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"message": "Sale deleted"}), 200


@sales_bp.delete("/<sale_id>/items/<item_id>")
@require_company_context
def delete_sale_item_route(sale_id: str, item_id: str):
    """Remove one line; the response carries the recalculated totals."""
    try:
        _sale_in_company(sale_id)
        sale = sales_service.delete_sale_item(sale_id, item_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except TransactionFailure:
        current_app.logger.exception("Failed to delete item %s from sale %s", item_id, sale_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict()}), 200
