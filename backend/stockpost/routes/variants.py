# Overview: Flask API routes for product variants; parses input and returns JSON responses.

# backend/stockpost/routes/variants.py
"""
Product variant routes with multi-tenant support.

MULTI-TENANT: Variants are reached through their company product, which must
belong to g.company_id. Other companies' variants answer 404.
"""
from flask import Blueprint, request, g, current_app

from ..models import Variant
from ..services import variant_service
from ..services.concurrency import TransactionFailure
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_variant,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_company_context

VARIANT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "company_product_id",
        "system_product_variant_id",
        "type",
        "is_default",
        "is_active",
        "min_stock",
        "max_stock",
    },
    required_on_create={"company_product_id", "system_product_variant_id"},
)

VARIANT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "system_product_variant_id",
        "type",
        "is_default",
        "is_active",
        "active_stock_id",
        "min_stock",
        "max_stock",
    },
)

variants_bp = Blueprint("variants", __name__, url_prefix="/api/variants")


@variants_bp.get("")
@require_company_context
def list_variants_route():
    """
    List a product's variants, default first.

    Query params:
    - company_product_id: str (required)
    """
    company_product_id = request.args.get("company_product_id")
    if not company_product_id:
        return {"error": "company_product_id is required"}, 400

    try:
        variant_service.require_product_in_company(company_product_id, g.company_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    variants = variant_service.list_variants(company_product_id)
    return {"items": [v.to_dict() for v in variants], "count": len(variants)}


@variants_bp.get("/<variant_id>")
@require_company_context
def get_variant_route(variant_id: str):
    try:
        variant = variant_service.require_variant_in_company(variant_id, g.company_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"variant": variant.to_dict()}


@variants_bp.get("/<variant_id>/stock-status")
@require_company_context
def variant_stock_status_route(variant_id: str):
    """Total available stock against the variant's min/max thresholds."""
    try:
        variant_service.require_variant_in_company(variant_id, g.company_id)
        status = variant_service.get_stock_status(variant_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return status


@variants_bp.post("")
@require_company_context
def create_variant_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Variant, payload=payload, policy=VARIANT_CREATE_POLICY, partial=False)
        enforce_rules_variant(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        variant_service.require_product_in_company(patch["company_product_id"], g.company_id)
        variant = variant_service.create_variant(**patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400
    except TransactionFailure:
        current_app.logger.exception("Failed to create variant")
        return {"error": "Internal server error"}, 500

    return {"variant": variant.to_dict()}, 201


@variants_bp.post("/bulk")
@require_company_context
def create_variants_bulk_route():
    """
    Create several variants for one product in one transaction.

    Body: {"company_product_id": "...", "variants": [{...}, ...]}
    """
    payload = request.get_json(silent=True) or {}
    company_product_id = payload.get("company_product_id")
    specs = payload.get("variants")

    if not company_product_id:
        return {"error": "company_product_id is required"}, 400
    if not isinstance(specs, list) or not specs:
        return {"error": "variants must be a non-empty list"}, 400

    cleaned = []
    try:
        for spec in specs:
            if not isinstance(spec, dict):
                raise ValidationError("Each variant must be an object")
            patch = validate_payload(
                model=Variant,
                payload={k: v for k, v in spec.items() if k != "company_product_id"},
                policy=VARIANT_CREATE_POLICY,
                partial=True,
            )
            if "system_product_variant_id" not in patch:
                raise ValidationError("Missing required fields: system_product_variant_id")
            enforce_rules_variant(patch)
            cleaned.append(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        variant_service.require_product_in_company(company_product_id, g.company_id)
        variants = variant_service.create_variants_bulk(company_product_id, cleaned)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400
    except TransactionFailure:
        current_app.logger.exception("Failed to bulk create variants")
        return {"error": "Internal server error"}, 500

    return {"items": [v.to_dict() for v in variants], "count": len(variants)}, 201


@variants_bp.put("/<variant_id>")
@require_company_context
def update_variant_route(variant_id: str):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Variant, payload=payload, policy=VARIANT_UPDATE_POLICY, partial=True)
        enforce_rules_variant(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        variant_service.require_variant_in_company(variant_id, g.company_id)
        variant = variant_service.update_variant(variant_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValueError as e:
        return {"error": str(e)}, 400
    except TransactionFailure:
        current_app.logger.exception("Failed to update variant %s", variant_id)
        return {"error": "Internal server error"}, 500

    return {"variant": variant.to_dict()}


@variants_bp.delete("/<variant_id>")
@require_company_context
def delete_variant_route(variant_id: str):
    try:
        variant_service.require_variant_in_company(variant_id, g.company_id)
        variant_service.delete_variant(variant_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TransactionFailure:
        current_app.logger.exception("Failed to delete variant %s", variant_id)
        return {"error": "Internal server error"}, 500

    return {"message": "Variant deleted"}
