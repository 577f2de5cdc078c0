# Overview: Service-layer operations for product variants; owns the default flag and the active-stock pointer.

# backend/stockpost/services/variant_service.py

from __future__ import annotations

import logging

from ..extensions import db
from ..models import CatalogVariant, CompanyProduct, SaleItem, StockLot, Variant
from ..validation import ConflictError, NotFoundError, ValidationError, parse_positive_int
from stockpost.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction

"""
Variant Registry Invariants

SINGLE DEFAULT:
- At most one variant per company_product has is_default=True.
- Enforced by reset-then-set inside ONE transaction: siblings are cleared
  first, then the new/updated variant is written as default. There is no
  unique constraint backing this, so every write path goes through here.

FIRST VARIANT:
- The first variant created for a product is default regardless of input.

ACTIVE STOCK POINTER:
- Set once, on the first stock intake for the variant. Later intakes leave
  it alone; callers repoint it explicitly via update_variant.
"""

logger = logging.getLogger(__name__)

DEFAULT_VARIANT_TYPE = "service"
DEFAULT_MIN_STOCK = 10
DEFAULT_MAX_STOCK = 100

VARIANT_MUTABLE_FIELDS = {
    "system_product_variant_id",
    "type",
    "is_default",
    "is_active",
    "active_stock_id",
    "min_stock",
    "max_stock",
}


def _require_product(s, company_product_id: str) -> CompanyProduct:
    if not company_product_id:
        raise ValidationError("company_product_id is required")
    product = s.get(CompanyProduct, company_product_id)
    if product is None:
        raise NotFoundError("Company product not found")
    return product


def _require_catalog_variant(s, system_product_variant_id: str) -> None:
    if not system_product_variant_id:
        raise ValidationError("system_product_variant_id is required")
    if s.get(CatalogVariant, system_product_variant_id) is None:
        raise ValidationError("system_product_variant_id does not reference a catalog variant")


def _reset_sibling_defaults(s, company_product_id: str, *, exclude_id: str | None = None) -> int:
    q = s.query(Variant).filter(
        Variant.company_product_id == company_product_id,
        Variant.is_default.is_(True),
    )
    if exclude_id:
        q = q.filter(Variant.id != exclude_id)
    return q.update(
        {Variant.is_default: False, Variant.updated_at: utcnow()},
        synchronize_session="fetch",
    )


def _count_variants(s, company_product_id: str) -> int:
    return s.query(Variant).filter(Variant.company_product_id == company_product_id).count()


def _build_variant(company_product_id: str, spec: dict, *, is_default: bool) -> Variant:
    min_stock = spec.get("min_stock")
    max_stock = spec.get("max_stock")
    min_stock = DEFAULT_MIN_STOCK if min_stock is None else parse_positive_int(min_stock, "min_stock", allow_zero=True)
    max_stock = DEFAULT_MAX_STOCK if max_stock is None else parse_positive_int(max_stock, "max_stock", allow_zero=True)
    if min_stock > max_stock:
        raise ValidationError("min_stock cannot exceed max_stock")

    is_active = spec.get("is_active")
    return Variant(
        company_product_id=company_product_id,
        system_product_variant_id=spec.get("system_product_variant_id"),
        type=spec.get("type") or DEFAULT_VARIANT_TYPE,
        is_default=is_default,
        is_active=True if is_active is None else bool(is_active),
        min_stock=min_stock,
        max_stock=max_stock,
    )


def create_variant(
    *,
    company_product_id: str,
    system_product_variant_id: str,
    type: str | None = None,
    is_default: bool | None = None,
    is_active: bool | None = None,
    min_stock: int | None = None,
    max_stock: int | None = None,
    session=None,
) -> Variant:
    """
    Create one variant.

    The first variant of a product is forced default. When the new variant
    ends up default, siblings are reset before the insert.
    """
    spec = {
        "system_product_variant_id": system_product_variant_id,
        "type": type,
        "is_active": is_active,
        "min_stock": min_stock,
        "max_stock": max_stock,
    }

    def _op(s):
        _require_product(s, company_product_id)
        _require_catalog_variant(s, system_product_variant_id)

        make_default = bool(is_default) or _count_variants(s, company_product_id) == 0
        variant = _build_variant(company_product_id, spec, is_default=make_default)
        if make_default:
            _reset_sibling_defaults(s, company_product_id)

        s.add(variant)
        s.flush()
        logger.info("Created variant %s for product %s (default=%s)", variant.id, company_product_id, make_default)
        return variant

    return run_in_transaction(_op, operation="creating product variant", session=session)


def create_variants_bulk(company_product_id: str, specs: list[dict], session=None) -> list[Variant]:
    """
    Insert several variants for one product in a single unit of work.

    Default rules:
    - any spec flagged default -> siblings reset once, the first flagged spec
      is the default and later flags are dropped
    - exactly one spec, none flagged -> that one becomes default
    - two or more specs, none flagged -> none default

    Adopts `session` when the caller already holds a transaction (e.g. product
    creation); otherwise commits or rolls back on its own.
    """
    if not isinstance(specs, list) or not specs:
        raise ValidationError("At least one variant is required")
    for spec in specs:
        if not isinstance(spec, dict):
            raise ValidationError("Each variant must be an object")

    flagged = [i for i, spec in enumerate(specs) if spec.get("is_default")]
    if flagged:
        default_index = flagged[0]
        if len(flagged) > 1:
            logger.warning(
                "Bulk variant create for product %s flagged %d defaults; keeping the first",
                company_product_id, len(flagged),
            )
    elif len(specs) == 1:
        default_index = 0
    else:
        default_index = None

    def _op(s):
        _require_product(s, company_product_id)
        for spec in specs:
            _require_catalog_variant(s, spec.get("system_product_variant_id"))

        if default_index is not None:
            _reset_sibling_defaults(s, company_product_id)

        created = []
        for i, spec in enumerate(specs):
            variant = _build_variant(company_product_id, spec, is_default=(i == default_index))
            s.add(variant)
            created.append(variant)
        s.flush()
        logger.info("Created %d variants for product %s", len(created), company_product_id)
        return created

    return run_in_transaction(_op, operation="creating product variants", session=session)


def get_variant(variant_id: str) -> Variant | None:
    return db.session.get(Variant, variant_id)


def require_variant_in_company(variant_id: str, company_id: str) -> Variant:
    """
    MULTI-TENANT: the variant must hang off a product of `company_id`.

    A variant of another company is reported exactly like a missing one.
    """
    variant = db.session.get(Variant, variant_id)
    if variant is None or variant.company_product is None or variant.company_product.company_id != company_id:
        raise NotFoundError("Variant not found")
    return variant


def require_product_in_company(company_product_id: str, company_id: str) -> CompanyProduct:
    product = db.session.get(CompanyProduct, company_product_id) if company_product_id else None
    if product is None or product.company_id != company_id:
        raise NotFoundError("Company product not found")
    return product


def list_variants(company_product_id: str) -> list[Variant]:
    return (
        db.session.query(Variant)
        .filter(Variant.company_product_id == company_product_id)
        .order_by(Variant.is_default.desc(), Variant.created_at.asc())
        .all()
    )


def update_variant(variant_id: str, patch: dict, *, session=None) -> Variant:
    """
    Partial update. Setting is_default=True clears the flag on every sibling
    (excluding this variant) before this row is written.
    """
    patch = patch or {}

    def _op(s):
        variant = lock_for_update(s.query(Variant).filter_by(id=variant_id)).first()
        if variant is None:
            raise NotFoundError("Variant not found")

        if "system_product_variant_id" in patch:
            _require_catalog_variant(s, patch["system_product_variant_id"])
        if patch.get("active_stock_id"):
            lot = s.get(StockLot, patch["active_stock_id"])
            if lot is None or lot.variant_id != variant.id:
                raise ValidationError("active_stock_id must reference a stock entry of this variant")

        if patch.get("is_default"):
            _reset_sibling_defaults(s, variant.company_product_id, exclude_id=variant.id)

        for key, value in patch.items():
            if key not in VARIANT_MUTABLE_FIELDS:
                continue
            if key in ("min_stock", "max_stock"):
                value = parse_positive_int(value, key, allow_zero=True)
            elif key in ("is_default", "is_active"):
                value = bool(value)
            elif key == "active_stock_id":
                value = value or None
            elif key == "type":
                value = value or DEFAULT_VARIANT_TYPE
            setattr(variant, key, value)

        if variant.min_stock > variant.max_stock:
            raise ValidationError("min_stock cannot exceed max_stock")

        variant.updated_at = utcnow()
        s.flush()
        return variant

    return run_in_transaction(_op, operation="updating product variant", session=session)


def assign_active_stock_if_unset(variant_id: str, lot_id: str, *, session) -> bool:
    """Point the variant at `lot_id` when it has no active stock yet. Returns True when it did."""
    variant = lock_for_update(session.query(Variant).filter_by(id=variant_id)).first()
    if variant is None:
        raise NotFoundError("Variant not found")
    if variant.active_stock_id:
        return False
    variant.active_stock_id = lot_id
    variant.updated_at = utcnow()
    session.flush()
    logger.debug("Variant %s active stock set to %s", variant_id, lot_id)
    return True


def delete_variant(variant_id: str, *, session=None) -> bool:
    """
    Remove a variant that nothing references yet.

    Stock lots and sale lines keep a foreign key to the variant, so a variant
    with either raises ConflictError and is left in place.
    """
    def _op(s):
        referenced = (
            s.query(StockLot.id).filter(StockLot.variant_id == variant_id).first() is not None
            or s.query(SaleItem.id).filter(SaleItem.variant_id == variant_id).first() is not None
        )
        if referenced:
            raise ConflictError("Variant has stock entries or sale lines")
        affected = s.query(Variant).filter_by(id=variant_id).delete(synchronize_session="fetch")
        return affected > 0

    return run_in_transaction(_op, operation="deleting product variant", session=session)


def get_stock_status(variant_id: str) -> dict:
    from .stock_service import get_total_available

    variant = db.session.get(Variant, variant_id)
    if variant is None:
        raise NotFoundError("Variant not found")

    total = get_total_available(variant_id)
    return {
        "variant_id": variant.id,
        "total_available": total,
        "min_stock": variant.min_stock,
        "max_stock": variant.max_stock,
        "low_stock": total < variant.min_stock,
        "over_stock": total > variant.max_stock,
    }
