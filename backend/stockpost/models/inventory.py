from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..validation import to_money_str
from stockpost.time_utils import to_iso_date, to_utc_z, utcnow

class StockLot(db.Model):
    """
    One purchased batch of a variant's stock.

    INVARIANTS:
    - quantity is never negative (CHECK constraint + service-level floor at 0)
    - inactive lots are excluded from availability and from FIFO deduction

    FIFO ORDER: purchase_date ASC (undated lots first), then created_at ASC.
    The (variant_id, is_active, purchase_date) index backs that scan.
    """
    __tablename__ = "company_product_stock"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
        db.CheckConstraint("cost_price >= 0", name="ck_stock_cost_non_negative"),
        db.Index("ix_stock_variant_active_purchase", "variant_id", "is_active", "purchase_date"),
    )

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    variant_id = db.Column(db.String(10), db.ForeignKey("company_product_variants.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sell_price = db.Column(db.Numeric(12, 2), nullable=True)

    purchase_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    supplier_id = db.Column(db.String(10), db.ForeignKey("users.id"), nullable=True, index=True)
    batch_number = db.Column(db.String(64), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    variant = db.relationship("Variant", foreign_keys=[variant_id])
    supplier = db.relationship("User", foreign_keys=[supplier_id])

    def __repr__(self) -> str:
        return f"<StockLot id={self.id} variant_id={self.variant_id} qty={self.quantity} active={self.is_active}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "cost_price": to_money_str(self.cost_price),
            "sell_price": to_money_str(self.sell_price),
            "purchase_date": to_iso_date(self.purchase_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "supplier_id": self.supplier_id,
            # Supplier details joined from users
            "supplier": self.supplier.to_contact_dict() if self.supplier_id and self.supplier else None,
            "batch_number": self.batch_number,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Variant(db.Model):
    """
    A sellable configuration of a company's product.

    SINGLE DEFAULT: at most one variant per company_product has is_default=True.
    Enforced by variant_service (reset siblings, then set, same transaction),
    not by a database constraint.

    ACTIVE STOCK POINTER: active_stock_id names the lot used to display the
    variant's "current" cost/sell price/quantity. It is a plain column rather
    than a foreign key so lots -> variants stays the only FK between the two
    tables.
    """
    __tablename__ = "company_product_variants"
    __table_args__ = (
        db.Index("ix_variants_product_default", "company_product_id", "is_default"),
    )

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    company_product_id = db.Column(db.String(10), db.ForeignKey("company_products.id"), nullable=False, index=True)
    system_product_variant_id = db.Column(db.String(10), db.ForeignKey("product_variants.id"), nullable=False, index=True)

    # Company-specific type tag
    type = db.Column(db.String(32), nullable=False, default="service")

    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    active_stock_id = db.Column(db.String(10), nullable=True)

    min_stock = db.Column(db.Integer, nullable=False, default=10)
    max_stock = db.Column(db.Integer, nullable=False, default=100)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    company_product = db.relationship("CompanyProduct", foreign_keys=[company_product_id])
    catalog_variant = db.relationship("CatalogVariant", foreign_keys=[system_product_variant_id])
    active_stock = db.relationship(
        "StockLot",
        primaryjoin="foreign(Variant.active_stock_id) == StockLot.id",
        viewonly=True,
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Variant id={self.id} company_product_id={self.company_product_id} default={self.is_default}>"

    @property
    def name(self) -> str | None:
        return self.catalog_variant.name if self.catalog_variant else None

    @property
    def sku(self) -> str | None:
        return self.catalog_variant.sku if self.catalog_variant else None

    def active_stock_projection(self) -> dict | None:
        """Read-only view of the pointed lot; None when unset or the lot is inactive."""
        lot = self.active_stock
        if lot is None or not lot.is_active:
            return None
        return {
            "cost_price": to_money_str(lot.cost_price),
            "sell_price": to_money_str(lot.sell_price),
            "quantity": lot.quantity,
        }

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "company_product_id": self.company_product_id,
            "system_product_variant_id": self.system_product_variant_id,
            "name": self.name,
            "sku": self.sku,
            "type": self.type,
            "is_default": self.is_default,
            "is_active": self.is_active,
            "active_stock_id": self.active_stock_id,
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        projection = self.active_stock_projection()
        if projection is not None:
            data["active_stock"] = projection
        return data
