from __future__ import annotations

from sqlalchemy import case

from ..extensions import db
from ..ids import new_id
from ..validation import to_money_str
from stockpost.time_utils import to_utc_z, utcnow

ITEM_TYPE_SERVICE = "service"
ITEM_TYPE_PRODUCT = "product"
ITEM_TYPES = (ITEM_TYPE_SERVICE, ITEM_TYPE_PRODUCT)


def item_type_rank():
    """Sort key putting service lines before product lines."""
    return case((SaleItem.item_type == ITEM_TYPE_SERVICE, 0), else_=1)


class Sale(db.Model):
    """
    Sale header (the transaction record).

    TOTALS INVARIANT (kept by sales_service after every item mutation):
        subtotal        = SUM(quantity * unit_price)
        discount_amount = SUM(quantity * unit_price * discount / 100)
        total_amount    = subtotal - discount_amount

    Items are exclusively owned: they are created with the sale and deleted
    with it. Deletion is explicit (sales_service), not an ORM cascade.
    """
    __tablename__ = "company_sales"
    __table_args__ = (
        db.Index("ix_sales_company_created", "company_id", "created_at"),
    )

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    user_id = db.Column(db.String(10), db.ForeignKey("users.id"), nullable=False, index=True)
    company_id = db.Column(db.String(10), db.ForeignKey("companies.id"), nullable=False, index=True)

    # Staff live with another collaborator; opaque reference only
    staff_id = db.Column(db.String(10), nullable=True, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    user = db.relationship("User", foreign_keys=[user_id])
    company = db.relationship("Company", foreign_keys=[company_id])
    items = db.relationship(
        "SaleItem",
        primaryjoin="Sale.id == SaleItem.sale_id",
        order_by=lambda: [item_type_rank(), SaleItem.created_at],
        viewonly=True,
    )
    appointment = db.relationship(
        "CompanyAppointment",
        primaryjoin="Sale.id == CompanyAppointment.sale_id",
        uselist=False,
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} company_id={self.company_id} total={self.total_amount}>"

    def to_dict(self, items: list | None = None) -> dict:
        if items is None:
            items = self.items
        user = self.user
        appointment = self.appointment
        return {
            "id": self.id,
            "user_id": self.user_id,
            "company_id": self.company_id,
            "staff_id": self.staff_id,
            "subtotal": to_money_str(self.subtotal),
            "discount_amount": to_money_str(self.discount_amount),
            "total_amount": to_money_str(self.total_amount),
            "items": [item.to_dict() for item in items],
            "services_used": [item.to_line_dict() for item in items if item.item_type == ITEM_TYPE_SERVICE],
            "products_used": [item.to_line_dict() for item in items if item.item_type == ITEM_TYPE_PRODUCT],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            # Joined customer / company display data
            "user_name": user.full_name if user else None,
            "user_first_name": user.first_name if user else None,
            "user_last_name": user.last_name if user else None,
            "user_email": user.email if user else None,
            "user_phone": user.phone if user else None,
            "user_avatar": user.avatar if user else None,
            "company_name": self.company.name if self.company else None,
            # Linked appointment, if the sale settled one
            "appointment_id": appointment.id if appointment else None,
            "appointment_service_id": appointment.service_id if appointment else None,
            "space_id": appointment.space_id if appointment else None,
        }


class SaleItem(db.Model):
    """
    One priced line of a sale.

    Exactly one of service_id / variant_id is set, chosen by item_type.
    The product is never stored on the line: product_id is derived through
    variant -> company_product so it cannot drift.
    """
    __tablename__ = "company_sales_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity_positive"),
        db.CheckConstraint("discount >= 0 AND discount <= 100", name="ck_sale_items_discount_pct"),
        db.CheckConstraint(
            "(item_type = 'service' AND service_id IS NOT NULL AND variant_id IS NULL) OR "
            "(item_type = 'product' AND variant_id IS NOT NULL AND service_id IS NULL)",
            name="ck_sale_items_reference_matches_type",
        ),
        db.Index("ix_sale_items_sale_type_created", "sale_id", "item_type", "created_at"),
    )

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    sale_id = db.Column(db.String(10), db.ForeignKey("company_sales.id"), nullable=False, index=True)

    item_type = db.Column(db.String(16), nullable=False)
    service_id = db.Column(db.String(10), db.ForeignKey("company_services.id"), nullable=True, index=True)
    variant_id = db.Column(db.String(10), db.ForeignKey("company_product_variants.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    service = db.relationship("CompanyService", foreign_keys=[service_id], viewonly=True)
    variant = db.relationship("Variant", foreign_keys=[variant_id], viewonly=True)

    def __repr__(self) -> str:
        ref = self.service_id if self.item_type == ITEM_TYPE_SERVICE else self.variant_id
        return f"<SaleItem id={self.id} sale_id={self.sale_id} {self.item_type}={ref} qty={self.quantity}>"

    @property
    def product_id(self) -> str | None:
        """Company product behind a product line; None for services and orphaned variants."""
        if self.item_type != ITEM_TYPE_PRODUCT or self.variant is None:
            return None
        return self.variant.company_product_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_type": self.item_type,
            "service_id": self.service_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "unit_price": to_money_str(self.unit_price),
            "discount": to_money_str(self.discount),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }

    def to_line_dict(self) -> dict:
        """Compact line shape used by services_used / products_used."""
        line = {
            "id": self.id,
            "quantity": self.quantity,
            "unit_price": to_money_str(self.unit_price),
            "discount": to_money_str(self.discount),
        }
        if self.item_type == ITEM_TYPE_SERVICE:
            line["service_id"] = self.service_id
        else:
            line["variant_id"] = self.variant_id
        return line
