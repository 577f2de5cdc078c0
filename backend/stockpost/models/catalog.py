from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from stockpost.time_utils import to_utc_z, utcnow

class CatalogVariant(db.Model):
    """
    System-wide catalog variant (name/SKU registry).

    Company variants reference one of these and inherit its display name
    and SKU. Read-only from the inventory core.
    """
    __tablename__ = "product_variants"

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<CatalogVariant id={self.id} sku={self.sku!r}>"


class CompanyProduct(db.Model):
    """A product a company sells. Variants hang off this row."""
    __tablename__ = "company_products"

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    company_id = db.Column(db.String(10), db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    unit = db.Column(db.String(32), nullable=True)

    is_available_for_purchase = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    company = db.relationship("Company", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<CompanyProduct id={self.id} name={self.name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "is_available_for_purchase": self.is_available_for_purchase,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CompanyService(db.Model):
    """A bookable service (haircut, massage, ...). Sale service lines point here."""
    __tablename__ = "company_services"

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    company_id = db.Column(db.String(10), db.ForeignKey("companies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="Active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("services", lazy=True))

    def __repr__(self) -> str:
        return f"<CompanyService id={self.id} name={self.name!r}>"
