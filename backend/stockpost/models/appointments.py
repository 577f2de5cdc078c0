from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from stockpost.time_utils import to_utc_z, utcnow

class CompanyAppointment(db.Model):
    """
    A booked visit. Owned by the scheduling side; the inventory core only
    reads it and links it to the sale that settled it.

    space_id names a room or chair in the scheduling collaborator and is kept
    as an opaque reference.
    """
    __tablename__ = "company_appointments"

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    company_id = db.Column(db.String(10), db.ForeignKey("companies.id"), nullable=False, index=True)
    user_id = db.Column(db.String(10), db.ForeignKey("users.id"), nullable=False, index=True)
    service_id = db.Column(db.String(10), db.ForeignKey("company_services.id"), nullable=True, index=True)
    space_id = db.Column(db.String(10), nullable=True)

    # Set once the appointment is paid; cleared when that sale is deleted
    sale_id = db.Column(db.String(10), db.ForeignKey("company_sales.id"), nullable=True, index=True)

    scheduled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<CompanyAppointment id={self.id} company_id={self.company_id} sale_id={self.sale_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "service_id": self.service_id,
            "space_id": self.space_id,
            "sale_id": self.sale_id,
            "scheduled_at": to_utc_z(self.scheduled_at) if self.scheduled_at else None,
            "created_at": to_utc_z(self.created_at),
        }
