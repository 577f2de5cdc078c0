from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..validation import to_money_str
from stockpost.time_utils import to_iso_date, to_utc_z, utcnow

class CompanyClient(db.Model):
    """
    Lightweight "who are this company's clients" tracking row.

    Written best-effort after sales/appointments; never part of the
    transaction of the event it records.
    """
    __tablename__ = "company_users"
    __table_args__ = (
        db.UniqueConstraint("company_id", "user_id", name="uq_company_users_company_user"),
    )

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    company_id = db.Column(db.String(10), db.ForeignKey("companies.id"), nullable=False, index=True)
    user_id = db.Column(db.String(10), db.ForeignKey("users.id"), nullable=False, index=True)

    first_interaction_date = db.Column(db.Date, nullable=False)
    last_interaction_date = db.Column(db.Date, nullable=False)

    total_appointments = db.Column(db.Integer, nullable=False, default=0)
    total_sales = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<CompanyClient company_id={self.company_id} user_id={self.user_id} sales={self.total_sales}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "first_interaction_date": to_iso_date(self.first_interaction_date),
            "last_interaction_date": to_iso_date(self.last_interaction_date),
            "total_appointments": self.total_appointments,
            "total_sales": self.total_sales,
            "total_spent": to_money_str(self.total_spent),
            "created_at": to_utc_z(self.created_at),
        }
