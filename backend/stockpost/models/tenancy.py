from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from stockpost.time_utils import to_utc_z, utcnow

class Company(db.Model):
    """
    Multi-tenant root: every tenant is a Company.

    WHY: Products, variants, services and sales all belong to exactly one
    company. Authorization is done upstream; the core only trusts the
    company id it is handed.
    """
    __tablename__ = "companies"

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class User(db.Model):
    """
    Person record: buyers on sales, suppliers on stock lots.

    Credentials and roles live with the authentication collaborator; only
    the display fields the core joins against are kept here.
    """
    __tablename__ = "users"

    id = db.Column(db.String(10), primary_key=True, default=new_id)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(255), nullable=True, unique=True, index=True)
    phone = db.Column(db.String(32), nullable=True)
    avatar = db.Column(db.String(512), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
    )

    @property
    def full_name(self) -> str | None:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}".strip()
        return None

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_contact_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
        }
