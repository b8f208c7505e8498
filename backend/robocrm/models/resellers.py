from __future__ import annotations

from ..extensions import db
from robocrm.money import money_out
from robocrm.time_utils import to_utc_z


RESELLER_STATUSES = ("active", "inactive")


class Reseller(db.Model):
    """
    Partner company that brings in clients and offers.

    Clients and offers point at a reseller through an optional reseller_id.
    """
    __tablename__ = "resellers"
    __table_args__ = (
        db.Index("ix_resellers_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    nip = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(32), nullable=False, default="active")
    balance = db.Column(db.Numeric(14, 2), nullable=True)

    address = db.Column(db.String(255), nullable=True)
    postal_code = db.Column(db.String(16), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    country = db.Column(db.String(128), nullable=True)
    website_url = db.Column(db.String(255), nullable=True)

    general_email = db.Column(db.String(255), nullable=True)
    general_phone = db.Column(db.String(64), nullable=True)
    primary_contact_name = db.Column(db.String(255), nullable=True)
    primary_contact_email = db.Column(db.String(255), nullable=True)
    primary_contact_phone = db.Column(db.String(64), nullable=True)
    billing_person_name = db.Column(db.String(255), nullable=True)
    billing_person_email = db.Column(db.String(255), nullable=True)
    billing_person_phone = db.Column(db.String(64), nullable=True)

    assigned_salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Reseller id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "nip": self.nip,
            "status": self.status,
            "balance": money_out(self.balance),
            "address": self.address,
            "postal_code": self.postal_code,
            "city": self.city,
            "country": self.country,
            "website_url": self.website_url,
            "general_email": self.general_email,
            "general_phone": self.general_phone,
            "primary_contact_name": self.primary_contact_name,
            "primary_contact_email": self.primary_contact_email,
            "primary_contact_phone": self.primary_contact_phone,
            "billing_person_name": self.billing_person_name,
            "billing_person_email": self.billing_person_email,
            "billing_person_phone": self.billing_person_phone,
            "assigned_salesperson_id": self.assigned_salesperson_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
