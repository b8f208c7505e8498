from __future__ import annotations

from ..extensions import db
from robocrm.time_utils import to_utc_z


# Classification kinds shared by Dictionary and ClientClassification
KIND_CLIENT_TYPE = "client_type"
KIND_SEGMENT = "segment"
KIND_MARKET = "market"
KIND_SIZE = "size"
KIND_TAG = "tag"
CLASSIFICATION_KINDS = (KIND_CLIENT_TYPE, KIND_SEGMENT, KIND_MARKET, KIND_SIZE, KIND_TAG)


class Client(db.Model):
    """
    Customer company. Offers and contracts hang off a client by foreign key.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_city", "city"),
        db.Index("ix_clients_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    nip = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(32), nullable=False, default="active")

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
    reseller_id = db.Column(db.Integer, db.ForeignKey("resellers.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    classifications = db.relationship(
        "ClientClassification",
        backref="client",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Client id={self.id} name={self.name!r}>"

    def classification_ids(self) -> dict[str, list[int]]:
        out: dict[str, list[int]] = {kind: [] for kind in CLASSIFICATION_KINDS}
        for row in self.classifications:
            out.setdefault(row.kind, []).append(row.dictionary_id)
        for ids in out.values():
            ids.sort()
        return out

    def to_dict(self, include_classifications: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "nip": self.nip,
            "status": self.status,
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
            "reseller_id": self.reseller_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_classifications:
            data["classifications"] = self.classification_ids()
        return data


class Dictionary(db.Model):
    """
    Admin-maintained value lists (client types, segments, markets, sizes, tags).
    """
    __tablename__ = "dictionaries"
    __table_args__ = (
        db.UniqueConstraint("kind", "name", name="uq_dictionaries_kind_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class ClientClassification(db.Model):
    """Many-to-many link between a client and a dictionary value."""
    __tablename__ = "client_classifications"
    __table_args__ = (
        db.UniqueConstraint("client_id", "dictionary_id", name="uq_client_classifications_pair"),
        db.Index("ix_client_classifications_kind_dict", "kind", "dictionary_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    dictionary_id = db.Column(db.Integer, db.ForeignKey("dictionaries.id"), nullable=False)
    # Denormalized from Dictionary.kind so audience filters need no join
    kind = db.Column(db.String(32), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    dictionary = db.relationship("Dictionary")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "dictionary_id": self.dictionary_id,
            "kind": self.kind,
        }
