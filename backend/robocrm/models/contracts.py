from __future__ import annotations

from ..extensions import db
from robocrm.money import money_out
from robocrm.time_utils import to_utc_z, to_iso_date


STATUS_DRAFT = "draft"
STATUS_PENDING_SIGNATURE = "pending_signature"
STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_CANCELLED = "cancelled"
CONTRACT_STATUSES = (
    STATUS_DRAFT,
    STATUS_PENDING_SIGNATURE,
    STATUS_ACTIVE,
    STATUS_EXPIRED,
    STATUS_CANCELLED,
)

PAYMENT_MODEL_PURCHASE = "purchase"
PAYMENT_MODEL_LEASE = "lease"
PAYMENT_MODEL_MIXED = "mixed"
PAYMENT_MODELS = (PAYMENT_MODEL_PURCHASE, PAYMENT_MODEL_LEASE, PAYMENT_MODEL_MIXED)


class Contract(db.Model):
    """
    Contract with a client, optionally derived from a won offer.

    contract_number is unique; generation lives in numbering_service and a
    collision on insert surfaces as DuplicateContractNumberError.
    """
    __tablename__ = "contracts"
    __table_args__ = (
        db.UniqueConstraint("contract_number", name="uq_contracts_contract_number"),
        db.Index("ix_contracts_client_status", "client_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    contract_number = db.Column(db.String(64), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    offer_id = db.Column(db.Integer, db.ForeignKey("offers.id"), nullable=True, index=True)

    status = db.Column(db.String(32), nullable=False, default=STATUS_DRAFT)
    payment_model = db.Column(db.String(16), nullable=False, default=PAYMENT_MODEL_PURCHASE)
    monthly_payment = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    billing_schedule = db.Column(db.String(32), nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    terms = db.Column(db.Text, nullable=True)

    # Financial summary
    total_purchase_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_monthly_contracted = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    warranty_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    implementation_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    other_services_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    other_services_description = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    client = db.relationship("Client", backref=db.backref("contracts", lazy=True))
    offer = db.relationship("Offer", backref=db.backref("contracts", lazy=True))

    def __repr__(self) -> str:
        return f"<Contract id={self.id} number={self.contract_number!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contract_number": self.contract_number,
            "client_id": self.client_id,
            "offer_id": self.offer_id,
            "status": self.status,
            "payment_model": self.payment_model,
            "monthly_payment": money_out(self.monthly_payment),
            "billing_schedule": self.billing_schedule,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "terms": self.terms,
            "total_purchase_value": money_out(self.total_purchase_value),
            "total_monthly_contracted": money_out(self.total_monthly_contracted),
            "warranty_cost": money_out(self.warranty_cost),
            "implementation_cost": money_out(self.implementation_cost),
            "other_services_cost": money_out(self.other_services_cost),
            "other_services_description": self.other_services_description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ContractVersion(db.Model):
    """Immutable PDF snapshot of a contract. version_number strictly increases per contract."""
    __tablename__ = "contract_versions"
    __table_args__ = (
        db.UniqueConstraint("contract_id", "version_number", name="uq_contract_versions_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(db.Integer, db.ForeignKey("contracts.id"), nullable=False, index=True)
    version_number = db.Column(db.Integer, nullable=False)
    file_path = db.Column(db.String(512), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    generated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    contract = db.relationship("Contract", backref=db.backref("versions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contract_id": self.contract_id,
            "version_number": self.version_number,
            "file_path": self.file_path,
            "notes": self.notes,
            "generated_by_user_id": self.generated_by_user_id,
            "generated_at": to_utc_z(self.generated_at),
        }


class ContractEmailLog(db.Model):
    """Record of a contract PDF emailed to a client through the email function."""
    __tablename__ = "contract_email_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(db.Integer, db.ForeignKey("contracts.id"), nullable=False, index=True)
    version_id = db.Column(db.Integer, db.ForeignKey("contract_versions.id"), nullable=False)
    recipient_email = db.Column(db.String(255), nullable=False)
    sent_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contract_id": self.contract_id,
            "version_id": self.version_id,
            "recipient_email": self.recipient_email,
            "sent_by_user_id": self.sent_by_user_id,
            "sent_at": to_utc_z(self.sent_at),
        }
