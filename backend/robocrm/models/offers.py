from __future__ import annotations

from ..extensions import db
from robocrm.money import money_out
from robocrm.time_utils import to_utc_z, to_iso_date


STAGE_LEADS = "leads"
STAGE_QUALIFIED = "qualified"
STAGE_PROPOSAL_SENT = "proposal_sent"
STAGE_NEGOTIATION = "negotiation"
STAGE_CLOSED_WON = "closed_won"
STAGE_CLOSED_LOST = "closed_lost"
OFFER_STAGES = (
    STAGE_LEADS,
    STAGE_QUALIFIED,
    STAGE_PROPOSAL_SENT,
    STAGE_NEGOTIATION,
    STAGE_CLOSED_WON,
    STAGE_CLOSED_LOST,
)

PREPAYMENT_NONE = "none"
PREPAYMENT_PERCENT = "percent"
PREPAYMENT_AMOUNT = "amount"
PREPAYMENT_TYPES = (PREPAYMENT_NONE, PREPAYMENT_PERCENT, PREPAYMENT_AMOUNT)

CONTRACT_TYPE_PURCHASE = "purchase"
CONTRACT_TYPE_LEASE = "lease"
CONTRACT_TYPES = (CONTRACT_TYPE_PURCHASE, CONTRACT_TYPE_LEASE)

LINE_KIND_ROBOT = "robot"
LINE_KIND_ITEM = "item"
LINE_KINDS = (LINE_KIND_ROBOT, LINE_KIND_ITEM)


class Offer(db.Model):
    """
    Sales offer (a lead until it carries line items).

    Totals are persisted as computed by pricing_service.compute_offer_totals:
    total_purchase_value and total_monthly are gross, total_price is the net
    payable on acceptance (after prepayment and initial payment).
    """
    __tablename__ = "offers"
    __table_args__ = (
        db.Index("ix_offers_client_stage", "client_id", "stage"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    offer_number = db.Column(db.String(64), nullable=False, unique=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)

    stage = db.Column(db.String(32), nullable=False, default=STAGE_LEADS, index=True)
    currency = db.Column(db.String(3), nullable=False, default="PLN")

    prepayment_type = db.Column(db.String(16), nullable=False, default=PREPAYMENT_NONE)
    prepayment_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    initial_payment = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    total_purchase_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_monthly = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    warranty_period = db.Column(db.Integer, nullable=True)
    delivery_date = db.Column(db.Date, nullable=True)
    deployment_location = db.Column(db.String(255), nullable=True)
    lead_source = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    assigned_salesperson_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    reseller_id = db.Column(db.Integer, db.ForeignKey("resellers.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    client = db.relationship("Client", backref=db.backref("offers", lazy=True))
    items = db.relationship(
        "OfferItem",
        backref="offer",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OfferItem.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "offer_number": self.offer_number,
            "client_id": self.client_id,
            "stage": self.stage,
            "currency": self.currency,
            "prepayment_type": self.prepayment_type,
            "prepayment_value": money_out(self.prepayment_value),
            "initial_payment": money_out(self.initial_payment),
            "total_purchase_value": money_out(self.total_purchase_value),
            "total_monthly": money_out(self.total_monthly),
            "total_price": money_out(self.total_price),
            "warranty_period": self.warranty_period,
            "delivery_date": to_iso_date(self.delivery_date),
            "deployment_location": self.deployment_location,
            "lead_source": self.lead_source,
            "notes": self.notes,
            "assigned_salesperson_id": self.assigned_salesperson_id,
            "reseller_id": self.reseller_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class OfferItem(db.Model):
    """
    One offer line: a robot (purchase or lease) or an ancillary item.

    For lease lines unit_price holds the resolved monthly price and
    monthly_price mirrors it; purchase and item lines carry monthly_price=0.
    """
    __tablename__ = "offer_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    offer_id = db.Column(db.Integer, db.ForeignKey("offers.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, default=LINE_KIND_ROBOT)
    robot_model = db.Column(db.String(128), nullable=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=True)
    description = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    contract_type = db.Column(db.String(16), nullable=False, default=CONTRACT_TYPE_PURCHASE)
    lease_months = db.Column(db.Integer, nullable=True)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    monthly_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    warranty_months = db.Column(db.Integer, nullable=True)
    warranty_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "offer_id": self.offer_id,
            "kind": self.kind,
            "robot_model": self.robot_model,
            "item_id": self.item_id,
            "description": self.description,
            "quantity": self.quantity,
            "contract_type": self.contract_type,
            "lease_months": self.lease_months,
            "unit_price": money_out(self.unit_price),
            "monthly_price": money_out(self.monthly_price),
            "warranty_months": self.warranty_months,
            "warranty_price": money_out(self.warranty_price),
            "created_at": to_utc_z(self.created_at),
        }


class OfferVersion(db.Model):
    """Immutable PDF snapshot of an offer. version_number strictly increases per offer."""
    __tablename__ = "offer_versions"
    __table_args__ = (
        db.UniqueConstraint("offer_id", "version_number", name="uq_offer_versions_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    offer_id = db.Column(db.Integer, db.ForeignKey("offers.id"), nullable=False, index=True)
    version_number = db.Column(db.Integer, nullable=False)
    file_path = db.Column(db.String(512), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    generated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    offer = db.relationship("Offer", backref=db.backref("versions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "offer_id": self.offer_id,
            "version_number": self.version_number,
            "file_path": self.file_path,
            "notes": self.notes,
            "generated_by_user_id": self.generated_by_user_id,
            "generated_at": to_utc_z(self.generated_at),
        }
