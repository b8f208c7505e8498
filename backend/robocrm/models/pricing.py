from __future__ import annotations

from ..extensions import db
from robocrm.money import money_out
from robocrm.time_utils import to_utc_z


def _per_currency(row, prefix: str) -> dict:
    return {
        f"{prefix}_pln_net": money_out(getattr(row, f"{prefix}_pln_net")),
        f"{prefix}_usd_net": money_out(getattr(row, f"{prefix}_usd_net")),
        f"{prefix}_eur_net": money_out(getattr(row, f"{prefix}_eur_net")),
    }


class RobotPricing(db.Model):
    """
    Net price list for one robot model.

    Sale prices are mandatory in all three currencies; promo, lowest
    (admin-only), evidence (cost) and try&buy prices are optional overrides.
    """
    __tablename__ = "robot_pricing"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    robot_model = db.Column(db.String(128), nullable=False, unique=True, index=True)

    sale_price_pln_net = db.Column(db.Numeric(14, 2), nullable=False)
    sale_price_usd_net = db.Column(db.Numeric(14, 2), nullable=False)
    sale_price_eur_net = db.Column(db.Numeric(14, 2), nullable=False)

    promo_price_pln_net = db.Column(db.Numeric(14, 2), nullable=True)
    promo_price_usd_net = db.Column(db.Numeric(14, 2), nullable=True)
    promo_price_eur_net = db.Column(db.Numeric(14, 2), nullable=True)

    lowest_price_pln_net = db.Column(db.Numeric(14, 2), nullable=True)
    lowest_price_usd_net = db.Column(db.Numeric(14, 2), nullable=True)
    lowest_price_eur_net = db.Column(db.Numeric(14, 2), nullable=True)

    evidence_price_pln_net = db.Column(db.Numeric(14, 2), nullable=True)
    evidence_price_usd_net = db.Column(db.Numeric(14, 2), nullable=True)
    evidence_price_eur_net = db.Column(db.Numeric(14, 2), nullable=True)

    try_buy_price_pln_net = db.Column(db.Numeric(14, 2), nullable=True)
    try_buy_price_usd_net = db.Column(db.Numeric(14, 2), nullable=True)
    try_buy_price_eur_net = db.Column(db.Numeric(14, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    lease_prices = db.relationship(
        "LeasePricing",
        backref="robot_pricing",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="LeasePricing.months",
    )

    def __repr__(self) -> str:
        return f"<RobotPricing id={self.id} robot_model={self.robot_model!r}>"

    def to_dict(self, include_lowest: bool = False, include_lease: bool = True) -> dict:
        data = {
            "id": self.id,
            "robot_model": self.robot_model,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        data.update(_per_currency(self, "sale_price"))
        data.update(_per_currency(self, "promo_price"))
        data.update(_per_currency(self, "evidence_price"))
        data.update(_per_currency(self, "try_buy_price"))
        if include_lowest:
            data.update(_per_currency(self, "lowest_price"))
        if include_lease:
            data["lease_pricing"] = [lp.to_dict() for lp in self.lease_prices]
        return data


class LeasePricing(db.Model):
    """Monthly net lease price for a (robot, term-in-months) pair."""
    __tablename__ = "lease_pricing"
    __table_args__ = (
        db.UniqueConstraint("robot_pricing_id", "months", name="uq_lease_pricing_robot_months"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    robot_pricing_id = db.Column(db.Integer, db.ForeignKey("robot_pricing.id"), nullable=False, index=True)
    months = db.Column(db.Integer, nullable=False)

    price_pln_net = db.Column(db.Numeric(14, 2), nullable=False)
    price_usd_net = db.Column(db.Numeric(14, 2), nullable=False)
    price_eur_net = db.Column(db.Numeric(14, 2), nullable=False)

    evidence_price_pln_net = db.Column(db.Numeric(14, 2), nullable=True)
    evidence_price_usd_net = db.Column(db.Numeric(14, 2), nullable=True)
    evidence_price_eur_net = db.Column(db.Numeric(14, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "robot_pricing_id": self.robot_pricing_id,
            "months": self.months,
            "created_at": to_utc_z(self.created_at),
        }
        data.update(_per_currency(self, "price"))
        data.update(_per_currency(self, "evidence_price"))
        return data


class Item(db.Model):
    """Ancillary catalog item (installation, training, accessories). Purchase only."""
    __tablename__ = "items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    item_type = db.Column(db.String(64), nullable=False, default="service")
    price_net = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=23)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "item_type": self.item_type,
            "price_net": money_out(self.price_net),
            "vat_rate": money_out(self.vat_rate),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
