from __future__ import annotations

from ..extensions import db
from robocrm.money import money_out
from robocrm.time_utils import to_utc_z


class MonthlyRevenue(db.Model):
    """Revenue forecast vs. actual for one calendar month."""
    __tablename__ = "monthly_revenue"
    __table_args__ = (
        db.UniqueConstraint("year", "month", name="uq_monthly_revenue_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False, index=True)
    month = db.Column(db.Integer, nullable=False)
    forecast_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    actual_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="PLN")
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "year": self.year,
            "month": self.month,
            "forecast": money_out(self.forecast_amount),
            "actual": money_out(self.actual_amount),
            "currency": self.currency,
            "notes": self.notes,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class MonthlyRobotsDelivered(db.Model):
    """Robots-delivered forecast vs. actual (units) for one calendar month."""
    __tablename__ = "monthly_robots_delivered"
    __table_args__ = (
        db.UniqueConstraint("year", "month", name="uq_monthly_robots_delivered_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False, index=True)
    month = db.Column(db.Integer, nullable=False)
    forecast_units = db.Column(db.Integer, nullable=False, default=0)
    actual_units = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "year": self.year,
            "month": self.month,
            "forecast": self.forecast_units,
            "actual": self.actual_units,
            "notes": self.notes,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
