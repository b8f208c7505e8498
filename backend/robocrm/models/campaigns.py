from __future__ import annotations

from ..extensions import db
from robocrm.time_utils import to_utc_z


MAILING_STATUS_DRAFT = "draft"
MAILING_STATUS_SENT = "sent"


class Campaign(db.Model):
    """
    Saved client audience. filters keeps the criteria that produced the
    membership; membership itself is materialized in campaign_clients.
    """
    __tablename__ = "campaigns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    filters = db.Column(db.JSON, nullable=False, default=dict)
    client_count = db.Column(db.Integer, nullable=False, default=0)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    members = db.relationship(
        "CampaignClient",
        backref="campaign",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_clients: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "filters": self.filters or {},
            "client_count": self.client_count,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_clients:
            data["client_ids"] = sorted(m.client_id for m in self.members)
        return data


class CampaignClient(db.Model):
    __tablename__ = "campaign_clients"
    __table_args__ = (
        db.UniqueConstraint("campaign_id", "client_id", name="uq_campaign_clients_pair"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey("campaigns.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class EmailTemplate(db.Model):
    __tablename__ = "email_templates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    body = db.Column(db.Text, nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "subject": self.subject,
            "body": self.body,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CampaignMailing(db.Model):
    """
    Mailing of a template to a campaign audience. Only drafts are created;
    bulk sending is not implemented.
    """
    __tablename__ = "campaign_mailings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey("campaigns.id"), nullable=False, index=True)
    template_id = db.Column(db.Integer, db.ForeignKey("email_templates.id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=MAILING_STATUS_DRAFT)
    total_count = db.Column(db.Integer, nullable=False, default=0)
    sent_count = db.Column(db.Integer, nullable=False, default=0)
    failed_count = db.Column(db.Integer, nullable=False, default=0)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sent_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    campaign = db.relationship("Campaign", backref=db.backref("mailings", lazy=True, cascade="all, delete-orphan"))
    template = db.relationship("EmailTemplate")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "template_id": self.template_id,
            "name": self.name,
            "status": self.status,
            "total_count": self.total_count,
            "sent_count": self.sent_count,
            "failed_count": self.failed_count,
            "sent_at": to_utc_z(self.sent_at) if self.sent_at else None,
            "sent_by_user_id": self.sent_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
