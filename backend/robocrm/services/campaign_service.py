# Overview: Campaign audiences, email templates and mailing drafts.

from __future__ import annotations

from ..extensions import db
from ..models import Campaign, CampaignClient, CampaignMailing, Client, ClientClassification, EmailTemplate, Offer
from ..models.clients import KIND_CLIENT_TYPE, KIND_MARKET, KIND_SEGMENT, KIND_SIZE
from ..models.offers import STAGE_CLOSED_LOST, STAGE_CLOSED_WON, STAGE_LEADS
from ..validation import ModelValidationPolicy, ValidationError, validate_payload


# filter key -> classification kind
CLASSIFICATION_FILTERS = {
    "client_type": KIND_CLIENT_TYPE,
    "segment": KIND_SEGMENT,
    "market": KIND_MARKET,
    "size": KIND_SIZE,
}

# deal_status filter -> offer stage the client must have an offer in
DEAL_STATUS_STAGES = {
    "won": STAGE_CLOSED_WON,
    "existing": STAGE_CLOSED_WON,
    "lost": STAGE_CLOSED_LOST,
    "lead": STAGE_LEADS,
}

FILTER_KEYS = set(CLASSIFICATION_FILTERS) | {"city", "deal_status"}

TEMPLATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "subject", "body"},
    required_on_create={"name", "subject", "body"},
)


class CampaignNotFoundError(Exception):
    pass


class MailingNotImplementedError(Exception):
    pass


def _clean_filters(filters) -> dict:
    if filters is None:
        return {}
    if not isinstance(filters, dict):
        raise ValidationError("filters must be an object")
    unknown = sorted(set(filters) - FILTER_KEYS)
    if unknown:
        raise ValidationError(f"Unknown filters: {', '.join(unknown)}")
    # "all" and empty values mean no restriction
    cleaned = {k: v for k, v in filters.items() if v not in (None, "", "all")}
    if "deal_status" in cleaned and cleaned["deal_status"] not in DEAL_STATUS_STAGES:
        raise ValidationError(f"deal_status must be one of {', '.join(sorted(DEAL_STATUS_STAGES))}")
    for key in CLASSIFICATION_FILTERS:
        if key in cleaned and (isinstance(cleaned[key], bool) or not isinstance(cleaned[key], int)):
            raise ValidationError(f"{key} must be a dictionary id")
    return cleaned


def filter_audience(filters: dict | None) -> list[Client]:
    """Clients matching every given criterion (AND semantics)."""
    cleaned = _clean_filters(filters)
    q = db.session.query(Client)
    if "city" in cleaned:
        q = q.filter(Client.city == cleaned["city"])
    for key, kind in CLASSIFICATION_FILTERS.items():
        if key in cleaned:
            sub = db.session.query(ClientClassification.client_id).filter(
                ClientClassification.kind == kind,
                ClientClassification.dictionary_id == cleaned[key],
            )
            q = q.filter(Client.id.in_(sub))
    if "deal_status" in cleaned:
        stage = DEAL_STATUS_STAGES[cleaned["deal_status"]]
        sub = db.session.query(Offer.client_id).filter(Offer.stage == stage)
        q = q.filter(Client.id.in_(sub))
    return q.order_by(Client.name.asc()).all()


def list_campaigns() -> list[Campaign]:
    return db.session.query(Campaign).order_by(Campaign.created_at.desc(), Campaign.id.desc()).all()


def get_campaign(campaign_id: int) -> Campaign:
    row = db.session.get(Campaign, campaign_id)
    if row is None:
        raise CampaignNotFoundError("Campaign not found")
    return row


def _resolve_members(filters: dict, client_ids) -> list[int]:
    if client_ids is None:
        return [c.id for c in filter_audience(filters)]
    if not isinstance(client_ids, list) or any(isinstance(i, bool) or not isinstance(i, int) for i in client_ids):
        raise ValidationError("client_ids must be a list of client ids")
    wanted = set(client_ids)
    found = {r[0] for r in db.session.query(Client.id).filter(Client.id.in_(wanted)).all()} if wanted else set()
    missing = sorted(wanted - found)
    if missing:
        raise ValidationError(f"Unknown client ids: {', '.join(str(i) for i in missing)}")
    return sorted(wanted)


def save_campaign(
    *,
    name: str,
    filters: dict | None,
    client_ids: list[int] | None = None,
    user_id: int | None,
    campaign_id: int | None = None,
) -> Campaign:
    """
    Create or overwrite a campaign. Membership is taken from client_ids when
    given, otherwise from the filters.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Campaign name is required")
    cleaned = _clean_filters(filters)
    member_ids = _resolve_members(cleaned, client_ids)
    if not member_ids:
        raise ValidationError("Please apply filters to select clients first")

    if campaign_id is None:
        campaign = Campaign(created_by_user_id=user_id)
        db.session.add(campaign)
    else:
        campaign = get_campaign(campaign_id)

    campaign.name = name
    campaign.filters = cleaned
    current = {m.client_id: m for m in campaign.members}
    for client_id in set(current) - set(member_ids):
        campaign.members.remove(current[client_id])
    for client_id in member_ids:
        if client_id not in current:
            campaign.members.append(CampaignClient(client_id=client_id))
    campaign.client_count = len(member_ids)
    db.session.commit()
    return campaign


def delete_campaign(campaign_id: int) -> None:
    campaign = get_campaign(campaign_id)
    db.session.delete(campaign)
    db.session.commit()


# --- Templates ---------------------------------------------------------------

def list_templates() -> list[EmailTemplate]:
    return db.session.query(EmailTemplate).order_by(EmailTemplate.name.asc()).all()


def get_template(template_id: int) -> EmailTemplate:
    row = db.session.get(EmailTemplate, template_id)
    if row is None:
        raise CampaignNotFoundError("Email template not found")
    return row


def create_template(payload: dict, *, user_id: int | None) -> EmailTemplate:
    patch = validate_payload(model=EmailTemplate, payload=payload, policy=TEMPLATE_POLICY, partial=False)
    row = EmailTemplate(created_by_user_id=user_id, **patch)
    db.session.add(row)
    db.session.commit()
    return row


def update_template(template_id: int, payload: dict) -> EmailTemplate:
    row = get_template(template_id)
    patch = validate_payload(model=EmailTemplate, payload=payload, policy=TEMPLATE_POLICY, partial=True)
    for k, v in patch.items():
        setattr(row, k, v)
    db.session.commit()
    return row


def delete_template(template_id: int) -> None:
    row = get_template(template_id)
    if db.session.query(CampaignMailing.id).filter_by(template_id=row.id).first():
        raise ValidationError("Template is used by a mailing")
    db.session.delete(row)
    db.session.commit()


# --- Mailings ----------------------------------------------------------------

def list_mailings(campaign_id: int) -> list[CampaignMailing]:
    campaign = get_campaign(campaign_id)
    return sorted(campaign.mailings, key=lambda m: m.id, reverse=True)


def create_mailing(campaign_id: int, *, template_id: int, name: str | None) -> CampaignMailing:
    if isinstance(template_id, bool) or not isinstance(template_id, int):
        raise ValidationError("template_id is required")
    campaign = get_campaign(campaign_id)
    template = get_template(template_id)
    mailing = CampaignMailing(
        campaign_id=campaign.id,
        template_id=template.id,
        name=(name or "").strip() or f"{campaign.name} - {template.name}",
        total_count=campaign.client_count,
    )
    db.session.add(mailing)
    db.session.commit()
    return mailing


def send_mailing(campaign_id: int, mailing_id: int) -> None:
    campaign = get_campaign(campaign_id)
    mailing = db.session.query(CampaignMailing).filter_by(id=mailing_id, campaign_id=campaign.id).first()
    if mailing is None:
        raise CampaignNotFoundError("Mailing not found")
    raise MailingNotImplementedError("Bulk email sending is not implemented yet; the mailing stays a draft")
