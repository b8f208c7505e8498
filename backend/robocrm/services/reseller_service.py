# Overview: Service-layer operations for resellers and the reseller performance report.

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Client, Offer, Reseller
from ..models.offers import STAGE_CLOSED_WON
from ..models.resellers import RESELLER_STATUSES
from ..money import ZERO, money_out, to_decimal
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_email,
    enforce_non_negative,
    validate_payload,
)


EMAIL_FIELDS = ("general_email", "primary_contact_email", "billing_person_email")

RESELLER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "nip",
        "status",
        "balance",
        "address",
        "postal_code",
        "city",
        "country",
        "website_url",
        "general_email",
        "general_phone",
        "primary_contact_name",
        "primary_contact_email",
        "primary_contact_phone",
        "billing_person_name",
        "billing_person_email",
        "billing_person_phone",
        "assigned_salesperson_id",
    },
    required_on_create={"name"},
)


class ResellerNotFoundError(Exception):
    pass


def _validate_patch(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Reseller, payload=payload, policy=RESELLER_POLICY, partial=partial)
    if "name" in patch and not (patch["name"] or "").strip():
        raise ValidationError("name is required")
    if "status" in patch and patch["status"] not in RESELLER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(RESELLER_STATUSES)}")
    enforce_email(patch, EMAIL_FIELDS)
    enforce_non_negative(patch, ("balance",))
    return patch


def check_reseller_ref(patch: dict) -> None:
    """Raise ValidationError when patch names a reseller_id that does not exist."""
    reseller_id = patch.get("reseller_id")
    if reseller_id is not None and db.session.get(Reseller, reseller_id) is None:
        raise ValidationError("reseller_id does not reference an existing reseller")


def get_reseller(reseller_id: int) -> Reseller:
    reseller = db.session.get(Reseller, reseller_id)
    if reseller is None:
        raise ResellerNotFoundError("Reseller not found")
    return reseller


def list_resellers(*, search: str | None = None, status: str | None = None) -> list[Reseller]:
    q = db.session.query(Reseller)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Reseller.name.ilike(like), Reseller.nip.ilike(like), Reseller.city.ilike(like)))
    if status:
        q = q.filter(Reseller.status == status)
    return q.order_by(Reseller.name.asc()).all()


def create_reseller(payload: dict, *, user_id: int | None = None) -> Reseller:
    patch = _validate_patch(dict(payload or {}), partial=False)
    if patch.get("assigned_salesperson_id") is None and user_id is not None:
        patch["assigned_salesperson_id"] = user_id
    reseller = Reseller(**patch)
    db.session.add(reseller)
    db.session.commit()
    return reseller


def update_reseller(reseller_id: int, payload: dict) -> Reseller:
    reseller = get_reseller(reseller_id)
    patch = _validate_patch(dict(payload or {}), partial=True)
    for k, v in patch.items():
        setattr(reseller, k, v)
    db.session.commit()
    return reseller


def delete_reseller(reseller_id: int) -> None:
    reseller = get_reseller(reseller_id)
    clients = db.session.query(Client.id).filter_by(reseller_id=reseller.id).count()
    offers = db.session.query(Offer.id).filter_by(reseller_id=reseller.id).count()
    if clients or offers:
        raise ConflictError(
            "Reseller has clients or offers and cannot be deleted; mark it inactive instead",
        )
    db.session.delete(reseller)
    db.session.commit()


def reseller_report(*, since: date | None = None) -> dict:
    """
    Performance of active resellers: client count (all time), offers created
    since `since`, and revenue as the net payable of those offers that were won.
    Rows are ordered by revenue, highest first.
    """
    resellers = (
        db.session.query(Reseller)
        .filter(Reseller.status == "active")
        .order_by(Reseller.name.asc())
        .all()
    )
    ids = [r.id for r in resellers]

    client_counts: dict[int, int] = {}
    offer_counts: dict[int, int] = {}
    revenue: dict[int, Decimal] = {}
    if ids:
        client_counts = dict(
            db.session.query(Client.reseller_id, func.count(Client.id))
            .filter(Client.reseller_id.in_(ids))
            .group_by(Client.reseller_id)
            .all()
        )
        offers_q = db.session.query(Offer).filter(Offer.reseller_id.in_(ids))
        if since is not None:
            offers_q = offers_q.filter(
                Offer.created_at >= datetime(since.year, since.month, since.day)
            )
        for offer in offers_q.all():
            offer_counts[offer.reseller_id] = offer_counts.get(offer.reseller_id, 0) + 1
            if offer.stage == STAGE_CLOSED_WON:
                revenue[offer.reseller_id] = revenue.get(offer.reseller_id, ZERO) + to_decimal(offer.total_price)

    rows = [
        {
            "reseller_id": r.id,
            "name": r.name,
            "client_count": client_counts.get(r.id, 0),
            "offer_count": offer_counts.get(r.id, 0),
            "revenue": revenue.get(r.id, ZERO),
        }
        for r in resellers
    ]
    rows.sort(key=lambda row: row["revenue"], reverse=True)
    total_revenue = sum((row["revenue"] for row in rows), ZERO)
    for row in rows:
        row["revenue"] = money_out(row["revenue"])

    return {
        "since": since.isoformat() if since else None,
        "total_resellers": len(rows),
        "total_clients": sum(row["client_count"] for row in rows),
        "total_revenue": money_out(total_revenue),
        "items": rows,
    }
