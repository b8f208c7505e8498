"""
Client service: client records, classification dictionaries and
classification sets.

WHY: A client's classification sets (types, segments, markets, sizes,
tags) are applied as one diff inside the client's transaction, so a failed
write never leaves a half-updated set behind.
"""

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Client, ClientClassification, Contract, Dictionary, Offer
from ..models.clients import CLASSIFICATION_KINDS
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_email,
    validate_payload,
)
from . import reseller_service


EMAIL_FIELDS = ("general_email", "primary_contact_email", "billing_person_email")

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "nip",
        "status",
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
        "reseller_id",
    },
    required_on_create={"name"},
)

DICTIONARY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "is_active"},
    required_on_create={"name"},
)


class ClientNotFoundError(Exception):
    pass


class DictionaryNotFoundError(Exception):
    pass


def _check_kind(kind: str) -> None:
    if kind not in CLASSIFICATION_KINDS:
        raise ValidationError(f"kind must be one of {', '.join(CLASSIFICATION_KINDS)}")


def _parse_classifications(raw) -> dict[str, set[int]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("classifications must be an object keyed by kind")
    wanted: dict[str, set[int]] = {}
    for kind, ids in raw.items():
        _check_kind(kind)
        if not isinstance(ids, list) or any(isinstance(i, bool) or not isinstance(i, int) for i in ids):
            raise ValidationError(f"classifications.{kind} must be a list of dictionary ids")
        wanted[kind] = set(ids)

    all_ids = set().union(*wanted.values()) if wanted else set()
    if all_ids:
        rows = db.session.query(Dictionary.id, Dictionary.kind).filter(Dictionary.id.in_(all_ids)).all()
        kinds_by_id = {r.id: r.kind for r in rows}
        for kind, ids in wanted.items():
            bad = sorted(i for i in ids if kinds_by_id.get(i) != kind)
            if bad:
                raise ValidationError(
                    f"classifications.{kind} contains unknown ids: {', '.join(str(i) for i in bad)}"
                )
    return wanted


def apply_classification_diff(client: Client, wanted: dict[str, set[int]]) -> dict[str, dict[str, list[int]]]:
    """
    Bring the client's sets for the given kinds in line with `wanted`.
    Kinds not mentioned are left alone. Caller commits.
    """
    summary: dict[str, dict[str, list[int]]] = {}
    for kind, desired in wanted.items():
        current = {row.dictionary_id: row for row in client.classifications if row.kind == kind}
        to_remove = set(current) - desired
        to_add = desired - set(current)
        for dictionary_id in to_remove:
            client.classifications.remove(current[dictionary_id])
        for dictionary_id in sorted(to_add):
            client.classifications.append(ClientClassification(dictionary_id=dictionary_id, kind=kind))
        summary[kind] = {"added": sorted(to_add), "removed": sorted(to_remove)}
    return summary


def _validate_client_patch(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=partial)
    enforce_email(patch, EMAIL_FIELDS)
    reseller_service.check_reseller_ref(patch)
    return patch


def get_client(client_id: int) -> Client:
    client = db.session.get(Client, client_id)
    if client is None:
        raise ClientNotFoundError("Client not found")
    return client


def list_clients(
    *,
    search: str | None = None,
    city: str | None = None,
    status: str | None = None,
    salesperson_id: int | None = None,
    reseller_id: int | None = None,
) -> list[Client]:
    q = db.session.query(Client)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Client.name.ilike(like), Client.nip.ilike(like), Client.general_email.ilike(like)))
    if city:
        q = q.filter(Client.city == city)
    if status:
        q = q.filter(Client.status == status)
    if salesperson_id is not None:
        q = q.filter(Client.assigned_salesperson_id == salesperson_id)
    if reseller_id is not None:
        q = q.filter(Client.reseller_id == reseller_id)
    return q.order_by(Client.name.asc()).all()


def create_client(payload: dict, *, user_id: int | None = None) -> Client:
    payload = dict(payload or {})
    wanted = _parse_classifications(payload.pop("classifications", None))
    patch = _validate_client_patch(payload, partial=False)
    if patch.get("assigned_salesperson_id") is None and user_id is not None:
        patch["assigned_salesperson_id"] = user_id
    client = Client(**patch)
    db.session.add(client)
    apply_classification_diff(client, wanted)
    db.session.commit()
    return client


def update_client(client_id: int, payload: dict) -> Client:
    client = get_client(client_id)
    payload = dict(payload or {})
    wanted = _parse_classifications(payload.pop("classifications", None))
    patch = _validate_client_patch(payload, partial=True)
    try:
        for k, v in patch.items():
            setattr(client, k, v)
        apply_classification_diff(client, wanted)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Client classifications changed concurrently; reload and retry")
    return client


def set_classifications(client_id: int, raw: dict) -> dict:
    client = get_client(client_id)
    wanted = _parse_classifications(raw)
    try:
        summary = apply_classification_diff(client, wanted)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Client classifications changed concurrently; reload and retry")
    return {"client_id": client.id, "classifications": client.classification_ids(), "changes": summary}


def delete_client(client_id: int) -> None:
    client = get_client(client_id)
    offers = db.session.query(Offer.id).filter_by(client_id=client.id).count()
    contracts = db.session.query(Contract.id).filter_by(client_id=client.id).count()
    if offers or contracts:
        raise ConflictError("Client has offers or contracts and cannot be deleted")
    db.session.delete(client)
    db.session.commit()


# --- Dictionaries ------------------------------------------------------------

def list_dictionary(kind: str, *, active_only: bool = False) -> list[Dictionary]:
    _check_kind(kind)
    q = db.session.query(Dictionary).filter(Dictionary.kind == kind)
    if active_only:
        q = q.filter(Dictionary.is_active.is_(True))
    return q.order_by(Dictionary.name.asc()).all()


def get_dictionary_entry(entry_id: int) -> Dictionary:
    row = db.session.get(Dictionary, entry_id)
    if row is None:
        raise DictionaryNotFoundError("Dictionary entry not found")
    return row


def _ensure_unique_entry(kind: str, name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Dictionary.id).filter(Dictionary.kind == kind, Dictionary.name == name)
    if exclude_id is not None:
        q = q.filter(Dictionary.id != exclude_id)
    if q.first():
        raise ConflictError(f"{kind} {name!r} already exists")


def create_dictionary_entry(kind: str, payload: dict) -> Dictionary:
    _check_kind(kind)
    patch = validate_payload(model=Dictionary, payload=payload, policy=DICTIONARY_POLICY, partial=False)
    _ensure_unique_entry(kind, patch["name"])
    row = Dictionary(kind=kind, **patch)
    db.session.add(row)
    db.session.commit()
    return row


def update_dictionary_entry(entry_id: int, payload: dict) -> Dictionary:
    row = get_dictionary_entry(entry_id)
    patch = validate_payload(model=Dictionary, payload=payload, policy=DICTIONARY_POLICY, partial=True)
    if "name" in patch:
        _ensure_unique_entry(row.kind, patch["name"], exclude_id=row.id)
    for k, v in patch.items():
        setattr(row, k, v)
    db.session.commit()
    return row


def delete_dictionary_entry(entry_id: int) -> None:
    row = get_dictionary_entry(entry_id)
    in_use = db.session.query(ClientClassification.id).filter_by(dictionary_id=row.id).first()
    if in_use:
        raise ConflictError("Dictionary entry is assigned to clients; deactivate it instead")
    db.session.delete(row)
    db.session.commit()
