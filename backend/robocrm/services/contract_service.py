"""
Contract service: manual contracts, offer-won derivation and status changes.

Contract terms derived from an offer are computed by derive_contract_terms,
a pure function shared by the automatic closed_won path and the manual
create-from-offer dialog so both produce the same numbers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Client, Contract, ContractEmailLog, Offer
from ..models.contracts import (
    CONTRACT_STATUSES,
    PAYMENT_MODEL_LEASE,
    PAYMENT_MODEL_PURCHASE,
    PAYMENT_MODELS,
    STATUS_DRAFT,
)
from ..models.offers import CONTRACT_TYPE_LEASE
from ..money import ZERO, round_money, to_decimal
from ..time_utils import add_months, today
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_email,
    enforce_non_negative,
    validate_payload,
)
from . import document_service, functions_client, numbering_service
from .settings_service import CompanySettings, get_company_settings


logger = logging.getLogger(__name__)

DEFAULT_LEASE_MONTHS = 12

MONEY_FIELDS = (
    "monthly_payment",
    "total_purchase_value",
    "total_monthly_contracted",
    "warranty_cost",
    "implementation_cost",
    "other_services_cost",
)

CONTRACT_POLICY = ModelValidationPolicy(
    writable_fields={
        "contract_number",
        "client_id",
        "offer_id",
        "status",
        "payment_model",
        "monthly_payment",
        "billing_schedule",
        "start_date",
        "end_date",
        "terms",
        *MONEY_FIELDS[1:],
        "other_services_description",
    },
    required_on_create={"client_id"},
)


class ContractError(Exception):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ContractNotFoundError(ContractError):
    pass


class DuplicateContractNumberError(ConflictError):
    def __init__(self, contract_number: str):
        super().__init__("Contract number already exists")
        self.contract_number = contract_number


@dataclass(frozen=True)
class ContractTerms:
    payment_model: str
    monthly_payment: Decimal
    start_date: date
    end_date: Optional[date]
    billing_schedule: str
    lease_months: Optional[int]

    def to_dict(self) -> dict:
        return {
            "payment_model": self.payment_model,
            "monthly_payment": float(round_money(self.monthly_payment)),
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "billing_schedule": self.billing_schedule,
            "lease_months": self.lease_months,
        }


def derive_contract_terms(lines: Iterable[Any], *, start: date, billing_schedule: str) -> ContractTerms:
    """
    Lease lines present: payment model lease, monthly payment =
    sum(quantity * unit_price of lease lines) / term of the FIRST lease line
    (12 when unset), end date = start + that term.
    Otherwise: purchase, no monthly payment, open-ended.

    The divisor comes from the first lease line only; offers mixing terms are
    not reconciled.
    """
    lease_lines = [ln for ln in lines if getattr(ln, "contract_type", None) == CONTRACT_TYPE_LEASE]
    if not lease_lines:
        return ContractTerms(
            payment_model=PAYMENT_MODEL_PURCHASE,
            monthly_payment=ZERO,
            start_date=start,
            end_date=None,
            billing_schedule=billing_schedule,
            lease_months=None,
        )

    total = sum((Decimal(ln.quantity or 1) * to_decimal(ln.unit_price) for ln in lease_lines), ZERO)
    months = lease_lines[0].lease_months or DEFAULT_LEASE_MONTHS
    return ContractTerms(
        payment_model=PAYMENT_MODEL_LEASE,
        monthly_payment=total / Decimal(months),
        start_date=start,
        end_date=add_months(start, months),
        billing_schedule=billing_schedule,
        lease_months=months,
    )


def _is_duplicate_number(exc: IntegrityError) -> bool:
    # sqlite names the column, postgres the constraint; both contain it
    return "contract_number" in str(exc.orig).lower()


def _insert(contract: Contract) -> Contract:
    db.session.add(contract)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if _is_duplicate_number(e):
            raise DuplicateContractNumberError(contract.contract_number) from e
        raise
    return contract


def _check_refs(patch: dict) -> None:
    if "client_id" in patch and db.session.get(Client, patch["client_id"]) is None:
        raise ValidationError("client_id does not reference an existing client")
    if patch.get("offer_id") is not None and db.session.get(Offer, patch["offer_id"]) is None:
        raise ValidationError("offer_id does not reference an existing offer")
    if "status" in patch and patch["status"] not in CONTRACT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(CONTRACT_STATUSES)}")
    if "payment_model" in patch and patch["payment_model"] not in PAYMENT_MODELS:
        raise ValidationError(f"payment_model must be one of {', '.join(PAYMENT_MODELS)}")
    enforce_non_negative(patch, MONEY_FIELDS)


def _check_dates(contract: Contract) -> None:
    if contract.start_date and contract.end_date and contract.end_date < contract.start_date:
        raise ValidationError("end_date must not be before start_date")


def get_contract(contract_id: int) -> Contract:
    contract = db.session.get(Contract, contract_id)
    if contract is None:
        raise ContractNotFoundError("Contract not found")
    return contract


def list_contracts(*, client_id: int | None = None, status: str | None = None) -> list[Contract]:
    q = db.session.query(Contract)
    if client_id is not None:
        q = q.filter(Contract.client_id == client_id)
    if status:
        q = q.filter(Contract.status == status)
    return q.order_by(Contract.created_at.desc(), Contract.id.desc()).all()


def create_contract(payload: dict, *, user_id: int | None, settings: CompanySettings | None = None) -> Contract:
    """Manual contract. A missing contract_number is generated from the mask setting."""
    settings = settings or get_company_settings()
    patch = validate_payload(model=Contract, payload=payload, policy=CONTRACT_POLICY, partial=False)
    _check_refs(patch)

    patch.setdefault("status", STATUS_DRAFT)
    patch.setdefault("payment_model", settings.default_payment_model)
    patch.setdefault("billing_schedule", settings.default_billing_schedule)
    if not patch.get("terms") and settings.default_terms:
        patch["terms"] = settings.default_terms
    if not patch.get("contract_number"):
        patch["contract_number"] = numbering_service.generate_masked_contract_number(settings.contract_number_mask)

    contract = Contract(created_by_user_id=user_id, **patch)
    _check_dates(contract)
    return _insert(contract)


def _offer_financials(offer: Offer) -> dict:
    warranty = sum(
        (Decimal(it.quantity or 1) * to_decimal(it.warranty_price) for it in offer.items),
        ZERO,
    )
    return {
        "total_purchase_value": round_money(offer.total_purchase_value),
        "total_monthly_contracted": round_money(offer.total_monthly),
        "warranty_cost": round_money(warranty),
    }


def build_contract_from_offer(offer: Offer, *, user_id: int | None, settings: CompanySettings) -> Contract:
    """Unsaved Contract carrying the derived terms of an offer."""
    terms = derive_contract_terms(offer.items, start=today(), billing_schedule=settings.lease_billing_schedule)
    return Contract(
        contract_number=numbering_service.generate_sequential_contract_number(),
        client_id=offer.client_id,
        offer_id=offer.id,
        status=STATUS_DRAFT,
        payment_model=terms.payment_model,
        monthly_payment=round_money(terms.monthly_payment),
        billing_schedule=terms.billing_schedule,
        start_date=terms.start_date,
        end_date=terms.end_date,
        terms=settings.default_terms or None,
        created_by_user_id=user_id,
        **_offer_financials(offer),
    )


def preview_contract_from_offer(offer: Offer, settings: CompanySettings | None = None) -> dict:
    """Pre-filled values for the create-from-offer dialog."""
    settings = settings or get_company_settings()
    terms = derive_contract_terms(offer.items, start=today(), billing_schedule=settings.lease_billing_schedule)
    data = terms.to_dict()
    data["contract_number"] = numbering_service.generate_sequential_contract_number()
    data["client_id"] = offer.client_id
    data["offer_id"] = offer.id
    data.update({k: float(v) for k, v in _offer_financials(offer).items()})
    return data


def create_contract_from_offer(
    offer: Offer,
    *,
    user_id: int | None,
    overrides: dict | None = None,
    settings: CompanySettings | None = None,
) -> Contract:
    settings = settings or get_company_settings()
    contract = build_contract_from_offer(offer, user_id=user_id, settings=settings)
    if overrides:
        patch = validate_payload(model=Contract, payload=overrides, policy=CONTRACT_POLICY, partial=True)
        patch.pop("client_id", None)
        patch.pop("offer_id", None)
        _check_refs(patch)
        for k, v in patch.items():
            setattr(contract, k, v)
    _check_dates(contract)
    return _insert(contract)


def update_contract(contract_id: int, payload: dict) -> Contract:
    contract = get_contract(contract_id)
    patch = validate_payload(model=Contract, payload=payload, policy=CONTRACT_POLICY, partial=True)
    _check_refs(patch)
    for k, v in patch.items():
        setattr(contract, k, v)
    _check_dates(contract)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if _is_duplicate_number(e):
            raise DuplicateContractNumberError(patch.get("contract_number", contract.contract_number)) from e
        raise
    return contract


def update_status(contract_id: int, status: str) -> Contract:
    if status not in CONTRACT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(CONTRACT_STATUSES)}")
    contract = get_contract(contract_id)
    contract.status = status
    db.session.commit()
    return contract


def delete_contract(contract_id: int) -> None:
    contract = get_contract(contract_id)
    if contract.status != STATUS_DRAFT:
        raise ContractError("Only draft contracts can be deleted", {"status": contract.status})
    db.session.delete(contract)
    db.session.commit()


def send_contract_email(
    contract_id: int,
    version_id: int,
    *,
    recipient_email: str | None,
    user_id: int | None,
) -> ContractEmailLog:
    """
    Email one PDF version to the client. The recipient defaults to the
    client's general email, then the primary contact's.
    """
    contract = get_contract(contract_id)
    version = document_service.get_contract_version(contract.id, version_id)
    client = contract.client

    recipient = (recipient_email or "").strip() or client.general_email or client.primary_contact_email
    if not recipient:
        raise ValidationError("Please provide an email address")
    enforce_email({"recipient_email": recipient}, ["recipient_email"])

    functions_client.send_contract_email(
        contract_number=contract.contract_number,
        version_id=version.id,
        client_email=recipient,
        client_name=client.name,
        file_path=version.file_path,
    )

    log = ContractEmailLog(
        contract_id=contract.id,
        version_id=version.id,
        recipient_email=recipient,
        sent_by_user_id=user_id,
    )
    db.session.add(log)
    db.session.commit()
    logger.info("Contract %s v%s emailed to %s", contract.contract_number, version.version_number, recipient)
    return log


def list_email_history(contract_id: int) -> list[ContractEmailLog]:
    get_contract(contract_id)
    return (
        db.session.query(ContractEmailLog)
        .filter_by(contract_id=contract_id)
        .order_by(ContractEmailLog.sent_at.desc(), ContractEmailLog.id.desc())
        .all()
    )
