"""
Offer service: offers and leads with priced line items and stage transitions.

WHY: Every write recomputes totals from the line items with
pricing_service. Line prices are held at cents, the precision they are
stored with, so totals recomputed from stored lines never drift. The
closed_won side effect runs after the offer commit so a failing contract
insert cannot undo the stage change.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Client, Contract, Offer, OfferItem
from ..models.offers import (
    CONTRACT_TYPE_LEASE,
    CONTRACT_TYPE_PURCHASE,
    CONTRACT_TYPES,
    LINE_KIND_ITEM,
    LINE_KIND_ROBOT,
    LINE_KINDS,
    OFFER_STAGES,
    PREPAYMENT_TYPES,
    STAGE_CLOSED_WON,
    STAGE_LEADS,
    STAGE_QUALIFIED,
)
from ..money import MoneyError, ZERO, round_money, to_decimal, normalize_currency
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_email,
    enforce_non_negative,
    require_positive_int,
    validate_payload,
)
from . import contract_service, document_service, functions_client, pricing_service, reseller_service
from .pricing_service import PricedLine, PricingError, PricingSnapshot
from .settings_service import CompanySettings, get_company_settings


logger = logging.getLogger(__name__)

ENTRY_MODE_LEAD = "lead"
ENTRY_MODE_OFFER = "offer"

OFFER_POLICY = ModelValidationPolicy(
    writable_fields={
        "client_id",
        "stage",
        "currency",
        "prepayment_type",
        "prepayment_value",
        "initial_payment",
        "warranty_period",
        "delivery_date",
        "deployment_location",
        "lead_source",
        "notes",
        "assigned_salesperson_id",
        "reseller_id",
    },
    required_on_create={"client_id"},
)

CONTRACT_FAILURE_PREFIX = "Offer was updated but contract creation failed: "


class OfferError(Exception):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OfferNotFoundError(OfferError):
    pass


@dataclass
class StageChangeResult:
    """Outcome of an offer write: the offer, plus the contract derived on a won transition."""
    offer: Offer
    contract: Optional[Contract] = None
    contract_error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "offer": self.offer.to_dict(include_items=True),
            "contract": self.contract.to_dict() if self.contract else None,
        }
        if self.contract_error:
            data["warning"] = self.contract_error
        return data


def _new_offer_number() -> str:
    ms = int(time.time() * 1000)
    while db.session.query(Offer.id).filter_by(offer_number=f"OFF-{ms}").first():
        ms += 1
    return f"OFF-{ms}"


def _optional_int(raw: Any, name: str) -> Optional[int]:
    if raw is None or raw == "":
        return None
    return require_positive_int(raw, name)


def _money(raw: Any, name: str):
    try:
        value = to_decimal(raw, field=name)
    except MoneyError as e:
        raise ValidationError(str(e))
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")
    return round_money(value)


def parse_lines(raw_lines: Any, snapshot: PricingSnapshot, currency: str) -> list[PricedLine]:
    """
    Turn request line dicts into priced lines. Robot lines without an explicit
    unit_price are resolved from the snapshot; item lines fall back to the
    catalog price.
    """
    if raw_lines is None:
        return []
    if not isinstance(raw_lines, list):
        raise ValidationError("items must be a list")

    lines: list[PricedLine] = []
    for idx, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        kind = raw.get("kind") or LINE_KIND_ROBOT
        if kind not in LINE_KINDS:
            raise ValidationError(f"items[{idx}].kind must be one of {', '.join(LINE_KINDS)}")
        quantity = require_positive_int(raw.get("quantity", 1), f"items[{idx}].quantity")
        explicit_price = raw.get("unit_price")

        if kind == LINE_KIND_ROBOT:
            robot_model = (raw.get("robot_model") or "").strip()
            if not robot_model:
                raise ValidationError(f"items[{idx}].robot_model is required")
            contract_type = raw.get("contract_type") or CONTRACT_TYPE_PURCHASE
            if contract_type not in CONTRACT_TYPES:
                raise ValidationError(f"items[{idx}].contract_type must be one of {', '.join(CONTRACT_TYPES)}")
            lease_months = _optional_int(raw.get("lease_months"), f"items[{idx}].lease_months")
            if contract_type == CONTRACT_TYPE_LEASE and not lease_months:
                raise ValidationError(f"items[{idx}].lease_months is required for lease lines")
            line = PricedLine(
                kind=kind,
                quantity=quantity,
                unit_price=ZERO,
                contract_type=contract_type,
                robot_model=robot_model,
                lease_months=lease_months if contract_type == CONTRACT_TYPE_LEASE else None,
                description=raw.get("description"),
            )
            if explicit_price is None:
                pricing_service.reprice_line(snapshot, line, currency)
            else:
                line.unit_price = _money(explicit_price, f"items[{idx}].unit_price")
        else:
            item_id = _optional_int(raw.get("item_id"), f"items[{idx}].item_id")
            if item_id is None:
                raise ValidationError(f"items[{idx}].item_id is required")
            if item_id not in snapshot.items:
                raise ValidationError(f"items[{idx}].item_id does not reference an existing item")
            if explicit_price is None:
                price = round_money(pricing_service.resolve_item_price(snapshot, item_id))
            else:
                price = _money(explicit_price, f"items[{idx}].unit_price")
            line = PricedLine(
                kind=kind,
                quantity=quantity,
                unit_price=price,
                item_id=item_id,
                description=raw.get("description"),
            )

        line.warranty_months = _optional_int(raw.get("warranty_months"), f"items[{idx}].warranty_months")
        line.warranty_price = _money(raw.get("warranty_price"), f"items[{idx}].warranty_price")
        lines.append(line)
    return lines


def _line_from_item(item: OfferItem) -> PricedLine:
    return PricedLine(
        kind=item.kind,
        quantity=item.quantity,
        unit_price=to_decimal(item.unit_price),
        contract_type=item.contract_type,
        robot_model=item.robot_model,
        item_id=item.item_id,
        lease_months=item.lease_months,
        description=item.description,
        warranty_months=item.warranty_months,
        warranty_price=to_decimal(item.warranty_price),
    )


def _item_from_line(line: PricedLine) -> OfferItem:
    return OfferItem(
        kind=line.kind,
        robot_model=line.robot_model,
        item_id=line.item_id,
        description=line.description,
        quantity=line.quantity,
        contract_type=line.contract_type,
        lease_months=line.lease_months,
        unit_price=round_money(line.unit_price),
        monthly_price=round_money(line.monthly_price),
        warranty_months=line.warranty_months,
        warranty_price=round_money(line.warranty_price),
    )


def _apply_totals(offer: Offer, lines: list[PricedLine]) -> pricing_service.OfferTotals:
    try:
        totals = pricing_service.compute_offer_totals(
            lines,
            prepayment_type=offer.prepayment_type,
            prepayment_value=offer.prepayment_value,
            initial_payment=offer.initial_payment,
        )
    except (PricingError, MoneyError) as e:
        raise ValidationError(str(e))
    offer.total_purchase_value = round_money(totals.total_purchase_value)
    offer.total_monthly = round_money(totals.total_monthly)
    offer.total_price = round_money(totals.net_payable)
    return totals


def _check_patch(patch: dict) -> None:
    if "client_id" in patch and db.session.get(Client, patch["client_id"]) is None:
        raise ValidationError("client_id does not reference an existing client")
    reseller_service.check_reseller_ref(patch)
    if "stage" in patch and patch["stage"] not in OFFER_STAGES:
        raise ValidationError(f"stage must be one of {', '.join(OFFER_STAGES)}")
    if "prepayment_type" in patch and patch["prepayment_type"] not in PREPAYMENT_TYPES:
        raise ValidationError(f"prepayment_type must be one of {', '.join(PREPAYMENT_TYPES)}")
    if "currency" in patch:
        try:
            patch["currency"] = normalize_currency(patch["currency"])
        except MoneyError as e:
            raise ValidationError(str(e))
    enforce_non_negative(patch, ("prepayment_value", "initial_payment", "warranty_period"))


def _check_stage_has_items(stage: str, line_count: int) -> None:
    if stage != STAGE_LEADS and line_count == 0:
        raise ValidationError("An offer needs at least one line item before it can leave the leads stage")


def _derive_contract_if_won(
    offer: Offer,
    previous_stage: Optional[str],
    *,
    user_id: int | None,
    settings: CompanySettings,
) -> StageChangeResult:
    if offer.stage != STAGE_CLOSED_WON or previous_stage == STAGE_CLOSED_WON:
        return StageChangeResult(offer=offer)
    try:
        contract = contract_service.create_contract_from_offer(offer, user_id=user_id, settings=settings)
    except (ConflictError, ValidationError, contract_service.ContractError, SQLAlchemyError) as e:
        db.session.rollback()
        logger.warning("Offer %s won but contract creation failed: %s", offer.offer_number, e)
        return StageChangeResult(offer=offer, contract_error=CONTRACT_FAILURE_PREFIX + str(e))
    logger.info("Offer %s won; contract %s created", offer.offer_number, contract.contract_number)
    return StageChangeResult(offer=offer, contract=contract)


def get_offer(offer_id: int) -> Offer:
    offer = db.session.get(Offer, offer_id)
    if offer is None:
        raise OfferNotFoundError("Offer not found")
    return offer


def list_offers(
    *,
    stage: str | None = None,
    client_id: int | None = None,
    salesperson_id: int | None = None,
    reseller_id: int | None = None,
    leads_only: bool = False,
) -> list[Offer]:
    q = db.session.query(Offer)
    if leads_only:
        q = q.filter(Offer.stage == STAGE_LEADS)
    elif stage:
        q = q.filter(Offer.stage == stage)
    if client_id is not None:
        q = q.filter(Offer.client_id == client_id)
    if salesperson_id is not None:
        q = q.filter(Offer.assigned_salesperson_id == salesperson_id)
    if reseller_id is not None:
        q = q.filter(Offer.reseller_id == reseller_id)
    return q.order_by(Offer.created_at.desc(), Offer.id.desc()).all()


def create_offer(
    payload: dict,
    *,
    user_id: int | None,
    mode: str = ENTRY_MODE_OFFER,
    settings: CompanySettings | None = None,
) -> StageChangeResult:
    """
    Create a lead (mode="lead", stage leads) or an offer (mode="offer",
    stage qualified) unless the payload names a stage.
    """
    if mode not in (ENTRY_MODE_LEAD, ENTRY_MODE_OFFER):
        raise ValidationError("mode must be 'lead' or 'offer'")
    settings = settings or get_company_settings()
    payload = dict(payload or {})
    raw_lines = payload.pop("items", None)

    patch = validate_payload(model=Offer, payload=payload, policy=OFFER_POLICY, partial=False)
    _check_patch(patch)
    patch.setdefault("stage", STAGE_LEADS if mode == ENTRY_MODE_LEAD else STAGE_QUALIFIED)
    patch.setdefault("currency", settings.default_currency)
    patch.setdefault("prepayment_type", "none")
    patch.setdefault("prepayment_value", ZERO)
    patch.setdefault("initial_payment", ZERO)
    if patch.get("assigned_salesperson_id") is None:
        patch["assigned_salesperson_id"] = user_id

    snapshot = pricing_service.load_pricing_snapshot()
    lines = parse_lines(raw_lines, snapshot, patch["currency"])
    _check_stage_has_items(patch["stage"], len(lines))

    offer = Offer(offer_number=_new_offer_number(), created_by_user_id=user_id, **patch)
    offer.items = [_item_from_line(ln) for ln in lines]
    _apply_totals(offer, lines)

    db.session.add(offer)
    db.session.commit()
    return _derive_contract_if_won(offer, None, user_id=user_id, settings=settings)


def update_offer(
    offer_id: int,
    payload: dict,
    *,
    user_id: int | None,
    settings: CompanySettings | None = None,
) -> StageChangeResult:
    """
    Patch offer fields. When "items" is present the line set is replaced in the
    same transaction; a currency change without new items re-resolves the
    robot lines in the new currency.
    """
    settings = settings or get_company_settings()
    offer = get_offer(offer_id)
    previous_stage = offer.stage
    payload = dict(payload or {})
    has_lines = "items" in payload
    raw_lines = payload.pop("items", None)

    patch = validate_payload(model=Offer, payload=payload, policy=OFFER_POLICY, partial=True)
    _check_patch(patch)
    currency = patch.get("currency", offer.currency)
    stage = patch.get("stage", offer.stage)

    snapshot = pricing_service.load_pricing_snapshot()
    if has_lines:
        lines = parse_lines(raw_lines, snapshot, currency)
    else:
        lines = [_line_from_item(it) for it in offer.items]
        if currency != offer.currency:
            lines = [pricing_service.reprice_line(snapshot, ln, currency) for ln in lines]
            has_lines = True
    _check_stage_has_items(stage, len(lines))

    for k, v in patch.items():
        setattr(offer, k, v)
    try:
        if has_lines:
            offer.items = [_item_from_line(ln) for ln in lines]
        _apply_totals(offer, lines)
        db.session.commit()
    except ValidationError:
        db.session.rollback()
        raise
    return _derive_contract_if_won(offer, previous_stage, user_id=user_id, settings=settings)


def change_stage(
    offer_id: int,
    stage: str,
    *,
    user_id: int | None,
    settings: CompanySettings | None = None,
) -> StageChangeResult:
    if stage not in OFFER_STAGES:
        raise ValidationError(f"stage must be one of {', '.join(OFFER_STAGES)}")
    settings = settings or get_company_settings()
    offer = get_offer(offer_id)
    previous_stage = offer.stage
    _check_stage_has_items(stage, len(offer.items))
    offer.stage = stage
    db.session.commit()
    return _derive_contract_if_won(offer, previous_stage, user_id=user_id, settings=settings)


def delete_offer(offer_id: int) -> None:
    offer = get_offer(offer_id)
    if offer.contracts:
        raise OfferError("Offer has contracts and cannot be deleted", {"contract_count": len(offer.contracts)})
    db.session.delete(offer)
    db.session.commit()


def preview_totals(payload: dict) -> dict:
    """Price and total a draft selection without persisting anything."""
    payload = payload or {}
    try:
        currency = normalize_currency(payload.get("currency") or get_company_settings().default_currency)
    except MoneyError as e:
        raise ValidationError(str(e))
    snapshot = pricing_service.load_pricing_snapshot()
    lines = parse_lines(payload.get("items") or [], snapshot, currency)
    try:
        totals = pricing_service.compute_offer_totals(
            lines,
            prepayment_type=payload.get("prepayment_type") or "none",
            prepayment_value=payload.get("prepayment_value") or 0,
            initial_payment=payload.get("initial_payment") or 0,
        )
    except (PricingError, MoneyError) as e:
        raise ValidationError(str(e))
    return {
        "currency": currency,
        "items": [ln.to_dict() for ln in lines],
        "totals": totals.to_dict(),
    }


def offer_totals(offer_id: int) -> dict:
    offer = get_offer(offer_id)
    lines = [_line_from_item(it) for it in offer.items]
    totals = pricing_service.compute_offer_totals(
        lines,
        prepayment_type=offer.prepayment_type,
        prepayment_value=offer.prepayment_value,
        initial_payment=offer.initial_payment,
    )
    return totals.to_dict()


def send_offer_email(offer_id: int, version_id: int, *, recipient_email: str | None) -> dict:
    offer = get_offer(offer_id)
    version = document_service.get_offer_version(offer.id, version_id)
    client = offer.client
    recipient = (recipient_email or "").strip() or client.general_email or client.primary_contact_email
    if not recipient:
        raise ValidationError("Please provide an email address")
    enforce_email({"recipient_email": recipient}, ["recipient_email"])
    functions_client.send_offer_email(
        offer_number=offer.offer_number,
        version_id=version.id,
        client_email=recipient,
        client_name=client.name,
        file_path=version.file_path,
    )
    logger.info("Offer %s v%s emailed to %s", offer.offer_number, version.version_number, recipient)
    return {"recipient_email": recipient, "version_id": version.id}
