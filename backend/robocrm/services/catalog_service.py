# Overview: Robot pricing, lease pricing and ancillary item catalog maintenance.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Item, LeasePricing, RobotPricing
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_non_negative,
    validate_payload,
)


_CURRENCY_SUFFIXES = ("pln_net", "usd_net", "eur_net")


def _price_fields(prefix: str) -> set[str]:
    return {f"{prefix}_{s}" for s in _CURRENCY_SUFFIXES}


ROBOT_PRICE_FIELDS = (
    _price_fields("sale_price")
    | _price_fields("promo_price")
    | _price_fields("lowest_price")
    | _price_fields("evidence_price")
    | _price_fields("try_buy_price")
)

ROBOT_POLICY = ModelValidationPolicy(
    writable_fields={"robot_model"} | ROBOT_PRICE_FIELDS,
    required_on_create={"robot_model"} | _price_fields("sale_price"),
)

LEASE_PRICE_FIELDS = _price_fields("price") | _price_fields("evidence_price")

LEASE_POLICY = ModelValidationPolicy(
    writable_fields={"months"} | LEASE_PRICE_FIELDS,
    required_on_create={"months"} | _price_fields("price"),
)

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "item_type", "price_net", "vat_rate", "is_active"},
    required_on_create={"name", "price_net"},
)


class CatalogNotFoundError(Exception):
    pass


# --- Robot pricing -----------------------------------------------------------

def list_robot_pricing() -> list[RobotPricing]:
    return db.session.query(RobotPricing).order_by(RobotPricing.robot_model.asc()).all()


def get_robot_pricing(pricing_id: int) -> RobotPricing:
    row = db.session.get(RobotPricing, pricing_id)
    if row is None:
        raise CatalogNotFoundError("Robot pricing not found")
    return row


def _ensure_unique_model(robot_model: str, exclude_id: int | None = None) -> None:
    q = db.session.query(RobotPricing.id).filter(RobotPricing.robot_model == robot_model)
    if exclude_id is not None:
        q = q.filter(RobotPricing.id != exclude_id)
    if q.first():
        raise ConflictError(f"Pricing for robot model {robot_model!r} already exists")


def create_robot_pricing(payload: dict) -> RobotPricing:
    patch = validate_payload(model=RobotPricing, payload=payload, policy=ROBOT_POLICY, partial=False)
    enforce_non_negative(patch, ROBOT_PRICE_FIELDS)
    _ensure_unique_model(patch["robot_model"])
    row = RobotPricing(**patch)
    db.session.add(row)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Pricing for robot model {patch['robot_model']!r} already exists")
    return row


def update_robot_pricing(pricing_id: int, payload: dict) -> RobotPricing:
    row = get_robot_pricing(pricing_id)
    patch = validate_payload(model=RobotPricing, payload=payload, policy=ROBOT_POLICY, partial=True)
    enforce_non_negative(patch, ROBOT_PRICE_FIELDS)
    if "robot_model" in patch:
        _ensure_unique_model(patch["robot_model"], exclude_id=row.id)
    for k, v in patch.items():
        setattr(row, k, v)
    db.session.commit()
    return row


def delete_robot_pricing(pricing_id: int) -> None:
    row = get_robot_pricing(pricing_id)
    db.session.delete(row)
    db.session.commit()


# --- Lease pricing -----------------------------------------------------------

def get_lease_pricing(lease_id: int) -> LeasePricing:
    row = db.session.get(LeasePricing, lease_id)
    if row is None:
        raise CatalogNotFoundError("Lease pricing not found")
    return row


def _ensure_unique_term(robot_pricing_id: int, months: int, exclude_id: int | None = None) -> None:
    q = db.session.query(LeasePricing.id).filter_by(robot_pricing_id=robot_pricing_id, months=months)
    if exclude_id is not None:
        q = q.filter(LeasePricing.id != exclude_id)
    if q.first():
        raise ConflictError(f"Lease pricing for {months} months already exists")


def _check_months(patch: dict) -> None:
    if "months" in patch and (patch["months"] is None or patch["months"] < 1):
        raise ValidationError("months must be >= 1")


def add_lease_pricing(pricing_id: int, payload: dict) -> LeasePricing:
    robot = get_robot_pricing(pricing_id)
    patch = validate_payload(model=LeasePricing, payload=payload, policy=LEASE_POLICY, partial=False)
    _check_months(patch)
    enforce_non_negative(patch, LEASE_PRICE_FIELDS)
    _ensure_unique_term(robot.id, patch["months"])
    row = LeasePricing(robot_pricing_id=robot.id, **patch)
    db.session.add(row)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Lease pricing for {patch['months']} months already exists")
    return row


def update_lease_pricing(lease_id: int, payload: dict) -> LeasePricing:
    row = get_lease_pricing(lease_id)
    patch = validate_payload(model=LeasePricing, payload=payload, policy=LEASE_POLICY, partial=True)
    _check_months(patch)
    enforce_non_negative(patch, LEASE_PRICE_FIELDS)
    if "months" in patch:
        _ensure_unique_term(row.robot_pricing_id, patch["months"], exclude_id=row.id)
    for k, v in patch.items():
        setattr(row, k, v)
    db.session.commit()
    return row


def delete_lease_pricing(lease_id: int) -> None:
    row = get_lease_pricing(lease_id)
    db.session.delete(row)
    db.session.commit()


# --- Items -------------------------------------------------------------------

def list_items(*, active_only: bool = False) -> list[Item]:
    q = db.session.query(Item)
    if active_only:
        q = q.filter(Item.is_active.is_(True))
    return q.order_by(Item.name.asc()).all()


def get_item(item_id: int) -> Item:
    row = db.session.get(Item, item_id)
    if row is None:
        raise CatalogNotFoundError("Item not found")
    return row


def _check_item(patch: dict) -> None:
    enforce_non_negative(patch, ("price_net", "vat_rate"))
    if patch.get("vat_rate") is not None and patch["vat_rate"] > 100:
        raise ValidationError("vat_rate must be <= 100")


def create_item(payload: dict, *, default_vat_rate: float | None = None) -> Item:
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    _check_item(patch)
    if patch.get("vat_rate") is None and default_vat_rate is not None:
        patch["vat_rate"] = default_vat_rate
    row = Item(**patch)
    db.session.add(row)
    db.session.commit()
    return row


def update_item(item_id: int, payload: dict) -> Item:
    row = get_item(item_id)
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)
    _check_item(patch)
    for k, v in patch.items():
        setattr(row, k, v)
    db.session.commit()
    return row


def delete_item(item_id: int) -> None:
    row = get_item(item_id)
    db.session.delete(row)
    db.session.commit()
