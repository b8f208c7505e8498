# Overview: Price resolution and offer totals shared by every offer/contract call site.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from ..extensions import db
from ..models import RobotPricing, Item
from ..models.offers import (
    CONTRACT_TYPE_LEASE,
    CONTRACT_TYPE_PURCHASE,
    CONTRACT_TYPES,
    LINE_KIND_ITEM,
    LINE_KIND_ROBOT,
    PREPAYMENT_AMOUNT,
    PREPAYMENT_NONE,
    PREPAYMENT_PERCENT,
    PREPAYMENT_TYPES,
)
from ..money import CURRENCIES, ZERO, money_out, round_money, to_decimal


logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


class PricingError(ValueError):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class RobotPrices:
    """Sale and per-term lease prices of one robot model, keyed by currency."""
    robot_model: str
    sale: Mapping[str, Optional[Decimal]]
    lease: Mapping[int, Mapping[str, Optional[Decimal]]] = field(default_factory=dict)


@dataclass(frozen=True)
class PricingSnapshot:
    """
    Read-only view of the price lists at one point in time.

    Resolution against an unchanged snapshot is deterministic, so a line can be
    re-resolved any number of times with the same result.
    """
    robots: Mapping[str, RobotPrices]
    items: Mapping[int, Decimal] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, robot_rows: Iterable[RobotPricing], item_rows: Iterable[Item] = ()) -> "PricingSnapshot":
        robots = {}
        for row in robot_rows:
            sale = {c: _opt_decimal(getattr(row, f"sale_price_{c.lower()}_net")) for c in CURRENCIES}
            lease = {
                lp.months: {c: _opt_decimal(getattr(lp, f"price_{c.lower()}_net")) for c in CURRENCIES}
                for lp in row.lease_prices
            }
            robots[row.robot_model] = RobotPrices(robot_model=row.robot_model, sale=sale, lease=lease)
        items = {it.id: to_decimal(it.price_net) for it in item_rows}
        return cls(robots=robots, items=items)


def _opt_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


def load_pricing_snapshot() -> PricingSnapshot:
    robot_rows = db.session.query(RobotPricing).order_by(RobotPricing.robot_model.asc()).all()
    item_rows = db.session.query(Item).all()
    return PricingSnapshot.from_rows(robot_rows, item_rows)


def _purchase_price(snapshot: PricingSnapshot, robot_model: str, currency: str) -> Decimal:
    robot = snapshot.robots.get(robot_model)
    if robot is None:
        logger.warning("No price list for robot model %r; resolving %s price as 0", robot_model, currency)
        return ZERO
    price = robot.sale.get(currency)
    if price is None:
        logger.warning("Robot model %r has no %s sale price; resolving as 0", robot_model, currency)
        return ZERO
    return price


def resolve_unit_price(
    snapshot: PricingSnapshot,
    *,
    robot_model: str,
    contract_type: str,
    currency: str,
    lease_months: Optional[int] = None,
) -> Decimal:
    """
    Net unit price of a robot line.

    purchase -> sale price in the currency.
    lease    -> monthly price of the exact (model, months) row, otherwise
                purchase price / months.
    A missing model or currency price resolves to 0 (logged).
    """
    if contract_type not in CONTRACT_TYPES:
        raise PricingError(f"contract_type must be one of {', '.join(CONTRACT_TYPES)}")
    if currency not in CURRENCIES:
        raise PricingError(f"currency must be one of {', '.join(CURRENCIES)}")
    if not robot_model:
        return ZERO

    if contract_type == CONTRACT_TYPE_PURCHASE:
        return _purchase_price(snapshot, robot_model, currency)

    if not lease_months or lease_months < 1:
        raise PricingError("lease_months is required for lease lines", {"robot_model": robot_model})

    robot = snapshot.robots.get(robot_model)
    if robot is not None:
        row = robot.lease.get(lease_months)
        if row is not None and row.get(currency) is not None:
            return row[currency]

    # No exact lease row: spread the purchase price over the term
    return _purchase_price(snapshot, robot_model, currency) / Decimal(lease_months)


def resolve_item_price(snapshot: PricingSnapshot, item_id: int) -> Decimal:
    price = snapshot.items.get(item_id)
    if price is None:
        logger.warning("Item %s not found in price list; resolving as 0", item_id)
        return ZERO
    return price


@dataclass
class PricedLine:
    """One offer line after price resolution."""
    kind: str
    quantity: int
    unit_price: Decimal
    contract_type: str = CONTRACT_TYPE_PURCHASE
    robot_model: Optional[str] = None
    item_id: Optional[int] = None
    lease_months: Optional[int] = None
    description: Optional[str] = None
    warranty_months: Optional[int] = None
    warranty_price: Decimal = ZERO

    @property
    def is_lease(self) -> bool:
        return self.kind == LINE_KIND_ROBOT and self.contract_type == CONTRACT_TYPE_LEASE

    @property
    def monthly_price(self) -> Decimal:
        return self.unit_price if self.is_lease else ZERO

    def to_dict(self) -> dict:
        return {
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
        }


def reprice_line(snapshot: PricingSnapshot, line: PricedLine, currency: str) -> PricedLine:
    """
    Re-resolve a line after its currency, model or lease term changed.
    Item lines keep their own price.

    A line carries its price rounded to cents, the precision offer_items
    stores; totals over stored lines equal totals over fresh ones.
    """
    if line.kind != LINE_KIND_ROBOT:
        return line
    line.unit_price = round_money(
        resolve_unit_price(
            snapshot,
            robot_model=line.robot_model or "",
            contract_type=line.contract_type,
            currency=currency,
            lease_months=line.lease_months,
        )
    )
    return line


@dataclass(frozen=True)
class OfferTotals:
    robots_purchase_total: Decimal
    robots_lease_monthly_total: Decimal
    items_total: Decimal
    total_purchase_value: Decimal
    total_monthly: Decimal
    prepayment_amount: Decimal
    initial_payment: Decimal
    net_payable: Decimal
    warranty_total: Decimal
    has_purchase: bool
    has_lease: bool

    def to_dict(self) -> dict:
        return {
            "robots_purchase_total": money_out(self.robots_purchase_total),
            "robots_lease_monthly_total": money_out(self.robots_lease_monthly_total),
            "items_total": money_out(self.items_total),
            "total_purchase_value": money_out(self.total_purchase_value),
            "total_monthly": money_out(self.total_monthly),
            "prepayment_amount": money_out(self.prepayment_amount),
            "initial_payment": money_out(self.initial_payment),
            "net_payable": money_out(self.net_payable),
            "warranty_total": money_out(self.warranty_total),
            "has_purchase": self.has_purchase,
            "has_lease": self.has_lease,
        }


def prepayment_amount(prepayment_type: str, prepayment_value: Any, base: Decimal) -> Decimal:
    if prepayment_type not in PREPAYMENT_TYPES:
        raise PricingError(f"prepayment_type must be one of {', '.join(PREPAYMENT_TYPES)}")
    value = to_decimal(prepayment_value, field="prepayment_value")
    if value < 0:
        raise PricingError("prepayment_value must be >= 0")
    if prepayment_type == PREPAYMENT_PERCENT:
        return base * value / HUNDRED
    if prepayment_type == PREPAYMENT_AMOUNT:
        return value
    return ZERO


def compute_offer_totals(
    lines: Iterable[PricedLine],
    *,
    prepayment_type: str = PREPAYMENT_NONE,
    prepayment_value: Any = 0,
    initial_payment: Any = 0,
) -> OfferTotals:
    """
    Totals are independent of prepayment; prepayment and initial payment only
    reduce net_payable. Values are kept at full precision.
    """
    robots_purchase = ZERO
    robots_lease = ZERO
    items = ZERO
    warranty = ZERO
    has_purchase = False
    has_lease = False

    for line in lines:
        qty = Decimal(line.quantity)
        if line.kind == LINE_KIND_ITEM:
            items += qty * line.unit_price
            has_purchase = True
        elif line.is_lease:
            robots_lease += qty * line.monthly_price
            has_lease = True
        else:
            robots_purchase += qty * line.unit_price
            has_purchase = True
        warranty += qty * to_decimal(line.warranty_price)

    total_purchase_value = robots_purchase + items
    total_monthly = robots_lease
    prepay = prepayment_amount(prepayment_type, prepayment_value, total_purchase_value + total_monthly)
    initial = to_decimal(initial_payment, field="initial_payment")
    if initial < 0:
        raise PricingError("initial_payment must be >= 0")

    return OfferTotals(
        robots_purchase_total=robots_purchase,
        robots_lease_monthly_total=robots_lease,
        items_total=items,
        total_purchase_value=total_purchase_value,
        total_monthly=total_monthly,
        prepayment_amount=prepay,
        initial_payment=initial,
        net_payable=total_purchase_value + total_monthly - prepay - initial,
        warranty_total=warranty,
        has_purchase=has_purchase,
        has_lease=has_lease,
    )
