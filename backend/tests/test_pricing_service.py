"""
Price resolution and offer totals.

These run against in-memory PricingSnapshot values, no database needed.
"""
import logging
from decimal import Decimal

import pytest

from robocrm.services.pricing_service import (
    PricedLine,
    PricingError,
    PricingSnapshot,
    RobotPrices,
    compute_offer_totals,
    prepayment_amount,
    reprice_line,
    resolve_item_price,
    resolve_unit_price,
)


def _snapshot():
    r1 = RobotPrices(
        robot_model="R1",
        sale={"PLN": Decimal("1200"), "USD": Decimal("300"), "EUR": None},
        lease={24: {"PLN": Decimal("55"), "USD": Decimal("14"), "EUR": Decimal("13")}},
    )
    return PricingSnapshot(robots={"R1": r1}, items={7: Decimal("500")})


def robot_line(qty, price, *, contract_type="purchase", months=None, warranty="0"):
    return PricedLine(
        kind="robot",
        quantity=qty,
        unit_price=Decimal(price),
        contract_type=contract_type,
        robot_model="R1",
        lease_months=months,
        warranty_price=Decimal(warranty),
    )


class TestResolveUnitPrice:

    def test_purchase_uses_sale_price(self):
        price = resolve_unit_price(_snapshot(), robot_model="R1", contract_type="purchase", currency="PLN")
        assert price == Decimal("1200")

    def test_lease_uses_exact_term_row(self):
        price = resolve_unit_price(
            _snapshot(), robot_model="R1", contract_type="lease", currency="USD", lease_months=24
        )
        assert price == Decimal("14")

    def test_lease_without_term_row_spreads_purchase_price(self):
        price = resolve_unit_price(
            _snapshot(), robot_model="R1", contract_type="lease", currency="PLN", lease_months=12
        )
        assert price == Decimal("100")

    def test_fallback_keeps_full_precision(self):
        price = resolve_unit_price(
            _snapshot(), robot_model="R1", contract_type="lease", currency="PLN", lease_months=7
        )
        assert price == Decimal("1200") / Decimal(7)

    def test_unknown_model_resolves_to_zero_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="robocrm.services.pricing_service"):
            price = resolve_unit_price(_snapshot(), robot_model="R9", contract_type="purchase", currency="PLN")
        assert price == Decimal("0")
        assert "R9" in caplog.text

    def test_missing_currency_price_resolves_to_zero(self):
        price = resolve_unit_price(_snapshot(), robot_model="R1", contract_type="purchase", currency="EUR")
        assert price == Decimal("0")

    def test_empty_model_is_zero(self):
        assert resolve_unit_price(_snapshot(), robot_model="", contract_type="purchase", currency="PLN") == 0

    def test_lease_requires_months(self):
        with pytest.raises(PricingError):
            resolve_unit_price(_snapshot(), robot_model="R1", contract_type="lease", currency="PLN")

    @pytest.mark.parametrize("contract_type,currency", [("rent", "PLN"), ("purchase", "GBP")])
    def test_rejects_unknown_type_or_currency(self, contract_type, currency):
        with pytest.raises(PricingError):
            resolve_unit_price(_snapshot(), robot_model="R1", contract_type=contract_type, currency=currency)

    def test_resolution_is_idempotent(self):
        snapshot = _snapshot()
        line = robot_line(1, "0", contract_type="lease", months=12)
        first = reprice_line(snapshot, line, "PLN").unit_price
        second = reprice_line(snapshot, line, "PLN").unit_price
        assert first == second == Decimal("100")

    def test_reprice_switches_currency(self):
        line = robot_line(1, "1200")
        reprice_line(_snapshot(), line, "USD")
        assert line.unit_price == Decimal("300")

    def test_repriced_line_carries_cents(self):
        line = robot_line(3, "0", contract_type="lease", months=7)
        reprice_line(_snapshot(), line, "PLN")
        assert line.unit_price == Decimal("171.43")
        totals = compute_offer_totals([line])
        assert totals.total_monthly == Decimal("514.29")

    def test_item_price_from_catalog(self):
        assert resolve_item_price(_snapshot(), 7) == Decimal("500")
        assert resolve_item_price(_snapshot(), 99) == Decimal("0")


class TestOfferTotals:

    def test_totals_split_purchase_and_lease(self):
        lines = [
            robot_line(2, "1200"),
            robot_line(3, "100", contract_type="lease", months=12),
            PricedLine(kind="item", quantity=1, unit_price=Decimal("500"), item_id=7),
        ]
        totals = compute_offer_totals(lines)
        assert totals.robots_purchase_total == Decimal("2400")
        assert totals.robots_lease_monthly_total == Decimal("300")
        assert totals.items_total == Decimal("500")
        assert totals.total_purchase_value == Decimal("2900")
        assert totals.total_monthly == Decimal("300")
        assert totals.has_purchase and totals.has_lease

    def test_no_prepayment_net_is_totals_minus_initial(self):
        lines = [robot_line(1, "1000"), robot_line(1, "50", contract_type="lease", months=12)]
        totals = compute_offer_totals(lines, initial_payment="100")
        assert totals.prepayment_amount == 0
        assert totals.net_payable == Decimal("950")

    def test_full_percent_prepayment_leaves_nothing_payable(self):
        lines = [robot_line(1, "1000"), robot_line(2, "75", contract_type="lease", months=24)]
        totals = compute_offer_totals(lines, prepayment_type="percent", prepayment_value=100)
        assert totals.prepayment_amount == Decimal("1150")
        assert totals.net_payable == 0

    @pytest.mark.parametrize(
        "prepayment_type,value",
        [("none", 0), ("percent", 30), ("amount", 250), ("percent", 100)],
    )
    def test_prepayment_never_changes_totals(self, prepayment_type, value):
        lines = [robot_line(2, "1200"), robot_line(1, "80", contract_type="lease", months=12)]
        baseline = compute_offer_totals(lines)
        totals = compute_offer_totals(lines, prepayment_type=prepayment_type, prepayment_value=value)
        assert totals.total_purchase_value == baseline.total_purchase_value
        assert totals.total_monthly == baseline.total_monthly

    def test_warranty_total(self):
        lines = [robot_line(2, "1000", warranty="150"), robot_line(1, "1000", warranty="40")]
        assert compute_offer_totals(lines).warranty_total == Decimal("340")

    def test_to_dict_rounds_at_boundary(self):
        lines = [robot_line(1, str(Decimal("1200") / Decimal(7)), contract_type="lease", months=7)]
        data = compute_offer_totals(lines).to_dict()
        assert data["total_monthly"] == 171.43
        assert data["has_lease"] is True
        assert data["has_purchase"] is False

    def test_empty_offer(self):
        totals = compute_offer_totals([])
        assert totals.net_payable == 0
        assert not totals.has_purchase and not totals.has_lease


class TestPrepaymentAmount:

    def test_percent_of_base(self):
        assert prepayment_amount("percent", "25", Decimal("400")) == Decimal("100")

    def test_fixed_amount(self):
        assert prepayment_amount("amount", "120.50", Decimal("400")) == Decimal("120.50")

    def test_negative_rejected(self):
        with pytest.raises(PricingError):
            prepayment_amount("amount", "-1", Decimal("400"))

    def test_unknown_type_rejected(self):
        with pytest.raises(PricingError):
            prepayment_amount("half", "1", Decimal("400"))
