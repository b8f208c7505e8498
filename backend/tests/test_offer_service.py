from datetime import date
from decimal import Decimal

import pytest

from robocrm.extensions import db
from robocrm.models import Contract
from robocrm.services import offer_service
from robocrm.services.offer_service import CONTRACT_FAILURE_PREFIX, OfferError
from robocrm.time_utils import add_months, today
from robocrm.validation import ValidationError

from conftest import make_item, make_robot


LEASE_LINE = {"robot_model": "R1", "contract_type": "lease", "lease_months": 12, "quantity": 1, "unit_price": 1200}


@pytest.fixture
def r1(db_session):
    return make_robot("R1", pln="1200", usd="300", eur="280", lease={24: ("60", "15", "14")})


def _offer(client, *, stage="negotiation", items=None, **fields):
    payload = {"client_id": client.id, "stage": stage, "items": items if items is not None else [LEASE_LINE]}
    payload.update(fields)
    return offer_service.create_offer(payload, user_id=None).offer


class TestCreateOffer:

    def test_lead_mode_starts_in_leads_without_items(self, db_session, acme):
        result = offer_service.create_offer({"client_id": acme.id}, user_id=None, mode="lead")
        assert result.offer.stage == "leads"
        assert result.offer.offer_number.startswith("OFF-")
        assert result.contract is None

    def test_offer_mode_starts_qualified(self, db_session, acme, r1):
        offer = offer_service.create_offer(
            {"client_id": acme.id, "items": [{"robot_model": "R1", "quantity": 2}]},
            user_id=None,
        ).offer
        assert offer.stage == "qualified"
        assert offer.currency == "PLN"
        assert float(offer.total_purchase_value) == 2400.0

    def test_leaving_leads_needs_a_line(self, db_session, acme):
        with pytest.raises(ValidationError, match="at least one line item"):
            offer_service.create_offer({"client_id": acme.id}, user_id=None, mode="offer")

    def test_lines_are_resolved_from_price_list(self, db_session, acme, r1):
        offer = _offer(acme, items=[
            {"robot_model": "R1", "contract_type": "lease", "lease_months": 24},
            {"robot_model": "R1", "contract_type": "lease", "lease_months": 12},
        ])
        prices = sorted(float(it.unit_price) for it in offer.items)
        assert prices == [60.0, 100.0]
        assert float(offer.total_monthly) == 160.0
        assert all(it.monthly_price == it.unit_price for it in offer.items)

    def test_item_lines_use_catalog_price(self, db_session, acme):
        item = make_item(price="500")
        offer = _offer(acme, items=[{"kind": "item", "item_id": item.id, "quantity": 3}])
        assert float(offer.total_purchase_value) == 1500.0

    def test_unknown_item_rejected(self, db_session, acme):
        with pytest.raises(ValidationError, match="existing item"):
            _offer(acme, items=[{"kind": "item", "item_id": 404}])

    def test_lease_line_needs_term(self, db_session, acme, r1):
        with pytest.raises(ValidationError, match="lease_months"):
            _offer(acme, items=[{"robot_model": "R1", "contract_type": "lease"}])

    def test_total_price_is_net_payable(self, db_session, acme, r1):
        offer = _offer(
            acme,
            items=[{"robot_model": "R1"}],
            prepayment_type="amount",
            prepayment_value=200,
            initial_payment=100,
        )
        assert float(offer.total_purchase_value) == 1200.0
        assert float(offer.total_price) == 900.0


class TestUpdateOffer:

    def test_items_are_replaced(self, db_session, acme, r1):
        offer = _offer(acme, items=[{"robot_model": "R1", "quantity": 1}])
        offer_service.update_offer(offer.id, {"items": [{"robot_model": "R1", "quantity": 3}]}, user_id=None)
        offer = offer_service.get_offer(offer.id)
        assert [it.quantity for it in offer.items] == [3]
        assert float(offer.total_purchase_value) == 3600.0

    def test_currency_change_reprices_lines(self, db_session, acme, r1):
        offer = _offer(acme, items=[{"robot_model": "R1", "quantity": 2}])
        offer_service.update_offer(offer.id, {"currency": "usd"}, user_id=None)
        offer = offer_service.get_offer(offer.id)
        assert offer.currency == "USD"
        assert float(offer.items[0].unit_price) == 300.0
        assert float(offer.total_purchase_value) == 600.0

    def test_invalid_patch_leaves_offer_untouched(self, db_session, acme, r1):
        offer = _offer(acme, items=[{"robot_model": "R1"}])
        with pytest.raises(ValidationError):
            offer_service.update_offer(offer.id, {"notes": "changed", "stage": "nowhere"}, user_id=None)
        assert offer_service.get_offer(offer.id).notes is None

    def test_totals_survive_an_unrelated_edit(self, db_session, acme):
        # 1000 / 12 months has no exact cent value; the line carries 83.33
        make_robot("R2", pln="1000")
        offer = _offer(acme, items=[{"robot_model": "R2", "contract_type": "lease", "lease_months": 12, "quantity": 3}])
        assert offer.items[0].unit_price == Decimal("83.33")
        persisted = offer.total_monthly
        assert persisted == Decimal("249.99")
        assert offer_service.offer_totals(offer.id)["total_monthly"] == float(persisted)

        offer_service.update_offer(offer.id, {"notes": "called back"}, user_id=None)
        offer = offer_service.get_offer(offer.id)
        assert offer.total_monthly == persisted
        assert offer.total_price == persisted

        result = offer_service.change_stage(offer.id, "closed_won", user_id=None)
        assert result.contract.total_monthly_contracted == persisted


class TestWonTransition:

    def test_negotiation_to_won_derives_lease_contract(self, db_session, acme):
        offer = _offer(acme)
        result = offer_service.change_stage(offer.id, "closed_won", user_id=None)

        contract = result.contract
        assert result.contract_error is None
        assert contract.contract_number == "CON-00001"
        assert contract.offer_id == offer.id
        assert contract.client_id == acme.id
        assert contract.payment_model == "lease"
        assert float(contract.monthly_payment) == 100.0
        assert contract.start_date == today()
        assert contract.end_date == add_months(today(), 12)
        assert contract.status == "draft"
        assert contract.billing_schedule == "monthly"

    @pytest.mark.parametrize("target", ["qualified", "proposal_sent", "closed_lost"])
    def test_other_transitions_create_nothing(self, db_session, acme, target):
        offer = _offer(acme)
        result = offer_service.change_stage(offer.id, target, user_id=None)
        assert result.contract is None
        assert db.session.query(Contract).count() == 0

    def test_staying_won_does_not_duplicate(self, db_session, acme):
        offer = _offer(acme)
        offer_service.change_stage(offer.id, "closed_won", user_id=None)
        again = offer_service.change_stage(offer.id, "closed_won", user_id=None)
        assert again.contract is None
        assert db.session.query(Contract).count() == 1

    def test_created_won_derives_contract(self, db_session, acme):
        result = offer_service.create_offer(
            {"client_id": acme.id, "stage": "closed_won", "items": [LEASE_LINE]}, user_id=None
        )
        assert result.contract is not None

    def test_won_through_update(self, db_session, acme):
        offer = _offer(acme)
        result = offer_service.update_offer(offer.id, {"stage": "closed_won"}, user_id=None)
        assert result.contract is not None

    def test_contract_failure_keeps_the_offer_won(self, db_session, acme):
        # Latest contract points the sequence at a number that is already taken
        db.session.add(Contract(contract_number="CON-00002", client_id=acme.id))
        db.session.commit()
        db.session.add(Contract(contract_number="MANUAL-1", client_id=acme.id))
        db.session.commit()

        offer = _offer(acme)
        result = offer_service.change_stage(offer.id, "closed_won", user_id=None)

        assert result.contract is None
        assert result.contract_error.startswith(CONTRACT_FAILURE_PREFIX)
        assert result.to_dict()["warning"] == result.contract_error
        assert offer_service.get_offer(offer.id).stage == "closed_won"
        assert db.session.query(Contract).count() == 2


class TestMisc:

    def test_preview_totals_persists_nothing(self, db_session, r1):
        data = offer_service.preview_totals({
            "currency": "EUR",
            "items": [{"robot_model": "R1", "quantity": 2}],
            "prepayment_type": "percent",
            "prepayment_value": 50,
        })
        assert data["currency"] == "EUR"
        assert data["totals"]["total_purchase_value"] == 560.0
        assert data["totals"]["net_payable"] == 280.0

    def test_offer_with_contracts_cannot_be_deleted(self, db_session, acme):
        offer = _offer(acme)
        offer_service.change_stage(offer.id, "closed_won", user_id=None)
        with pytest.raises(OfferError):
            offer_service.delete_offer(offer.id)

    def test_delivery_date_is_parsed(self, db_session, acme, r1):
        offer = _offer(acme, items=[{"robot_model": "R1"}], delivery_date="2025-06-01")
        assert offer.delivery_date == date(2025, 6, 1)

    def test_leads_filter(self, db_session, acme, r1):
        offer_service.create_offer({"client_id": acme.id}, user_id=None, mode="lead")
        _offer(acme, items=[{"robot_model": "R1"}])
        assert [o.stage for o in offer_service.list_offers(leads_only=True)] == ["leads"]
