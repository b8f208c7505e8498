"""Resellers: CRUD, references from clients and offers, and the performance report."""
from datetime import date, datetime
from decimal import Decimal

import pytest

from robocrm.extensions import db
from robocrm.models import Offer, Reseller
from robocrm.services import client_service, offer_service, reseller_service
from robocrm.services.reseller_service import ResellerNotFoundError
from robocrm.validation import ConflictError, ValidationError

from conftest import make_client, make_robot


def make_reseller(name="Northwind Robotics", **fields):
    row = Reseller(name=name, **fields)
    db.session.add(row)
    db.session.commit()
    return row


def _offer(client, reseller, stage, total, created_at=None):
    offer = Offer(
        offer_number=f"OFF-{reseller.id}-{stage}-{total}",
        client_id=client.id,
        reseller_id=reseller.id,
        stage=stage,
        total_price=Decimal(total),
    )
    if created_at is not None:
        offer.created_at = created_at
    db.session.add(offer)
    db.session.commit()
    return offer


class TestResellerService:

    def test_create_defaults(self, db_session, sales_user):
        reseller = reseller_service.create_reseller({"name": "Northwind"}, user_id=sales_user.id)
        assert reseller.status == "active"
        assert reseller.assigned_salesperson_id == sales_user.id

    @pytest.mark.parametrize("payload", [
        {"name": "   "},
        {"name": "X", "status": "paused"},
        {"name": "X", "general_email": "not-an-email"},
        {"name": "X", "balance": -5},
    ])
    def test_invalid_payload_rejected(self, db_session, payload):
        with pytest.raises(ValidationError):
            reseller_service.create_reseller(payload)

    def test_search_matches_name_nip_and_city(self, db_session):
        make_reseller("Northwind", city="Gdansk")
        make_reseller("Southwind", nip="5250001009")
        assert [r.name for r in reseller_service.list_resellers(search="gdan")] == ["Northwind"]
        assert [r.name for r in reseller_service.list_resellers(search="5250")] == ["Southwind"]

    def test_reseller_in_use_cannot_be_deleted(self, db_session):
        reseller = make_reseller()
        make_client("Beta", reseller_id=reseller.id)
        with pytest.raises(ConflictError):
            reseller_service.delete_reseller(reseller.id)

    def test_unused_reseller_is_deleted(self, db_session):
        reseller = make_reseller()
        reseller_service.delete_reseller(reseller.id)
        with pytest.raises(ResellerNotFoundError):
            reseller_service.get_reseller(reseller.id)


class TestResellerReferences:

    def test_client_filter(self, db_session):
        reseller = make_reseller()
        client_service.create_client({"name": "Beta", "reseller_id": reseller.id})
        client_service.create_client({"name": "Gamma"})
        assert [c.name for c in client_service.list_clients(reseller_id=reseller.id)] == ["Beta"]

    def test_unknown_reseller_on_client_rejected(self, db_session):
        with pytest.raises(ValidationError, match="reseller_id"):
            client_service.create_client({"name": "Beta", "reseller_id": 404})

    def test_offer_can_be_moved_to_another_reseller(self, db_session, acme):
        first = make_reseller("First")
        second = make_reseller("Second")
        offer = offer_service.create_offer(
            {"client_id": acme.id, "reseller_id": first.id}, user_id=None, mode="lead"
        ).offer
        offer_service.update_offer(offer.id, {"reseller_id": second.id}, user_id=None)
        assert offer_service.get_offer(offer.id).reseller_id == second.id
        assert offer_service.list_offers(reseller_id=first.id) == []


class TestResellerReport:

    def test_revenue_counts_and_order(self, db_session, acme):
        small = make_reseller("Alpha")
        big = make_reseller("Bravo")
        make_reseller("Dormant", status="inactive")
        make_client("Beta", reseller_id=small.id)
        make_client("Gamma", reseller_id=small.id)
        _offer(acme, small, "closed_won", "100.10")
        _offer(acme, small, "negotiation", "900")
        _offer(acme, big, "closed_won", "2000")
        _offer(acme, big, "closed_lost", "500")

        report = reseller_service.reseller_report()

        assert [row["name"] for row in report["items"]] == ["Bravo", "Alpha"]
        bravo, alpha = report["items"]
        assert bravo["revenue"] == 2000.0
        assert bravo["offer_count"] == 2
        assert alpha["revenue"] == 100.1
        assert alpha["client_count"] == 2
        assert report["total_resellers"] == 2
        assert report["total_clients"] == 2
        assert report["total_revenue"] == 2100.1

    def test_since_limits_offers(self, db_session, acme):
        reseller = make_reseller()
        _offer(acme, reseller, "closed_won", "300", created_at=datetime(2023, 1, 10))
        _offer(acme, reseller, "closed_won", "700", created_at=datetime(2024, 6, 1))

        report = reseller_service.reseller_report(since=date(2024, 1, 1))

        assert report["since"] == "2024-01-01"
        assert report["items"][0]["offer_count"] == 1
        assert report["items"][0]["revenue"] == 700.0

    def test_no_resellers(self, db_session):
        report = reseller_service.reseller_report()
        assert report["items"] == []
        assert report["total_revenue"] == 0.0


class TestResellerApi:

    def test_manager_creates_and_salesperson_reads(self, client, manager_headers, sales_headers):
        resp = client.post("/api/resellers", json={"name": "Northwind", "balance": "1250.50"}, headers=manager_headers)
        assert resp.status_code == 201
        reseller = resp.get_json()["reseller"]
        assert reseller["balance"] == 1250.5

        listed = client.get("/api/resellers", headers=sales_headers).get_json()
        assert [r["id"] for r in listed["items"]] == [reseller["id"]]

        resp = client.patch(f"/api/resellers/{reseller['id']}", json={"status": "inactive"}, headers=manager_headers)
        assert resp.get_json()["reseller"]["status"] == "inactive"

    def test_salesperson_cannot_manage(self, client, sales_headers):
        assert client.post("/api/resellers", json={"name": "Northwind"}, headers=sales_headers).status_code == 403

    def test_offer_list_filter(self, client, sales_headers, acme):
        make_robot("R1")
        reseller = make_reseller()
        body = {"client_id": acme.id, "reseller_id": reseller.id, "items": [{"robot_model": "R1"}]}
        created = client.post("/api/offers", json=body, headers=sales_headers)
        assert created.status_code == 201
        assert created.get_json()["offer"]["reseller_id"] == reseller.id
        client.post("/api/offers?mode=lead", json={"client_id": acme.id}, headers=sales_headers)

        items = client.get(f"/api/offers?reseller_id={reseller.id}", headers=sales_headers).get_json()["items"]
        assert [o["reseller_id"] for o in items] == [reseller.id]

    def test_unknown_reseller_on_offer_is_400(self, client, sales_headers, acme):
        resp = client.post("/api/offers?mode=lead", json={"client_id": acme.id, "reseller_id": 404}, headers=sales_headers)
        assert resp.status_code == 400

    def test_missing_reseller_is_404(self, client, sales_headers):
        assert client.get("/api/resellers/404", headers=sales_headers).status_code == 404

    def test_delete_in_use_is_409(self, client, manager_headers, acme):
        reseller = make_reseller()
        make_client("Beta", reseller_id=reseller.id)
        assert client.delete(f"/api/resellers/{reseller.id}", headers=manager_headers).status_code == 409

    def test_report_endpoint(self, client, sales_headers, acme):
        reseller = make_reseller()
        _offer(acme, reseller, "closed_won", "450")
        resp = client.get("/api/resellers/report", headers=sales_headers)
        assert resp.status_code == 200
        assert resp.get_json()["total_revenue"] == 450.0

    def test_report_bad_since_is_400(self, client, sales_headers):
        assert client.get("/api/resellers/report?since=yesterday", headers=sales_headers).status_code == 400
