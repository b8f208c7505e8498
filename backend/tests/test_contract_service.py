import json
from datetime import date
from decimal import Decimal

import httpx
import pytest
from sqlalchemy.exc import IntegrityError

from robocrm.models import Contract
from robocrm.services import contract_service, document_service
from robocrm.services.contract_service import (
    ContractError,
    DuplicateContractNumberError,
    derive_contract_terms,
)
from robocrm.services.pricing_service import PricedLine
from robocrm.services.storage_service import get_storage
from robocrm.time_utils import today
from robocrm.validation import ValidationError

from conftest import make_client


PDF = b"%PDF-1.4 test document"


def lease_line(qty, price, months):
    return PricedLine(
        kind="robot",
        quantity=qty,
        unit_price=Decimal(price),
        contract_type="lease",
        robot_model="R1",
        lease_months=months,
    )


class TestDeriveContractTerms:

    def test_lease_line_sets_monthly_payment_and_end_date(self):
        terms = derive_contract_terms(
            [lease_line(1, "1200", 12)], start=date(2024, 3, 15), billing_schedule="monthly"
        )
        assert terms.payment_model == "lease"
        assert terms.monthly_payment == Decimal("100")
        assert terms.end_date == date(2025, 3, 15)
        assert terms.lease_months == 12

    def test_purchase_only_is_open_ended(self):
        line = PricedLine(kind="robot", quantity=2, unit_price=Decimal("900"), robot_model="R1")
        terms = derive_contract_terms([line], start=date(2024, 1, 1), billing_schedule="quarterly")
        assert terms.payment_model == "purchase"
        assert terms.monthly_payment == 0
        assert terms.end_date is None
        assert terms.billing_schedule == "quarterly"

    def test_first_lease_line_term_is_the_divisor(self):
        lines = [lease_line(1, "1200", 12), lease_line(2, "600", 24)]
        terms = derive_contract_terms(lines, start=date(2024, 1, 31), billing_schedule="monthly")
        assert terms.monthly_payment == Decimal("200")
        assert terms.end_date == date(2025, 1, 31)

    def test_unset_term_defaults_to_twelve_months(self):
        terms = derive_contract_terms([lease_line(1, "2400", None)], start=date(2024, 1, 31), billing_schedule="monthly")
        assert terms.monthly_payment == Decimal("200")
        assert terms.lease_months == 12

    def test_month_end_is_clamped(self):
        terms = derive_contract_terms([lease_line(1, "100", 1)], start=date(2024, 1, 31), billing_schedule="monthly")
        assert terms.end_date == date(2024, 2, 29)


class TestManualContracts:

    def test_number_from_mask_and_defaults_from_settings(self, db_session, acme, admin_user):
        contract = contract_service.create_contract({"client_id": acme.id}, user_id=admin_user.id)
        assert contract.contract_number == f"CNT-{today().year}-001"
        assert contract.status == "draft"
        assert contract.payment_model == "lease"
        assert contract.billing_schedule == "monthly"
        assert contract.created_by_user_id == admin_user.id

        second = contract_service.create_contract({"client_id": acme.id}, user_id=admin_user.id)
        assert second.contract_number == f"CNT-{today().year}-002"

    def test_duplicate_number_rejected(self, db_session, acme):
        contract_service.create_contract({"client_id": acme.id, "contract_number": "X-1"}, user_id=None)
        with pytest.raises(DuplicateContractNumberError):
            contract_service.create_contract({"client_id": acme.id, "contract_number": "X-1"}, user_id=None)

    def test_renumbering_onto_an_existing_number_rejected(self, db_session, acme):
        contract_service.create_contract({"client_id": acme.id, "contract_number": "X-1"}, user_id=None)
        other = contract_service.create_contract({"client_id": acme.id, "contract_number": "X-2"}, user_id=None)
        with pytest.raises(DuplicateContractNumberError) as exc_info:
            contract_service.update_contract(other.id, {"contract_number": "X-1"})
        assert exc_info.value.contract_number == "X-1"
        assert contract_service.get_contract(other.id).contract_number == "X-2"

    def test_other_integrity_errors_are_not_reported_as_duplicates(self, db_session):
        # client_id is NOT NULL; the failure must surface as it is
        with pytest.raises(IntegrityError) as exc_info:
            contract_service._insert(Contract(contract_number="X-3", client_id=None))
        assert "contract_number" not in str(exc_info.value.orig).lower()

    def test_unknown_client_rejected(self, db_session):
        with pytest.raises(ValidationError):
            contract_service.create_contract({"client_id": 999}, user_id=None)

    def test_end_before_start_rejected(self, db_session, acme):
        with pytest.raises(ValidationError):
            contract_service.create_contract(
                {"client_id": acme.id, "start_date": "2024-05-01", "end_date": "2024-04-01"},
                user_id=None,
            )

    def test_only_drafts_can_be_deleted(self, db_session, acme):
        contract = contract_service.create_contract({"client_id": acme.id}, user_id=None)
        contract_service.update_status(contract.id, "active")
        with pytest.raises(ContractError):
            contract_service.delete_contract(contract.id)

    def test_update_status_validates(self, db_session, acme):
        contract = contract_service.create_contract({"client_id": acme.id}, user_id=None)
        with pytest.raises(ValidationError):
            contract_service.update_status(contract.id, "signed-ish")


class TestContractEmail:

    def _contract_with_version(self, client):
        contract = contract_service.create_contract({"client_id": client.id}, user_id=None)
        version = document_service.create_contract_version(get_storage(), contract.id, PDF)
        return contract, version

    def test_sends_to_general_email_and_logs(self, app, db_session, acme):
        sent = []

        def handler(request):
            sent.append((request.url.path, request.headers.get("Authorization"), json.loads(request.content)))
            return httpx.Response(200, json={"success": True})

        app.config["FUNCTIONS_TRANSPORT"] = httpx.MockTransport(handler)
        contract, version = self._contract_with_version(acme)

        log = contract_service.send_contract_email(contract.id, version.id, recipient_email=None, user_id=None)

        assert log.recipient_email == "office@acme.test"
        path, auth, body = sent[0]
        assert path == "/send-contract-email"
        assert auth == "Bearer test-key"
        assert body == {
            "contractNumber": contract.contract_number,
            "versionId": version.id,
            "clientEmail": "office@acme.test",
            "clientName": "Acme Robotics",
            "filePath": version.file_path,
        }
        assert [h.id for h in contract_service.list_email_history(contract.id)] == [log.id]

    def test_primary_contact_is_the_fallback(self, app, db_session):
        app.config["FUNCTIONS_TRANSPORT"] = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        beta = make_client("Beta", primary_contact_email="jan@beta.test")
        contract, version = self._contract_with_version(beta)
        log = contract_service.send_contract_email(contract.id, version.id, recipient_email="", user_id=None)
        assert log.recipient_email == "jan@beta.test"

    def test_no_address_anywhere(self, app, db_session):
        gamma = make_client("Gamma")
        contract, version = self._contract_with_version(gamma)
        with pytest.raises(ValidationError, match="email address"):
            contract_service.send_contract_email(contract.id, version.id, recipient_email=None, user_id=None)
