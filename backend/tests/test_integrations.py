"""
External collaborators: the serverless functions client and bucket storage,
plus the PDF version history built on top of them.
"""
import httpx
import pytest

from robocrm.extensions import db
from robocrm.models import Contract
from robocrm.services import document_service, functions_client
from robocrm.services.document_service import DocumentError
from robocrm.services.functions_client import FunctionInvocationError
from robocrm.services.storage_service import BucketStorage, StorageError, get_storage

from conftest import make_client


PDF = b"%PDF-1.7 body"


class TestFunctionsClient:

    def test_posts_json_with_bearer_key(self, app, db_session):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"token": "pk.abc"})

        app.config["FUNCTIONS_TRANSPORT"] = httpx.MockTransport(handler)
        assert functions_client.get_map_token() == "pk.abc"
        assert seen == {"url": "http://functions.test/get-map-token", "auth": "Bearer test-key"}

    def test_api_key_field_is_accepted(self, app, db_session):
        app.config["FUNCTIONS_TRANSPORT"] = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"apiKey": "pk.xyz"})
        )
        assert functions_client.get_map_token() == "pk.xyz"

    def test_missing_token_is_an_error(self, app, db_session):
        app.config["FUNCTIONS_TRANSPORT"] = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        with pytest.raises(FunctionInvocationError, match="no token"):
            functions_client.get_map_token()

    def test_error_status_carries_upstream_message(self, app, db_session):
        app.config["FUNCTIONS_TRANSPORT"] = httpx.MockTransport(
            lambda request: httpx.Response(500, json={"error": "SMTP relay down"})
        )
        with pytest.raises(FunctionInvocationError) as exc_info:
            functions_client.invoke("send-offer-email", {"offerNumber": "OFF-1"})
        assert str(exc_info.value) == "SMTP relay down"
        assert exc_info.value.details == {"function": "send-offer-email", "status_code": 500}

    def test_transport_failure(self, app, db_session):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        app.config["FUNCTIONS_TRANSPORT"] = httpx.MockTransport(handler)
        with pytest.raises(FunctionInvocationError, match="unreachable"):
            functions_client.invoke("get-map-token")

    def test_empty_body_is_empty_dict(self, app, db_session):
        app.config["FUNCTIONS_TRANSPORT"] = httpx.MockTransport(lambda request: httpx.Response(204))
        assert functions_client.invoke("send-contract-email") == {}


class TestBucketStorage:

    def test_upload_download_remove(self, tmp_path):
        storage = BucketStorage(str(tmp_path))
        storage.upload("contract-pdfs", "1/CON-00001_v1.pdf", PDF)
        assert storage.exists("contract-pdfs", "1/CON-00001_v1.pdf")
        assert storage.download("contract-pdfs", "1/CON-00001_v1.pdf") == PDF
        assert storage.public_url("contract-pdfs", "1/CON-00001_v1.pdf") == "/files/contract-pdfs/1/CON-00001_v1.pdf"
        assert storage.remove("contract-pdfs", "1/CON-00001_v1.pdf") is True
        assert storage.remove("contract-pdfs", "1/CON-00001_v1.pdf") is False

    def test_no_silent_overwrite(self, tmp_path):
        storage = BucketStorage(str(tmp_path))
        storage.upload("offer-pdfs", "a.pdf", PDF)
        with pytest.raises(StorageError, match="already exists"):
            storage.upload("offer-pdfs", "a.pdf", b"%PDF other")
        storage.upload("offer-pdfs", "a.pdf", b"%PDF other", overwrite=True)
        assert storage.download("offer-pdfs", "a.pdf") == b"%PDF other"

    @pytest.mark.parametrize(
        "bucket,path",
        [("contract-pdfs", "../escape.pdf"), ("contract-pdfs", "a/../../b.pdf"), ("contract-pdfs", ""), ("secrets", "a.pdf")],
    )
    def test_rejects_bad_addresses(self, tmp_path, bucket, path):
        with pytest.raises(StorageError):
            BucketStorage(str(tmp_path)).upload(bucket, path, PDF)

    def test_missing_object(self, tmp_path):
        with pytest.raises(StorageError, match="not found"):
            BucketStorage(str(tmp_path)).download("offer-pdfs", "nope.pdf")


class TestVersionHistory:

    def test_versions_number_up_and_list_newest_first(self, db_session):
        client = make_client("Acme")
        contract = Contract(contract_number="CON-00007", client_id=client.id)
        db.session.add(contract)
        db.session.commit()
        storage = get_storage()

        v1 = document_service.create_contract_version(storage, contract.id, PDF, notes="first")
        v2 = document_service.create_contract_version(storage, contract.id, PDF)

        assert (v1.version_number, v2.version_number) == (1, 2)
        assert v2.file_path == f"{contract.id}/CON-00007_v2.pdf"
        assert [v.id for v in document_service.list_contract_versions(contract.id)] == [v2.id, v1.id]
        assert document_service.read_contract_pdf(storage, v1) == PDF

    def test_non_pdf_rejected(self, db_session):
        client = make_client("Acme")
        contract = Contract(contract_number="CON-00008", client_id=client.id)
        db.session.add(contract)
        db.session.commit()
        with pytest.raises(DocumentError, match="not a PDF"):
            document_service.create_contract_version(get_storage(), contract.id, b"<html>")
