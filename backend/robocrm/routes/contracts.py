# Overview: Flask API routes for contracts: CRUD, status, numbering, PDF versions and email.

from flask import Blueprint, Response, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import contract_service, document_service, numbering_service
from ..services.settings_service import get_company_settings
from ..services.storage_service import get_storage


contracts_bp = Blueprint("contracts", __name__, url_prefix="/api/contracts")


@contracts_bp.get("")
@require_auth
def list_contracts_route():
    rows = contract_service.list_contracts(
        client_id=request.args.get("client_id", type=int),
        status=request.args.get("status"),
    )
    return jsonify({"items": [c.to_dict() for c in rows], "count": len(rows)})


@contracts_bp.get("/next-number")
@require_auth
def next_number_route():
    try:
        number = numbering_service.generate_masked_contract_number(get_company_settings().contract_number_mask)
    except Exception as e:
        return error_response(e, "Generate contract number")
    return jsonify({"contract_number": number})


@contracts_bp.post("")
@require_auth
def create_contract_route():
    try:
        contract = contract_service.create_contract(request.get_json(silent=True) or {}, user_id=current_user_id())
    except Exception as e:
        return error_response(e, "Create contract")
    return jsonify({"contract": contract.to_dict()}), 201


@contracts_bp.get("/<int:contract_id>")
@require_auth
def get_contract_route(contract_id: int):
    try:
        contract = contract_service.get_contract(contract_id)
    except Exception as e:
        return error_response(e, "Load contract")
    return jsonify({"contract": contract.to_dict()})


@contracts_bp.patch("/<int:contract_id>")
@require_auth
def update_contract_route(contract_id: int):
    try:
        contract = contract_service.update_contract(contract_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Update contract")
    return jsonify({"contract": contract.to_dict()})


@contracts_bp.post("/<int:contract_id>/status")
@require_auth
def update_status_route(contract_id: int):
    data = request.get_json(silent=True) or {}
    try:
        contract = contract_service.update_status(contract_id, data.get("status"))
    except Exception as e:
        return error_response(e, "Update contract status")
    return jsonify({"contract": contract.to_dict()})


@contracts_bp.delete("/<int:contract_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_contract_route(contract_id: int):
    try:
        contract_service.delete_contract(contract_id)
    except Exception as e:
        return error_response(e, "Delete contract")
    return jsonify({"deleted": contract_id})


@contracts_bp.get("/<int:contract_id>/versions")
@require_auth
def list_versions_route(contract_id: int):
    try:
        contract_service.get_contract(contract_id)
    except Exception as e:
        return error_response(e, "Load versions")
    rows = document_service.list_contract_versions(contract_id)
    return jsonify({"items": [v.to_dict() for v in rows]})


@contracts_bp.post("/<int:contract_id>/versions")
@require_auth
def create_version_route(contract_id: int):
    upload = request.files.get("file")
    pdf_bytes = upload.read() if upload is not None else request.get_data()
    try:
        version = document_service.create_contract_version(
            get_storage(),
            contract_id,
            pdf_bytes,
            notes=request.args.get("notes") or request.form.get("notes"),
            user_id=current_user_id(),
        )
    except Exception as e:
        return error_response(e, "Store contract PDF")
    return jsonify({"version": version.to_dict()}), 201


@contracts_bp.get("/<int:contract_id>/versions/<int:version_id>/pdf")
@require_auth
def download_version_route(contract_id: int, version_id: int):
    try:
        contract = contract_service.get_contract(contract_id)
        version = document_service.get_contract_version(contract_id, version_id)
        data = document_service.read_contract_pdf(get_storage(), version)
    except Exception as e:
        return error_response(e, "Download contract PDF")
    filename = f"{contract.contract_number}_v{version.version_number}.pdf"
    return Response(
        data,
        mimetype="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@contracts_bp.post("/<int:contract_id>/versions/<int:version_id>/email")
@require_auth
def email_version_route(contract_id: int, version_id: int):
    data = request.get_json(silent=True) or {}
    try:
        log = contract_service.send_contract_email(
            contract_id,
            version_id,
            recipient_email=data.get("email"),
            user_id=current_user_id(),
        )
    except Exception as e:
        return error_response(e, "Send contract email")
    return jsonify({"message": f"Contract PDF sent to {log.recipient_email}", "email": log.to_dict()})


@contracts_bp.get("/<int:contract_id>/emails")
@require_auth
def email_history_route(contract_id: int):
    try:
        rows = contract_service.list_email_history(contract_id)
    except Exception as e:
        return error_response(e, "Load email history")
    return jsonify({"items": [r.to_dict() for r in rows]})
