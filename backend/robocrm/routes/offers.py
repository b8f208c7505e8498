# Overview: Flask API routes for offers and leads: CRUD, stage changes, totals, PDF versions, contract creation.

from flask import Blueprint, Response, jsonify, request

from ..decorators import current_user_id, require_auth
from ..errors import error_response
from ..services import contract_service, document_service, offer_service
from ..services.storage_service import get_storage


offers_bp = Blueprint("offers", __name__, url_prefix="/api/offers")


def _pdf_from_request() -> bytes:
    upload = request.files.get("file")
    if upload is not None:
        return upload.read()
    return request.get_data()


@offers_bp.get("")
@require_auth
def list_offers_route():
    rows = offer_service.list_offers(
        stage=request.args.get("stage"),
        client_id=request.args.get("client_id", type=int),
        salesperson_id=request.args.get("salesperson_id", type=int),
        reseller_id=request.args.get("reseller_id", type=int),
        leads_only=request.args.get("leads") in {"1", "true", "yes"},
    )
    return jsonify({"items": [o.to_dict() for o in rows], "count": len(rows)})


@offers_bp.post("")
@require_auth
def create_offer_route():
    """
    Create an offer. ?mode=lead starts it in the leads stage, the default
    mode=offer starts it qualified. A closed_won stage also derives a contract.
    """
    data = request.get_json(silent=True) or {}
    body_mode = data.pop("mode", None)
    mode = request.args.get("mode") or body_mode or offer_service.ENTRY_MODE_OFFER
    try:
        result = offer_service.create_offer(data, user_id=current_user_id(), mode=mode)
    except Exception as e:
        return error_response(e, "Create offer")
    return jsonify(result.to_dict()), 201


@offers_bp.post("/totals")
@require_auth
def preview_totals_route():
    try:
        result = offer_service.preview_totals(request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Compute totals")
    return jsonify(result)


@offers_bp.get("/<int:offer_id>")
@require_auth
def get_offer_route(offer_id: int):
    try:
        offer = offer_service.get_offer(offer_id)
    except Exception as e:
        return error_response(e, "Load offer")
    return jsonify({"offer": offer.to_dict(include_items=True)})


@offers_bp.patch("/<int:offer_id>")
@require_auth
def update_offer_route(offer_id: int):
    try:
        result = offer_service.update_offer(offer_id, request.get_json(silent=True) or {}, user_id=current_user_id())
    except Exception as e:
        return error_response(e, "Update offer")
    return jsonify(result.to_dict())


@offers_bp.delete("/<int:offer_id>")
@require_auth
def delete_offer_route(offer_id: int):
    try:
        offer_service.delete_offer(offer_id)
    except Exception as e:
        return error_response(e, "Delete offer")
    return jsonify({"deleted": offer_id})


@offers_bp.post("/<int:offer_id>/stage")
@require_auth
def change_stage_route(offer_id: int):
    data = request.get_json(silent=True) or {}
    try:
        result = offer_service.change_stage(offer_id, data.get("stage"), user_id=current_user_id())
    except Exception as e:
        return error_response(e, "Change stage")
    return jsonify(result.to_dict())


@offers_bp.get("/<int:offer_id>/totals")
@require_auth
def offer_totals_route(offer_id: int):
    try:
        totals = offer_service.offer_totals(offer_id)
    except Exception as e:
        return error_response(e, "Compute totals")
    return jsonify({"offer_id": offer_id, "totals": totals})


@offers_bp.get("/<int:offer_id>/contract-preview")
@require_auth
def contract_preview_route(offer_id: int):
    try:
        offer = offer_service.get_offer(offer_id)
        preview = contract_service.preview_contract_from_offer(offer)
    except Exception as e:
        return error_response(e, "Prepare contract")
    return jsonify({"contract": preview})


@offers_bp.post("/<int:offer_id>/create-contract")
@require_auth
def create_contract_route(offer_id: int):
    """Insert a contract from the offer; body fields override the derived terms."""
    try:
        offer = offer_service.get_offer(offer_id)
        contract = contract_service.create_contract_from_offer(
            offer,
            user_id=current_user_id(),
            overrides=request.get_json(silent=True) or {},
        )
    except Exception as e:
        return error_response(e, "Create contract")
    return jsonify({"contract": contract.to_dict()}), 201


@offers_bp.get("/<int:offer_id>/versions")
@require_auth
def list_versions_route(offer_id: int):
    try:
        offer_service.get_offer(offer_id)
    except Exception as e:
        return error_response(e, "Load versions")
    rows = document_service.list_offer_versions(offer_id)
    return jsonify({"items": [v.to_dict() for v in rows]})


@offers_bp.post("/<int:offer_id>/versions")
@require_auth
def create_version_route(offer_id: int):
    try:
        version = document_service.create_offer_version(
            get_storage(),
            offer_id,
            _pdf_from_request(),
            notes=request.args.get("notes") or request.form.get("notes"),
            user_id=current_user_id(),
        )
    except Exception as e:
        return error_response(e, "Store offer PDF")
    return jsonify({"version": version.to_dict()}), 201


@offers_bp.get("/<int:offer_id>/versions/<int:version_id>/pdf")
@require_auth
def download_version_route(offer_id: int, version_id: int):
    try:
        offer = offer_service.get_offer(offer_id)
        version = document_service.get_offer_version(offer_id, version_id)
        data = document_service.read_offer_pdf(get_storage(), version)
    except Exception as e:
        return error_response(e, "Download offer PDF")
    filename = f"{offer.offer_number}_v{version.version_number}.pdf"
    return Response(
        data,
        mimetype="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@offers_bp.post("/<int:offer_id>/versions/<int:version_id>/email")
@require_auth
def email_version_route(offer_id: int, version_id: int):
    data = request.get_json(silent=True) or {}
    try:
        result = offer_service.send_offer_email(offer_id, version_id, recipient_email=data.get("email"))
    except Exception as e:
        return error_response(e, "Send offer email")
    return jsonify({"message": f"Offer PDF sent to {result['recipient_email']}", **result})
