# Overview: Flask API routes for campaign audiences, email templates and mailings.

from flask import Blueprint, jsonify, request

from ..decorators import current_user_id, require_auth
from ..errors import error_response
from ..services import campaign_service


campaigns_bp = Blueprint("campaigns", __name__, url_prefix="/api")


@campaigns_bp.post("/campaigns/preview")
@require_auth
def preview_audience_route():
    data = request.get_json(silent=True) or {}
    try:
        clients = campaign_service.filter_audience(data.get("filters"))
    except Exception as e:
        return error_response(e, "Filter clients")
    return jsonify({
        "items": [{"id": c.id, "name": c.name, "general_email": c.general_email, "city": c.city} for c in clients],
        "count": len(clients),
    })


@campaigns_bp.get("/campaigns")
@require_auth
def list_campaigns_route():
    rows = campaign_service.list_campaigns()
    return jsonify({"items": [c.to_dict() for c in rows]})


@campaigns_bp.post("/campaigns")
@require_auth
def create_campaign_route():
    data = request.get_json(silent=True) or {}
    try:
        campaign = campaign_service.save_campaign(
            name=data.get("name"),
            filters=data.get("filters"),
            client_ids=data.get("client_ids"),
            user_id=current_user_id(),
        )
    except Exception as e:
        return error_response(e, "Save campaign")
    return jsonify({"campaign": campaign.to_dict(include_clients=True)}), 201


@campaigns_bp.get("/campaigns/<int:campaign_id>")
@require_auth
def get_campaign_route(campaign_id: int):
    try:
        campaign = campaign_service.get_campaign(campaign_id)
    except Exception as e:
        return error_response(e, "Load campaign")
    return jsonify({"campaign": campaign.to_dict(include_clients=True)})


@campaigns_bp.put("/campaigns/<int:campaign_id>")
@require_auth
def update_campaign_route(campaign_id: int):
    data = request.get_json(silent=True) or {}
    try:
        campaign = campaign_service.save_campaign(
            name=data.get("name"),
            filters=data.get("filters"),
            client_ids=data.get("client_ids"),
            user_id=current_user_id(),
            campaign_id=campaign_id,
        )
    except Exception as e:
        return error_response(e, "Save campaign")
    return jsonify({"campaign": campaign.to_dict(include_clients=True)})


@campaigns_bp.delete("/campaigns/<int:campaign_id>")
@require_auth
def delete_campaign_route(campaign_id: int):
    try:
        campaign_service.delete_campaign(campaign_id)
    except Exception as e:
        return error_response(e, "Delete campaign")
    return jsonify({"deleted": campaign_id})


@campaigns_bp.get("/campaigns/<int:campaign_id>/mailings")
@require_auth
def list_mailings_route(campaign_id: int):
    try:
        rows = campaign_service.list_mailings(campaign_id)
    except Exception as e:
        return error_response(e, "Load mailings")
    return jsonify({"items": [m.to_dict() for m in rows]})


@campaigns_bp.post("/campaigns/<int:campaign_id>/mailings")
@require_auth
def create_mailing_route(campaign_id: int):
    data = request.get_json(silent=True) or {}
    try:
        mailing = campaign_service.create_mailing(
            campaign_id,
            template_id=data.get("template_id"),
            name=data.get("name"),
        )
    except Exception as e:
        return error_response(e, "Create mailing")
    return jsonify({"mailing": mailing.to_dict()}), 201


@campaigns_bp.post("/campaigns/<int:campaign_id>/mailings/<int:mailing_id>/send")
@require_auth
def send_mailing_route(campaign_id: int, mailing_id: int):
    try:
        campaign_service.send_mailing(campaign_id, mailing_id)
    except Exception as e:
        return error_response(e, "Send mailing")
    return jsonify({"message": "Mailing sent"})


@campaigns_bp.get("/email-templates")
@require_auth
def list_templates_route():
    rows = campaign_service.list_templates()
    return jsonify({"items": [t.to_dict() for t in rows]})


@campaigns_bp.post("/email-templates")
@require_auth
def create_template_route():
    try:
        row = campaign_service.create_template(request.get_json(silent=True) or {}, user_id=current_user_id())
    except Exception as e:
        return error_response(e, "Create template")
    return jsonify({"template": row.to_dict()}), 201


@campaigns_bp.patch("/email-templates/<int:template_id>")
@require_auth
def update_template_route(template_id: int):
    try:
        row = campaign_service.update_template(template_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Update template")
    return jsonify({"template": row.to_dict()})


@campaigns_bp.delete("/email-templates/<int:template_id>")
@require_auth
def delete_template_route(template_id: int):
    try:
        campaign_service.delete_template(template_id)
    except Exception as e:
        return error_response(e, "Delete template")
    return jsonify({"deleted": template_id})
