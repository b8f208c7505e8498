# Overview: Flask API routes for resellers and the reseller performance report.

from flask import Blueprint, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import reseller_service
from ..time_utils import parse_iso_date
from ..validation import ValidationError


resellers_bp = Blueprint("resellers", __name__, url_prefix="/api/resellers")


@resellers_bp.get("")
@require_auth
def list_resellers_route():
    rows = reseller_service.list_resellers(
        search=request.args.get("search"),
        status=request.args.get("status"),
    )
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@resellers_bp.get("/report")
@require_auth
def reseller_report_route():
    try:
        try:
            since = parse_iso_date(request.args.get("since"))
        except ValueError:
            raise ValidationError("since must be an ISO date (YYYY-MM-DD)")
        report = reseller_service.reseller_report(since=since)
    except Exception as e:
        return error_response(e, "Load reseller report")
    return jsonify(report)


@resellers_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_reseller_route():
    try:
        reseller = reseller_service.create_reseller(request.get_json(silent=True) or {}, user_id=current_user_id())
    except Exception as e:
        return error_response(e, "Create reseller")
    return jsonify({"reseller": reseller.to_dict()}), 201


@resellers_bp.get("/<int:reseller_id>")
@require_auth
def get_reseller_route(reseller_id: int):
    try:
        reseller = reseller_service.get_reseller(reseller_id)
    except Exception as e:
        return error_response(e, "Load reseller")
    return jsonify({"reseller": reseller.to_dict()})


@resellers_bp.patch("/<int:reseller_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_reseller_route(reseller_id: int):
    try:
        reseller = reseller_service.update_reseller(reseller_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Update reseller")
    return jsonify({"reseller": reseller.to_dict()})


@resellers_bp.delete("/<int:reseller_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_reseller_route(reseller_id: int):
    try:
        reseller_service.delete_reseller(reseller_id)
    except Exception as e:
        return error_response(e, "Delete reseller")
    return jsonify({"deleted": reseller_id})
