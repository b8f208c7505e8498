# Overview: Flask API routes for classification dictionaries (types, segments, markets, sizes, tags).

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import client_service


dictionaries_bp = Blueprint("dictionaries", __name__, url_prefix="/api/dictionaries")


@dictionaries_bp.get("/<kind>")
@require_auth
def list_entries_route(kind: str):
    active_only = request.args.get("active") in {"1", "true", "yes"}
    try:
        rows = client_service.list_dictionary(kind, active_only=active_only)
    except Exception as e:
        return error_response(e, "Load dictionary")
    return jsonify({"items": [r.to_dict() for r in rows]})


@dictionaries_bp.post("/<kind>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_entry_route(kind: str):
    try:
        row = client_service.create_dictionary_entry(kind, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Create dictionary entry")
    return jsonify({"entry": row.to_dict()}), 201


@dictionaries_bp.patch("/entries/<int:entry_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_entry_route(entry_id: int):
    try:
        row = client_service.update_dictionary_entry(entry_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Update dictionary entry")
    return jsonify({"entry": row.to_dict()})


@dictionaries_bp.delete("/entries/<int:entry_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_entry_route(entry_id: int):
    try:
        client_service.delete_dictionary_entry(entry_id)
    except Exception as e:
        return error_response(e, "Delete dictionary entry")
    return jsonify({"deleted": entry_id})
