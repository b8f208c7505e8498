# Overview: Flask API routes for clients and their classification sets.

from flask import Blueprint, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import client_service


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients_route():
    rows = client_service.list_clients(
        search=request.args.get("search"),
        city=request.args.get("city"),
        status=request.args.get("status"),
        salesperson_id=request.args.get("salesperson_id", type=int),
        reseller_id=request.args.get("reseller_id", type=int),
    )
    return jsonify({"items": [c.to_dict() for c in rows], "count": len(rows)})


@clients_bp.post("")
@require_auth
def create_client_route():
    try:
        client = client_service.create_client(request.get_json(silent=True) or {}, user_id=current_user_id())
    except Exception as e:
        return error_response(e, "Create client")
    return jsonify({"client": client.to_dict(include_classifications=True)}), 201


@clients_bp.get("/<int:client_id>")
@require_auth
def get_client_route(client_id: int):
    try:
        client = client_service.get_client(client_id)
    except Exception as e:
        return error_response(e, "Load client")
    return jsonify({"client": client.to_dict(include_classifications=True)})


@clients_bp.patch("/<int:client_id>")
@require_auth
def update_client_route(client_id: int):
    try:
        client = client_service.update_client(client_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Update client")
    return jsonify({"client": client.to_dict(include_classifications=True)})


@clients_bp.put("/<int:client_id>/classifications")
@require_auth
def set_classifications_route(client_id: int):
    try:
        result = client_service.set_classifications(client_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Update classifications")
    return jsonify(result)


@clients_bp.delete("/<int:client_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_client_route(client_id: int):
    try:
        client_service.delete_client(client_id)
    except Exception as e:
        return error_response(e, "Delete client")
    return jsonify({"deleted": client_id})
