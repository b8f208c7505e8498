# Overview: Flask API routes proxying serverless function calls (map token).

from flask import Blueprint, jsonify

from ..decorators import require_auth
from ..errors import error_response
from ..services import functions_client


integrations_bp = Blueprint("integrations", __name__, url_prefix="/api/integrations")


@integrations_bp.get("/map-token")
@require_auth
def map_token_route():
    try:
        token = functions_client.get_map_token()
    except Exception as e:
        return error_response(e, "Fetch map token")
    return jsonify({"token": token})
