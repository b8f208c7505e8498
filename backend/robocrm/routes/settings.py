# Overview: Flask API routes for company settings and their audit trail.

from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


def _parse_updates(payload: dict) -> list[dict]:
    if isinstance(payload.get("updates"), list):
        return payload["updates"]
    key = payload.get("key")
    if not key:
        return []
    return [{"key": key, "value": payload.get("value"), "unset": bool(payload.get("unset", False))}]


@settings_bp.get("")
@require_auth
def list_settings_route():
    items = settings_service.list_settings()
    return jsonify({"items": items, "count": len(items)})


@settings_bp.get("/company")
@require_auth
def company_settings_route():
    return jsonify({"settings": settings_service.get_company_settings().to_dict()})


@settings_bp.put("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_settings_route():
    payload = request.get_json(silent=True) or {}
    updates = _parse_updates(payload)
    if not updates:
        return jsonify({"error": "No updates provided"}), 400
    try:
        result = settings_service.bulk_update_settings(
            updates=updates,
            user_id=current_user_id(),
            change_reason=payload.get("reason"),
        )
    except Exception as e:
        return error_response(e, "Update settings")
    if result["errors"]:
        return jsonify({"error": "Some settings are invalid", "errors": result["errors"]}), 400
    return jsonify(result)


@settings_bp.get("/audit")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def audit_route():
    limit = min(request.args.get("limit", default=100, type=int), 500)
    return jsonify({"items": settings_service.list_audit(limit=limit)})
