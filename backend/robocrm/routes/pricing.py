# Overview: Flask API routes for robot/lease/item price lists and price resolution.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..money import money_out, normalize_currency
from ..services import catalog_service, offer_service, pricing_service
from ..services.settings_service import get_company_settings
from ..validation import ValidationError, require_positive_int


pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


def _robot_dict(row):
    # Lowest prices are visible to admins only
    return row.to_dict(include_lowest=g.current_user.is_admin)


@pricing_bp.get("/robots")
@require_auth
def list_robots_route():
    rows = catalog_service.list_robot_pricing()
    return jsonify({"items": [_robot_dict(r) for r in rows]})


@pricing_bp.post("/robots")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_robot_route():
    try:
        row = catalog_service.create_robot_pricing(request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Create robot pricing")
    return jsonify({"pricing": _robot_dict(row)}), 201


@pricing_bp.get("/robots/<int:pricing_id>")
@require_auth
def get_robot_route(pricing_id: int):
    try:
        row = catalog_service.get_robot_pricing(pricing_id)
    except Exception as e:
        return error_response(e, "Load robot pricing")
    return jsonify({"pricing": _robot_dict(row)})


@pricing_bp.patch("/robots/<int:pricing_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_robot_route(pricing_id: int):
    try:
        row = catalog_service.update_robot_pricing(pricing_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Update robot pricing")
    return jsonify({"pricing": _robot_dict(row)})


@pricing_bp.delete("/robots/<int:pricing_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_robot_route(pricing_id: int):
    try:
        catalog_service.delete_robot_pricing(pricing_id)
    except Exception as e:
        return error_response(e, "Delete robot pricing")
    return jsonify({"deleted": pricing_id})


@pricing_bp.post("/robots/<int:pricing_id>/lease")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def add_lease_route(pricing_id: int):
    try:
        row = catalog_service.add_lease_pricing(pricing_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Create lease pricing")
    return jsonify({"lease_pricing": row.to_dict()}), 201


@pricing_bp.patch("/lease/<int:lease_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_lease_route(lease_id: int):
    try:
        row = catalog_service.update_lease_pricing(lease_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Update lease pricing")
    return jsonify({"lease_pricing": row.to_dict()})


@pricing_bp.delete("/lease/<int:lease_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_lease_route(lease_id: int):
    try:
        catalog_service.delete_lease_pricing(lease_id)
    except Exception as e:
        return error_response(e, "Delete lease pricing")
    return jsonify({"deleted": lease_id})


@pricing_bp.get("/items")
@require_auth
def list_items_route():
    active_only = request.args.get("active") in {"1", "true", "yes"}
    rows = catalog_service.list_items(active_only=active_only)
    return jsonify({"items": [r.to_dict() for r in rows]})


@pricing_bp.post("/items")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def create_item_route():
    try:
        row = catalog_service.create_item(
            request.get_json(silent=True) or {},
            default_vat_rate=get_company_settings().default_vat_rate,
        )
    except Exception as e:
        return error_response(e, "Create item")
    return jsonify({"item": row.to_dict()}), 201


@pricing_bp.patch("/items/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_item_route(item_id: int):
    try:
        row = catalog_service.update_item(item_id, request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Update item")
    return jsonify({"item": row.to_dict()})


@pricing_bp.delete("/items/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def delete_item_route(item_id: int):
    try:
        catalog_service.delete_item(item_id)
    except Exception as e:
        return error_response(e, "Delete item")
    return jsonify({"deleted": item_id})


@pricing_bp.post("/resolve")
@require_auth
def resolve_route():
    """
    Resolve one robot line price.
    Body: {"robot_model", "contract_type", "currency", "lease_months"?}
    """
    data = request.get_json(silent=True) or {}
    try:
        currency = normalize_currency(data.get("currency") or get_company_settings().default_currency)
        months = data.get("lease_months")
        months = require_positive_int(months, "lease_months") if months not in (None, "") else None
        robot_model = (data.get("robot_model") or "").strip()
        if not robot_model:
            raise ValidationError("robot_model is required")
        snapshot = pricing_service.load_pricing_snapshot()
        price = pricing_service.resolve_unit_price(
            snapshot,
            robot_model=robot_model,
            contract_type=data.get("contract_type") or "purchase",
            currency=currency,
            lease_months=months,
        )
    except Exception as e:
        return error_response(e, "Resolve price")
    return jsonify({
        "robot_model": robot_model,
        "contract_type": data.get("contract_type") or "purchase",
        "currency": currency,
        "lease_months": months,
        "unit_price": money_out(price),
    })


@pricing_bp.post("/totals")
@require_auth
def totals_route():
    """Price a draft selection and return its totals (nothing is stored)."""
    try:
        result = offer_service.preview_totals(request.get_json(silent=True) or {})
    except Exception as e:
        return error_response(e, "Compute totals")
    return jsonify(result)
