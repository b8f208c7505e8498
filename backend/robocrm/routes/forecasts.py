# Overview: Flask API routes for the revenue and robots-delivered forecast tables.

from flask import Blueprint, jsonify, request

from ..decorators import current_user_id, require_auth, require_role
from ..errors import error_response
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import forecast_service
from ..time_utils import today


forecasts_bp = Blueprint("forecasts", __name__, url_prefix="/api/forecasts")


@forecasts_bp.get("/<table_name>")
@require_auth
def get_year_route(table_name: str):
    year = request.args.get("year") or today().year
    try:
        table = forecast_service.get_table(table_name)
        data = forecast_service.get_year(table, year)
    except Exception as e:
        return error_response(e, "Load forecast")
    return jsonify(data)


@forecasts_bp.put("/<table_name>/<int:year>/<int:month>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def set_month_route(table_name: str, year: int, month: int):
    """Body: {"field": "forecast"|"actual", "value": number}"""
    data = request.get_json(silent=True) or {}
    try:
        table = forecast_service.get_table(table_name)
        row = forecast_service.set_month_value(
            table,
            year=year,
            month=month,
            field=data.get("field"),
            value=data.get("value"),
            user_id=current_user_id(),
        )
    except Exception as e:
        return error_response(e, "Update forecast")
    return jsonify({"row": row})
