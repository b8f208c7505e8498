# Overview: Monthly revenue and robots-delivered forecast vs. actual tables with variance.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..extensions import db
from ..models import MonthlyRevenue, MonthlyRobotsDelivered
from ..money import MoneyError, ZERO, money_out, to_decimal
from ..validation import ValidationError, require_positive_int


MONTHS = 12
FIELD_FORECAST = "forecast"
FIELD_ACTUAL = "actual"
EDITABLE_FIELDS = (FIELD_FORECAST, FIELD_ACTUAL)

MIN_YEAR = 2000
MAX_YEAR = 2100


@dataclass(frozen=True)
class ForecastTable:
    name: str
    model: Any
    forecast_column: str
    actual_column: str
    is_money: bool

    def column_for(self, field: str) -> str:
        return self.forecast_column if field == FIELD_FORECAST else self.actual_column


REVENUE = ForecastTable("revenue", MonthlyRevenue, "forecast_amount", "actual_amount", is_money=True)
ROBOTS_DELIVERED = ForecastTable("robots-delivered", MonthlyRobotsDelivered, "forecast_units", "actual_units", is_money=False)

TABLES = {t.name: t for t in (REVENUE, ROBOTS_DELIVERED)}


class ForecastNotFoundError(Exception):
    pass


def get_table(name: str) -> ForecastTable:
    table = TABLES.get(name)
    if table is None:
        raise ForecastNotFoundError(f"Unknown forecast table: {name}")
    return table


def variance_percent(forecast: Any, actual: Any) -> Decimal:
    """(actual - forecast) / forecast * 100; 0 when nothing was forecast."""
    f = to_decimal(forecast)
    a = to_decimal(actual)
    if f == 0:
        return ZERO
    return (a - f) / f * Decimal("100")


def _out(table: ForecastTable, value: Any):
    if table.is_money:
        return money_out(value)
    return int(value or 0)


def _row_dict(table: ForecastTable, row, year: int, month: int, index: int) -> dict:
    if row is None:
        forecast, actual = ZERO, ZERO
        data = {"id": f"temp-{index}", "year": year, "month": month, "notes": None}
        if table.is_money:
            data["currency"] = "PLN"
    else:
        forecast = to_decimal(getattr(row, table.forecast_column))
        actual = to_decimal(getattr(row, table.actual_column))
        data = row.to_dict()
    data["forecast"] = _out(table, forecast)
    data["actual"] = _out(table, actual)
    data["variance"] = float(round(variance_percent(forecast, actual), 2))
    return data


def _check_year(year: Any) -> int:
    year = require_positive_int(year, "year")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
    return year


def get_year(table: ForecastTable, year: Any) -> dict:
    """Always twelve rows; months without a record are zero placeholders."""
    year = _check_year(year)
    rows = db.session.query(table.model).filter(table.model.year == year).all()
    by_month = {r.month: r for r in rows}

    out = []
    total_forecast = ZERO
    total_actual = ZERO
    for i in range(MONTHS):
        row = by_month.get(i + 1)
        out.append(_row_dict(table, row, year, i + 1, i))
        if row is not None:
            total_forecast += to_decimal(getattr(row, table.forecast_column))
            total_actual += to_decimal(getattr(row, table.actual_column))

    return {
        "year": year,
        "rows": out,
        "total": {
            "forecast": _out(table, total_forecast),
            "actual": _out(table, total_actual),
            "variance": float(round(variance_percent(total_forecast, total_actual), 2)),
        },
    }


def _coerce_value(table: ForecastTable, value: Any):
    if table.is_money:
        try:
            number = to_decimal(value, field="value")
        except MoneyError as e:
            raise ValidationError(str(e))
    else:
        if isinstance(value, bool):
            raise ValidationError("value must be a whole number")
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationError("value must be a whole number")
        if number != value and not isinstance(value, str):
            raise ValidationError("value must be a whole number")
    if number < 0:
        raise ValidationError("value must be >= 0")
    return number


def set_month_value(
    table: ForecastTable,
    *,
    year: Any,
    month: Any,
    field: str,
    value: Any,
    user_id: int | None,
):
    """
    Edit one cell. The first edit of a month inserts the row; later edits only
    touch the edited field.
    """
    year = _check_year(year)
    month = require_positive_int(month, "month")
    if month > MONTHS:
        raise ValidationError("month must be between 1 and 12")
    if field not in EDITABLE_FIELDS:
        raise ValidationError(f"field must be one of {', '.join(EDITABLE_FIELDS)}")
    number = _coerce_value(table, value)

    row = db.session.query(table.model).filter_by(year=year, month=month).first()
    if row is None:
        row = table.model(
            year=year,
            month=month,
            created_by_user_id=user_id,
            **{table.forecast_column: 0, table.actual_column: 0},
        )
        db.session.add(row)
    setattr(row, table.column_for(field), number)
    row.updated_by_user_id = user_id
    db.session.commit()
    return _row_dict(table, row, year, month, month - 1)
