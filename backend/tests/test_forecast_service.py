from decimal import Decimal

import pytest

from robocrm.extensions import db
from robocrm.models import MonthlyRevenue
from robocrm.services import forecast_service
from robocrm.services.forecast_service import (
    REVENUE,
    ROBOTS_DELIVERED,
    ForecastNotFoundError,
    variance_percent,
)
from robocrm.validation import ValidationError


@pytest.mark.parametrize(
    "forecast,actual,expected",
    [
        (0, 50, Decimal("0")),
        (100, 120, Decimal("20")),
        (200, 150, Decimal("-25")),
        ("1000.00", "1000.00", Decimal("0")),
    ],
)
def test_variance_percent(forecast, actual, expected):
    assert variance_percent(forecast, actual) == expected


def test_unknown_table():
    with pytest.raises(ForecastNotFoundError):
        forecast_service.get_table("profit")


class TestYearView:

    def test_empty_year_has_twelve_placeholders(self, db_session):
        data = forecast_service.get_year(REVENUE, 2024)
        assert len(data["rows"]) == 12
        assert [r["id"] for r in data["rows"]] == [f"temp-{i}" for i in range(12)]
        assert [r["month"] for r in data["rows"]] == list(range(1, 13))
        assert all(r["forecast"] == 0 and r["actual"] == 0 and r["variance"] == 0 for r in data["rows"])
        assert data["total"] == {"forecast": 0, "actual": 0, "variance": 0}

    def test_stored_months_replace_placeholders(self, db_session):
        db.session.add(MonthlyRevenue(year=2024, month=3, forecast_amount=Decimal("100"), actual_amount=Decimal("120")))
        db.session.commit()
        rows = forecast_service.get_year(REVENUE, 2024)["rows"]
        march = rows[2]
        assert isinstance(march["id"], int)
        assert march["variance"] == 20.0
        assert rows[3]["id"] == "temp-3"

    def test_totals_and_other_years(self, db_session):
        forecast_service.set_month_value(REVENUE, year=2024, month=1, field="forecast", value=200, user_id=None)
        forecast_service.set_month_value(REVENUE, year=2024, month=2, field="forecast", value=200, user_id=None)
        forecast_service.set_month_value(REVENUE, year=2024, month=2, field="actual", value=500, user_id=None)
        forecast_service.set_month_value(REVENUE, year=2023, month=2, field="actual", value=999, user_id=None)
        total = forecast_service.get_year(REVENUE, 2024)["total"]
        assert total == {"forecast": 400.0, "actual": 500.0, "variance": 25.0}

    @pytest.mark.parametrize("year", [1999, 2101, "abc"])
    def test_year_range(self, db_session, year):
        with pytest.raises(ValidationError):
            forecast_service.get_year(REVENUE, year)


class TestEditing:

    def test_first_edit_creates_row_later_edits_touch_one_field(self, db_session):
        row = forecast_service.set_month_value(
            ROBOTS_DELIVERED, year=2024, month=5, field="forecast", value=10, user_id=None
        )
        assert row["forecast"] == 10 and row["actual"] == 0

        row = forecast_service.set_month_value(
            ROBOTS_DELIVERED, year=2024, month=5, field="actual", value=7, user_id=None
        )
        assert row["forecast"] == 10
        assert row["actual"] == 7
        assert row["variance"] == -30.0

        rows = forecast_service.get_year(ROBOTS_DELIVERED, 2024)["rows"]
        assert sum(1 for r in rows if not str(r["id"]).startswith("temp-")) == 1

    @pytest.mark.parametrize(
        "month,field,value",
        [(13, "forecast", 1), (0, "forecast", 1), (1, "budget", 1), (1, "actual", -5), (1, "actual", 2.5)],
    )
    def test_rejects_bad_cells(self, db_session, month, field, value):
        with pytest.raises(ValidationError):
            forecast_service.set_month_value(
                ROBOTS_DELIVERED, year=2024, month=month, field=field, value=value, user_id=None
            )

    def test_revenue_accepts_decimals(self, db_session):
        row = forecast_service.set_month_value(
            REVENUE, year=2024, month=1, field="actual", value="1234.56", user_id=None
        )
        assert row["actual"] == 1234.56
