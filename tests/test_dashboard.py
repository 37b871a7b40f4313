import csv
import io
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

import dashboard


def exp(title, amount, category, day, description=None):
    return SimpleNamespace(title=title, amount=amount, category=category, date=day, description=description)


ROWS = [
    exp("Coffee", 4.5, "Food", date(2024, 1, 5), "flat white"),
    exp("Taxi", 18.0, "Transport", date(2024, 1, 3)),
    exp("Groceries", 52.25, "Food", date(2024, 1, 1), "weekly shop, incl. coffee beans"),
]


def test_filter_by_category_and_all():
    assert [e.title for e in dashboard.filter_expenses(ROWS, category="Food")] == ["Coffee", "Groceries"]
    assert len(dashboard.filter_expenses(ROWS, category="All")) == 3


def test_filter_search_matches_title_or_description():
    titles = [e.title for e in dashboard.filter_expenses(ROWS, search="COFFEE")]
    assert titles == ["Coffee", "Groceries"]


def test_filter_dates_inclusive():
    res = dashboard.filter_expenses(ROWS, start_date=date(2024, 1, 3), end_date=date(2024, 1, 5))
    assert [e.title for e in res] == ["Coffee", "Taxi"]


def test_stat_cards():
    cards = dashboard.stat_cards(ROWS)
    assert cards["count"] == 3
    assert cards["total_expenses"] == pytest.approx(74.75)
    assert cards["average"] == 24.92
    assert cards["formatted_total"] == "₹74.75"
    assert cards["formatted_average"] == "₹24.92"
    assert dashboard.stat_cards([]) == {
        "total_expenses": 0.0, "count": 0, "average": 0.0,
        "formatted_total": "₹0.00", "formatted_average": "₹0.00",
    }


def test_chart_slices_sorted_with_percentages():
    slices = dashboard.chart_slices({"Food": 75.0, "Transport": 25.0, "Mystery": 0.0})
    assert [s["name"] for s in slices] == ["Food", "Transport", "Mystery"]
    assert slices[0]["percentage"] == 75.0
    assert slices[1]["color"] == "#3b82f6"
    assert slices[2]["color"] == dashboard.CATEGORY_COLORS["Other"]
    assert dashboard.chart_slices({}) == []


def test_format_helpers():
    assert dashboard.format_currency(1234.5) == "₹1,234.50"
    assert dashboard.format_currency(-2) == "-₹2.00"
    assert dashboard.round_amount(2.345678) == 2.35


def test_date_range_periods():
    today = date(2024, 3, 31)
    assert dashboard.date_range("week", today) == (date(2024, 3, 24), today)
    assert dashboard.date_range("month", today) == (date(2024, 2, 29), today)
    assert dashboard.date_range("year", today) == (date(2023, 3, 31), today)
    assert dashboard.date_range("month", date(2024, 1, 15))[0] == date(2023, 12, 15)
    with pytest.raises(ValueError):
        dashboard.date_range("decade", today)


def test_to_csv_quotes_every_cell():
    text = dashboard.to_csv(ROWS[:2])
    lines = text.splitlines()
    assert lines[0] == '"Title","Amount","Category","Date","Description"'
    assert lines[2] == '"Taxi","18.0","Transport","2024-01-03",""'
    parsed = list(csv.reader(io.StringIO(text)))
    assert parsed[1] == ["Coffee", "4.5", "Food", "2024-01-05", "flat white"]


def test_export_filename():
    assert dashboard.export_filename(date(2024, 5, 6)) == "expenses_2024-05-06.csv"


def test_dashboard_endpoint(client, alice):
    client.post("/expenses", json={"title": "Coffee", "amount": 4.5, "category": "Food",
                                   "date": "2024-01-05", "description": "flat white"}, headers=alice)
    client.post("/expenses", json={"title": "Taxi", "amount": 15.5, "category": "Transport",
                                   "date": "2024-01-03", "description": "to the airport for coffee"}, headers=alice)
    client.post("/expenses", json={"title": "Rent", "amount": 500, "category": "Bills",
                                   "date": "2024-01-01"}, headers=alice)

    res = client.get("/expenses/dashboard", params={"search": "coffee"}, headers=alice)
    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 2
    data = body["data"]
    assert data["cards"] == {
        "totalExpenses": 20.0, "count": 2, "average": 10.0,
        "formattedTotal": "₹20.00", "formattedAverage": "₹10.00",
    }
    assert data["categoryWise"] == {"Food": 4.5, "Transport": 15.5}
    assert [s["name"] for s in data["chart"]] == ["Transport", "Food"]


def test_export_endpoint(client, alice, bob):
    client.post("/expenses", json={"title": "Coffee", "amount": 4.5, "category": "Food",
                                   "date": "2024-01-05"}, headers=alice)
    res = client.get("/expenses/export", headers=alice)
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert res.headers["content-disposition"].startswith('attachment; filename="expenses_')
    assert res.text.splitlines()[1] == '"Coffee","4.5","Food","2024-01-05",""'

    empty = client.get("/expenses/export", headers=bob)
    assert empty.status_code == 404
    assert empty.json()["message"] == "No expenses to export"


def test_period_quick_filter(client, alice):
    today = datetime.now(timezone.utc).date()
    for title, days_ago in [("Today", 0), ("Recent", 3), ("Last month", 20), ("Ancient", 400)]:
        day = (today - timedelta(days=days_ago)).isoformat()
        res = client.post("/expenses", json={"title": title, "amount": 10, "category": "Other", "date": day},
                          headers=alice)
        assert res.status_code == 201

    week = client.get("/expenses", params={"period": "week"}, headers=alice).json()
    assert [e["title"] for e in week["data"]["expenses"]] == ["Today", "Recent"]

    month = client.get("/expenses/dashboard", params={"period": "month"}, headers=alice).json()
    assert month["count"] == 3
    assert month["data"]["cards"]["formattedTotal"] == "₹30.00"

    export = client.get("/expenses/export", params={"period": "year"}, headers=alice)
    assert len(export.text.splitlines()) == 4

    explicit = client.get("/expenses", params={"period": "year", "startDate": today.isoformat()}, headers=alice)
    assert explicit.json()["count"] == 1


def test_unknown_period_rejected(client, alice):
    res = client.get("/expenses", params={"period": "decade"}, headers=alice)
    assert res.status_code == 400
    assert res.json()["errors"] == [{"field": "period", "message": "Period must be week, month or year"}]
