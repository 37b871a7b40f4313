"""
Dashboard helpers.

Pure functions behind the dashboard view: re-filtering an already fetched list,
the stat cards, the category chart and CSV export. Nothing here touches the
database; input is a list of ExpenseOut.
"""

import csv
import io
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from aggregation import summarize
from models import ALL_CATEGORIES

CATEGORY_COLORS = {
    "Food": "#f97316",
    "Transport": "#3b82f6",
    "Entertainment": "#a855f7",
    "Shopping": "#ec4899",
    "Bills": "#ef4444",
    "Healthcare": "#22c55e",
    "Education": "#6366f1",
    "Other": "#64748b",
}

CSV_HEADERS = ["Title", "Amount", "Category", "Date", "Description"]


def round_amount(amount: float) -> float:
    return round(amount * 100) / 100


def format_currency(amount: float, symbol: str = "₹") -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def category_color(category: str) -> str:
    return CATEGORY_COLORS.get(category, CATEGORY_COLORS["Other"])


def date_range(period: str, today: Optional[date] = None) -> Tuple[date, date]:
    """Start/end dates for the "last week/month/year" quick filters."""
    today = today or datetime.now(timezone.utc).date()
    if period == "week":
        return today - timedelta(days=7), today
    if period == "month":
        year, month = (today.year, today.month - 1) if today.month > 1 else (today.year - 1, 12)
        return _clamp_day(year, month, today.day), today
    if period == "year":
        return _clamp_day(today.year - 1, today.month, today.day), today
    raise ValueError(f"Unknown period: {period}")


def _clamp_day(year: int, month: int, day: int) -> date:
    while True:
        try:
            return date(year, month, day)
        except ValueError:
            day -= 1


def filter_expenses(
    expenses: Iterable,
    category: Optional[str] = None,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List:
    filtered = list(expenses)
    if category and category != ALL_CATEGORIES:
        filtered = [e for e in filtered if e.category == category]
    if search:
        needle = search.lower()
        filtered = [
            e for e in filtered
            if needle in e.title.lower() or (e.description and needle in e.description.lower())
        ]
    if start_date:
        filtered = [e for e in filtered if e.date >= start_date]
    if end_date:
        filtered = [e for e in filtered if e.date <= end_date]
    return filtered


def stat_cards(expenses: List) -> dict:
    total, _ = summarize(expenses)
    count = len(expenses)
    average = round_amount(total / count) if count else 0.0
    return {
        "total_expenses": total,
        "count": count,
        "average": average,
        "formatted_total": format_currency(round_amount(total)),
        "formatted_average": format_currency(average),
    }


def chart_slices(category_wise: Dict[str, float]) -> List[dict]:
    total = sum(category_wise.values())
    slices = []
    for name, value in sorted(category_wise.items(), key=lambda kv: kv[1], reverse=True):
        slices.append({
            "name": name,
            "value": value,
            "percentage": round(value / total * 100, 1) if total else 0.0,
            "color": category_color(name),
        })
    return slices


def build_dashboard(expenses: List) -> dict:
    total, category_wise = summarize(expenses)
    return {
        "cards": stat_cards(expenses),
        "chart": chart_slices(category_wise),
        "total": total,
        "category_wise": category_wise,
        "count": len(expenses),
    }


def to_csv(expenses: Iterable) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for e in expenses:
        writer.writerow([e.title, e.amount, e.category, e.date.isoformat(), e.description or ""])
    return buf.getvalue()


def export_filename(today: Optional[date] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"expenses_{today.isoformat()}.csv"
