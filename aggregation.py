from typing import Dict, Iterable, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from models import ExpenseModel


def summarize(expenses: Iterable) -> Tuple[float, Dict[str, float]]:
    """
    Total amount and per-category sums over an already owner-scoped set.

    Works on anything with ``amount`` and ``category`` attributes (ORM rows or
    ExpenseOut). Only categories present in the set appear in the mapping.
    """
    total = 0.0
    category_wise: Dict[str, float] = {}
    for expense in expenses:
        total += expense.amount
        category_wise[expense.category] = category_wise.get(expense.category, 0.0) + expense.amount
    return total, category_wise


async def category_stats(db: AsyncSession, owner_id: str) -> dict:
    by_category = (
        select(
            ExpenseModel.category,
            func.sum(ExpenseModel.amount).label("total"),
            func.count(ExpenseModel.id).label("num"),
        )
        .where(ExpenseModel.user_id == owner_id)
        .group_by(ExpenseModel.category)
        .order_by(func.sum(ExpenseModel.amount).desc())
    )
    rows = (await db.execute(by_category)).fetchall()
    per_category = [
        {"category": r.category, "total": float(r.total or 0), "count": int(r.num)}
        for r in rows
    ]

    overall_q = select(
        func.coalesce(func.sum(ExpenseModel.amount), 0).label("total"),
        func.count(ExpenseModel.id).label("num"),
    ).where(ExpenseModel.user_id == owner_id)
    overall = (await db.execute(overall_q)).one()

    return {
        "category_stats": per_category,
        "overall": {"total": float(overall.total or 0), "count": int(overall.num)},
    }
