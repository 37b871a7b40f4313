"""
Expense store accessor.

Every function works on one owner's records and one request-scoped session.
Ownership is checked here so routes never touch another user's row.
"""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from errors import NotFound, PermissionDenied
from models import ALL_CATEGORIES, ExpenseModel
from schemas import ExpenseFilters, ExpenseIn

logger = logging.getLogger(__name__)


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _today() -> date:
    return datetime.now(timezone.utc).date()


async def query_expenses(db: AsyncSession, owner_id: str, filters: Optional[ExpenseFilters] = None) -> List[ExpenseModel]:
    filters = filters or ExpenseFilters()
    query = select(ExpenseModel).where(ExpenseModel.user_id == owner_id)
    if filters.category and filters.category != ALL_CATEGORIES:
        query = query.where(ExpenseModel.category == filters.category)
    if filters.start_date:
        query = query.where(ExpenseModel.date >= filters.start_date)
    if filters.end_date:
        query = query.where(ExpenseModel.date <= filters.end_date)
    if filters.search:
        query = query.where(ExpenseModel.title.ilike(_like_pattern(filters.search), escape="\\"))
    query = query.order_by(ExpenseModel.date.desc(), ExpenseModel.created_at.desc())

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_owned_expense(db: AsyncSession, expense_id: str, owner_id: str, action: str = "access") -> ExpenseModel:
    result = await db.execute(select(ExpenseModel).where(ExpenseModel.id == expense_id))
    expense = result.scalar_one_or_none()
    if expense is None:
        raise NotFound("Expense not found")
    if expense.user_id != owner_id:
        raise PermissionDenied(f"Not authorized to {action} this expense")
    return expense


async def create_expense(db: AsyncSession, owner_id: str, payload: ExpenseIn) -> ExpenseModel:
    expense = ExpenseModel(
        user_id=owner_id,
        title=payload.title,
        amount=payload.amount,
        category=payload.category,
        date=payload.date or _today(),
        description=payload.description,
    )
    db.add(expense)
    await db.commit()
    await db.refresh(expense)
    logger.info("Expense %s created for user %s", expense.id, owner_id)
    return expense


async def update_expense(db: AsyncSession, expense_id: str, owner_id: str, payload: ExpenseIn) -> ExpenseModel:
    expense = await get_owned_expense(db, expense_id, owner_id, action="update")
    expense.title = payload.title
    expense.amount = payload.amount
    expense.category = payload.category
    if payload.date is not None:
        expense.date = payload.date
    if "description" in payload.model_fields_set:
        expense.description = payload.description
    await db.commit()
    await db.refresh(expense)
    logger.info("Expense %s updated by user %s", expense.id, owner_id)
    return expense


async def delete_expense(db: AsyncSession, expense_id: str, owner_id: str) -> None:
    expense = await get_owned_expense(db, expense_id, owner_id, action="delete")
    await db.delete(expense)
    await db.commit()
    logger.info("Expense %s deleted by user %s", expense_id, owner_id)
