import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Depends, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

import config
import dashboard
import store
from aggregation import category_stats, summarize
from database import create_tables, get_db
from errors import AuthenticationError, Conflict, NotFound, ValidationFailed, register_exception_handlers
from models import CATEGORIES, UserModel
from schemas import (
    AuthData,
    DashboardData,
    Envelope,
    ExpenseFilters,
    ExpenseIn,
    ExpenseList,
    ExpenseOut,
    ExpenseStats,
    UserLogin,
    UserOut,
    UserRegister,
    parse_date_value,
)
from security import get_current_user, get_password_hash, issue_token, verify_password

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("finance-tracker")


# ----------------------------------------------------------------------------
# App setup
# ----------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("Database ready (%s)", config.DATABASE_URL.split("://")[0])
    yield


app = FastAPI(title="Personal Finance API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


def _parse_date_param(value: Optional[str], field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return parse_date_value(value)
    except ValueError as exc:
        raise ValidationFailed(errors=[{"field": field, "message": str(exc)}])


def expense_filters(
    category: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    search: Optional[str] = None,
    period: Optional[str] = Query(None, description="week, month or year; explicit dates win"),
) -> ExpenseFilters:
    start, end = None, None
    if period:
        try:
            start, end = dashboard.date_range(period)
        except ValueError:
            raise ValidationFailed(errors=[{"field": "period", "message": "Period must be week, month or year"}])
    return ExpenseFilters(
        category=category or None,
        start_date=_parse_date_param(start_date, "startDate") or start,
        end_date=_parse_date_param(end_date, "endDate") or end,
        search=search or None,
    )


def _auth_payload(user: UserModel) -> AuthData:
    return AuthData(token=issue_token(user), user=UserOut.model_validate(user))


def _to_out(expenses) -> List[ExpenseOut]:
    return [ExpenseOut.model_validate(e) for e in expenses]


# ----------------------------------------------------------------------------
# Health
# ----------------------------------------------------------------------------
@app.get("/")
async def read_root():
    return {
        "success": True,
        "message": "Personal Finance API",
        "version": "1.0.0",
        "environment": config.ENVIRONMENT,
        "endpoints": {"auth": "/auth", "expenses": "/expenses"},
    }


@app.get("/health")
async def health():
    return {
        "success": True,
        "message": "Server is running",
        "environment": config.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/categories", response_model=Envelope[List[str]], response_model_exclude_none=True)
async def categories():
    return Envelope(data=list(CATEGORIES))


# ----------------------------------------------------------------------------
# Auth routes
# ----------------------------------------------------------------------------
@app.post("/auth/register", response_model=Envelope[AuthData], response_model_exclude_none=True,
          status_code=status.HTTP_201_CREATED)
async def register(payload: UserRegister, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(UserModel).where(UserModel.email == payload.email))
    if result.scalar_one_or_none():
        raise Conflict("User already exists with this email")

    user = UserModel(
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Email already exists")
    await db.refresh(user)
    logger.info("User %s registered", user.id)
    return Envelope(message="User registered successfully", data=_auth_payload(user))


@app.post("/auth/login", response_model=Envelope[AuthData], response_model_exclude_none=True)
async def login(payload: UserLogin, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(UserModel).where(UserModel.email == payload.email))
    user = result.scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise AuthenticationError("Invalid email or password")

    logger.info("User %s logged in", user.id)
    return Envelope(message="Login successful", data=_auth_payload(user))


@app.get("/auth/me", response_model=Envelope[UserOut], response_model_exclude_none=True)
async def me(current_user: UserModel = Depends(get_current_user)):
    return Envelope(data=UserOut.model_validate(current_user))


@app.post("/auth/logout", response_model=Envelope, response_model_exclude_none=True)
async def logout(current_user: UserModel = Depends(get_current_user)):
    # tokens are stateless; the client drops its copy
    return Envelope(message="Logged out successfully. Please remove token from client.")


# ----------------------------------------------------------------------------
# Expenses
# ----------------------------------------------------------------------------
@app.get("/expenses", response_model=Envelope[ExpenseList], response_model_exclude_none=True)
async def list_expenses(
    filters: ExpenseFilters = Depends(expense_filters),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    expenses = _to_out(await store.query_expenses(db, current_user.id, filters))
    total, category_wise = summarize(expenses)
    return Envelope(
        count=len(expenses),
        data=ExpenseList(expenses=expenses, total=total, category_wise=category_wise),
    )


@app.post("/expenses", response_model=Envelope[ExpenseOut], response_model_exclude_none=True,
          status_code=status.HTTP_201_CREATED)
async def create_expense(
    payload: ExpenseIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    expense = await store.create_expense(db, current_user.id, payload)
    return Envelope(message="Expense created successfully", data=ExpenseOut.model_validate(expense))


@app.get("/expenses/stats", response_model=Envelope[ExpenseStats], response_model_exclude_none=True)
async def expense_stats(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    stats = await category_stats(db, current_user.id)
    return Envelope(data=ExpenseStats(**stats))


# ----------------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------------
async def _dashboard_rows(db: AsyncSession, owner_id: str, filters: ExpenseFilters) -> List[ExpenseOut]:
    # fetch everything once, then narrow it the way the dashboard view does
    expenses = _to_out(await store.query_expenses(db, owner_id))
    return dashboard.filter_expenses(
        expenses,
        category=filters.category,
        search=filters.search,
        start_date=filters.start_date,
        end_date=filters.end_date,
    )


@app.get("/expenses/dashboard", response_model=Envelope[DashboardData], response_model_exclude_none=True)
async def expense_dashboard(
    filters: ExpenseFilters = Depends(expense_filters),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    rows = await _dashboard_rows(db, current_user.id, filters)
    return Envelope(count=len(rows), data=DashboardData(**dashboard.build_dashboard(rows)))


@app.get("/expenses/export")
async def export_expenses(
    filters: ExpenseFilters = Depends(expense_filters),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    rows = await _dashboard_rows(db, current_user.id, filters)
    if not rows:
        raise NotFound("No expenses to export")

    filename = dashboard.export_filename()
    return StreamingResponse(
        iter([dashboard.to_csv(rows)]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ----------------------------------------------------------------------------
# Single expense
# ----------------------------------------------------------------------------
@app.get("/expenses/{expense_id}", response_model=Envelope[ExpenseOut], response_model_exclude_none=True)
async def get_expense(
    expense_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    expense = await store.get_owned_expense(db, expense_id, current_user.id)
    return Envelope(data=ExpenseOut.model_validate(expense))


@app.put("/expenses/{expense_id}", response_model=Envelope[ExpenseOut], response_model_exclude_none=True)
async def update_expense(
    expense_id: str,
    payload: ExpenseIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    expense = await store.update_expense(db, expense_id, current_user.id, payload)
    return Envelope(message="Expense updated successfully", data=ExpenseOut.model_validate(expense))


@app.delete("/expenses/{expense_id}", response_model=Envelope[dict], response_model_exclude_none=True)
async def delete_expense(
    expense_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    await store.delete_expense(db, expense_id, current_user.id)
    return Envelope(message="Expense deleted successfully", data={})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
