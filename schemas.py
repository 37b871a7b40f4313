"""
App Schemas

Pydantic models for request bodies and response envelopes.
- UserRegister / UserLogin -> auth request bodies
- ExpenseIn -> expense create/update body
- ExpenseOut, ExpenseList, ExpenseStats -> expense responses
- Envelope[T] -> {success, message?, count?, data?} wrapper used by every route
"""

import datetime as dt
from datetime import date, datetime
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, EmailStr, Field, constr, field_validator

from models import CATEGORIES

DataT = TypeVar("DataT")


def parse_date_value(value: str) -> date:
    """Accepts YYYY-MM-DD or any ISO-8601 datetime; datetimes are truncated to their date."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValueError("Invalid date format")


def _camel(name: str, alias: str, default=...):
    # accepts both spellings on input, always emits the camelCase one
    return Field(default, validation_alias=AliasChoices(name, alias), serialization_alias=alias)


# ----------------------------------------------------------------------------
# Envelopes
# ----------------------------------------------------------------------------
class Envelope(BaseModel, Generic[DataT]):
    """Success response wrapper"""
    success: bool = True
    message: Optional[str] = None
    count: Optional[int] = None
    data: Optional[DataT] = None


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error response wrapper"""
    success: bool = False
    message: str
    errors: Optional[List[FieldError]] = None
    stack: Optional[str] = None


# ----------------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------------
class UserRegister(BaseModel):
    name: constr(strip_whitespace=True, min_length=2, max_length=50) = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password: constr(strip_whitespace=True, min_length=6) = Field(..., description="Plain password, hashed before storage")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserLogin(BaseModel):
    email: EmailStr
    password: constr(strip_whitespace=True, min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserOut(BaseModel):
    id: str
    name: str
    email: EmailStr

    class Config:
        from_attributes = True


class AuthData(BaseModel):
    token: str
    user: UserOut


# ----------------------------------------------------------------------------
# Expenses
# ----------------------------------------------------------------------------
class ExpenseIn(BaseModel):
    """
    Body for POST /expenses and PUT /expenses/{id}
    """
    title: constr(strip_whitespace=True, min_length=2, max_length=100) = Field(..., description="Short label")
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Positive amount")
    category: str = Field(..., description="One of the fixed categories")
    date: Optional[dt.date] = Field(None, description="Expense date, defaults to today")
    description: Optional[constr(strip_whitespace=True, max_length=500)] = Field(None, description="Optional note")

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return parse_date_value(v) if v else None
        return v

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str) -> str:
        v = v.strip()
        if v not in CATEGORIES:
            raise ValueError("Invalid category")
        return v


class ExpenseOut(BaseModel):
    id: str
    title: str
    amount: float
    category: str
    date: dt.date
    description: Optional[str] = None
    user_id: str = _camel("user_id", "user")
    created_at: datetime = _camel("created_at", "createdAt")
    updated_at: datetime = _camel("updated_at", "updatedAt")

    class Config:
        from_attributes = True


class ExpenseFilters(BaseModel):
    category: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = None


class ExpenseList(BaseModel):
    expenses: List[ExpenseOut]
    total: float
    category_wise: Dict[str, float] = _camel("category_wise", "categoryWise")


class CategoryStat(BaseModel):
    category: str
    total: float
    count: int


class OverallStat(BaseModel):
    total: float = 0
    count: int = 0


class ExpenseStats(BaseModel):
    category_stats: List[CategoryStat] = _camel("category_stats", "categoryStats")
    overall: OverallStat


# ----------------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------------
class StatCards(BaseModel):
    total_expenses: float = _camel("total_expenses", "totalExpenses")
    count: int
    average: float
    formatted_total: str = _camel("formatted_total", "formattedTotal")
    formatted_average: str = _camel("formatted_average", "formattedAverage")


class ChartSlice(BaseModel):
    name: str
    value: float
    percentage: float
    color: str


class DashboardData(BaseModel):
    cards: StatCards
    chart: List[ChartSlice]
    total: float
    category_wise: Dict[str, float] = _camel("category_wise", "categoryWise")
    count: int
