import datetime as dt
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    field_serializer,
    field_validator,
)

from models import TransactionType
from periods import format_month

# Amounts travel as JSON numbers rather than pydantic's default decimal strings.
Amount = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]

BudgetStatus = Literal["OK", "WARNING"]


def _require_number(value: object) -> object:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValueError("Amount must be a positive number")
    return value


def describe_validation_error(
    exc: ValidationError, messages: Optional[dict[str, str]] = None
) -> str:
    """First readable message of a pydantic error, preferring per-field overrides."""
    messages = messages or {}
    errors = exc.errors()
    for error in errors:
        loc = error.get("loc") or ()
        if loc and loc[0] in messages:
            return messages[str(loc[0])]
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc") or ())
    message = str(first.get("msg", "Invalid input")).removeprefix("Value error, ")
    return f"{field}: {message}" if field else message


class SignUpIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=8, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=120, alias="fullName")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class SignInIn(BaseModel):
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=72)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field("bg-red-500", min_length=1, max_length=32)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        clean = value.strip()
        if not clean:
            raise ValueError("Category name cannot be empty")
        return clean


class TransactionIn(BaseModel):
    category_id: int
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    type: TransactionType

    @field_validator("amount", mode="before")
    @classmethod
    def amount_must_be_number(cls, value: object) -> object:
        return _require_number(value)

    @field_validator("description")
    @classmethod
    def strip_description(cls, value: str) -> str:
        clean = value.strip()
        if not clean:
            raise ValueError("Description cannot be empty")
        return clean


class BudgetIn(BaseModel):
    category_id: int
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")

    @field_validator("amount", mode="before")
    @classmethod
    def amount_must_be_number(cls, value: object) -> object:
        return _require_number(value)


class UserOut(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = Field(None, serialization_alias="fullName")


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: str


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int
    amount: Amount
    description: str
    date: dt.date
    type: TransactionType


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    category_id: int
    amount: Amount
    month: dt.date
    created_at: dt.datetime
    updated_at: dt.datetime

    @field_serializer("month")
    def serialize_month(self, value: dt.date) -> str:
        return format_month(value)


class BudgetView(BudgetOut):
    spent: Amount
    percentage: int
    status: BudgetStatus
    category: Optional[CategoryOut] = None


class DashboardStats(BaseModel):
    income: Amount
    expenses: Amount
    balance: Amount


class CategoryTotal(BaseModel):
    name: str
    value: Amount


class DailyTotal(BaseModel):
    date: str
    income: Amount
    expense: Amount


class DashboardOut(BaseModel):
    range: str
    stats: DashboardStats
    by_category: list[CategoryTotal] = Field(serialization_alias="byCategory")
    daily: list[DailyTotal]
