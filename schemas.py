import datetime as dt
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from categories import parse_category
from models import Category, TransactionType, TypeFilter
from money import to_cents

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"


def _coerce_date(value: object) -> object:
    # Date pickers send "2025-01-31T18:30:00.000Z"; only the calendar date matters.
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    return value


class UserRegisterIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=72)


class LoginIn(BaseModel):
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=72)


class AvatarIn(BaseModel):
    image: str = Field(..., min_length=1)


class TransactionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, max_digits=14)
    category: Category
    transaction_type: TransactionType = Field(..., alias="transactionType")
    date: dt.date
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: object) -> Category:
        return parse_category(value)

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: object) -> object:
        return _coerce_date(value)

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)


class TransactionUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=14)
    category: Optional[Category] = None
    transaction_type: Optional[TransactionType] = Field(
        default=None, alias="transactionType"
    )
    date: Optional[dt.date] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: object) -> Optional[Category]:
        if value is None:
            return None
        return parse_category(value)

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: object) -> object:
        return _coerce_date(value)

    def changes(self) -> dict[str, object]:
        data = {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key == "description"
        }
        if "amount" in data:
            data["amount_cents"] = to_cents(data.pop("amount"))
        return data


class TransactionQueryIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    frequency: str = "7"
    start_date: Optional[Union[dt.date, str]] = Field(default=None, alias="startDate")
    end_date: Optional[Union[dt.date, str]] = Field(default=None, alias="endDate")
    type: TypeFilter = TypeFilter.all

    @field_validator("frequency", mode="before")
    @classmethod
    def _frequency_as_text(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value


class BudgetIn(BaseModel):
    category: Category
    amount: Decimal = Field(..., gt=0, max_digits=14)

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: object) -> Category:
        return parse_category(value)

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)
