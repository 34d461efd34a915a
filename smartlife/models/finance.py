import math
from typing import Optional, Literal
from uuid import UUID
import datetime as dt
from pydantic import field_validator
from sqlmodel import SQLModel, Field
from uuid6 import uuid7

FinanceType = Literal["income", "expense"]
PaymentMethod = Literal["cash", "card", "bank", "savings"]


class FinanceEntryBase(SQLModel):
    type: str # 'income' or 'expense'
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    amount: float
    category: str = Field(default="other", max_length=50)
    paymentMethod: str = Field(default="cash", sa_column_kwargs={"name": "payment_method"})
    date: dt.date


class FinanceEntry(FinanceEntryBase, table=True):
    __tablename__ = "finance_entries"
    id: UUID = Field(default_factory=uuid7, primary_key=True)
    userId: UUID = Field(foreign_key="users.id", index=True, sa_column_kwargs={"name": "user_id"})
    createdAt: dt.datetime = Field(default_factory=dt.datetime.utcnow, sa_column_kwargs={"name": "created_at"})
    updatedAt: dt.datetime = Field(default_factory=dt.datetime.utcnow, sa_column_kwargs={"name": "updated_at"})


class FinanceEntryCreate(FinanceEntryBase):
    type: FinanceType
    title: str = Field(min_length=1, max_length=200)
    amount: float = Field(gt=0)
    paymentMethod: PaymentMethod = "cash"
    date: dt.date = Field(default_factory=dt.date.today)

    @field_validator("amount")
    @classmethod
    def finite_amount(cls, v):
        if not math.isfinite(v):
            raise ValueError("Amount must be a finite number")
        return v


class FinanceEntryUpdate(FinanceEntryCreate):
    pass


class FinanceEntryRead(FinanceEntryBase):
    id: UUID
    userId: UUID
    createdAt: dt.datetime
    updatedAt: dt.datetime
