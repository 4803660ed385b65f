from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from xenostore.core.clock import as_utc

EntryCategory = Literal[
    "affiliate",
    "sponsorship",
    "bonus",
    "other-income",
    "shipping",
    "salaries",
    "advertising",
    "utilities",
    "office",
    "other-expense",
]


class ManualEntryCreate(BaseModel):
    type: Literal["income", "expense"]
    description: str = Field(min_length=1)
    amount: float = Field(gt=0)
    category: EntryCategory
    date: datetime | None = None
    created_by: str = "admin"

    @field_validator("date")
    @classmethod
    def utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None


class ManualEntryUpdate(BaseModel):
    type: Literal["income", "expense"] | None = None
    description: str | None = Field(default=None, min_length=1)
    amount: float | None = Field(default=None, gt=0)
    category: EntryCategory | None = None
    date: datetime | None = None

    @field_validator("date")
    @classmethod
    def utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None
