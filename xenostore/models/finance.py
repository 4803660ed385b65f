"""Manual income/expense entries shown next to order profit in the finance report."""
from datetime import datetime

from sqlmodel import Field, SQLModel

from xenostore.core.clock import utcnow

ENTRY_TYPES = ("income", "expense")
ENTRY_CATEGORIES = (
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
)


class ManualEntry(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    type: str = Field(index=True, max_length=16)  # "income" | "expense"
    description: str
    amount: float
    category: str = Field(max_length=32)
    date: datetime = Field(default_factory=utcnow, index=True)
    created_by: str = Field(default="admin", max_length=128)
    created_at: datetime | None = Field(default_factory=utcnow)
