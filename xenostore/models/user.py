from datetime import datetime

from sqlmodel import Field, SQLModel

from xenostore.core.clock import utcnow


class User(SQLModel, table=True):
    """Customer record owned by the account service; here only to resolve e-mail recipients."""

    id: int | None = Field(default=None, primary_key=True)
    uid: str = Field(unique=True, index=True, max_length=128)  # same id coupons and orders use
    email: str = Field(index=True)
    full_name: str = ""
    created_at: datetime | None = Field(default_factory=utcnow)
