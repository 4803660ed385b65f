"""Coupon: flat/percentage discount, user or product scoping, usage caps and the redemption log."""
from datetime import datetime

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

from xenostore.core.clock import utcnow

DISCOUNT_TYPES = ("flat", "percentage")
VALID_FOR = ("all", "user", "product")


class Coupon(SQLModel, table=True):
    """Discount code created from the admin panel and redeemed at checkout."""

    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=64)  # always upper-case
    discount_type: str = Field(max_length=16)  # "flat" | "percentage"
    discount_value: float = Field(ge=0)  # flat: amount in store currency, percentage: 0-100
    max_discount: float = Field(default=0)  # percentage only; 0 = no cap
    valid_for: str = Field(default="all", max_length=16)  # "all" | "user" | "product"
    users: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    products: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    usage_limit: int = Field(ge=1)
    usage_per_user: int = Field(ge=1)
    is_active: bool = True
    expires_at: datetime
    created_at: datetime | None = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default_factory=utcnow)
    # Bumped on every redemption and admin edit; record-usage appends only if it is unchanged
    version: int = Field(default=0)

    usages: list["CouponUsage"] = Relationship(
        back_populates="coupon",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "CouponUsage.id"},
    )


class CouponUsage(SQLModel, table=True):
    """One redemption: a coupon applied to one order. Append-only."""

    __table_args__ = (UniqueConstraint("coupon_id", "order_id", name="uq_couponusage_coupon_order"),)

    id: int | None = Field(default=None, primary_key=True)
    coupon_id: int = Field(foreign_key="coupon.id", index=True)
    user_id: str = Field(index=True, max_length=128)
    order_id: str = Field(index=True, max_length=128)  # orders may be deleted later; orphans are tolerated
    date: datetime = Field(default_factory=utcnow)
    discount_amount: float = 0

    coupon: Coupon | None = Relationship(back_populates="usages")
