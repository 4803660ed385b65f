from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from xenostore.core.clock import as_utc


class CouponCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    discount_type: Literal["flat", "percentage"]
    discount_value: float = Field(gt=0)
    max_discount: float = Field(default=0, ge=0)
    valid_for: Literal["all", "user", "product"] = "all"
    users: list[str] = []
    products: list[str] = []
    usage_limit: int = Field(ge=1)
    usage_per_user: int = Field(ge=1)
    expires_at: datetime
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Coupon code cannot be empty.")
        return v

    @field_validator("expires_at")
    @classmethod
    def utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def percentage_range(self):
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("Percentage discount must be between 0 and 100.")
        return self


class CouponUpdate(BaseModel):
    """Partial update from the admin panel; omitted fields keep their value."""

    code: str | None = Field(default=None, min_length=1, max_length=64)
    discount_type: Literal["flat", "percentage"] | None = None
    discount_value: float | None = Field(default=None, ge=0)
    max_discount: float | None = Field(default=None, ge=0)
    valid_for: Literal["all", "user", "product"] | None = None
    users: list[str] | None = None
    products: list[str] | None = None
    usage_limit: int | None = Field(default=None, ge=1)
    usage_per_user: int | None = Field(default=None, ge=1)
    expires_at: datetime | None = None
    is_active: bool | None = None

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str | None) -> str | None:
        return v.strip().upper() if v is not None else None

    @field_validator("expires_at")
    @classmethod
    def utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None


class ValidateCouponRequest(BaseModel):
    code: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    cart_total: float = Field(ge=0)
    # Product ids in the cart; may be empty
    products: list[str] = []

    @field_validator("products", mode="before")
    @classmethod
    def product_ids(cls, v):
        # Accept [{"product_id": ...}] from older frontends as well as plain ids
        if not v:
            return []
        out = []
        for p in v:
            if isinstance(p, dict):
                p = p.get("product_id") or p.get("productId")
            if p is not None:
                out.append(str(p))
        return out


class RecordUsageRequest(BaseModel):
    code: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    discount_amount: float = Field(ge=0)

    @field_validator("order_id", mode="before")
    @classmethod
    def order_id_str(cls, v):
        return str(v) if v is not None else v
