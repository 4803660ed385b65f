from typing import Literal

from pydantic import BaseModel, Field

OrderStatus = Literal["pending", "processing", "confirmed", "shipped", "delivered", "completed", "cancelled"]


class OrderItemIn(BaseModel):
    product_id: str = Field(min_length=1)
    title: str = ""
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(ge=0)
    cost_price: float = Field(default=0, ge=0)


class OrderCreate(BaseModel):
    """Checkout: line items plus an optional coupon code."""

    user_id: str = Field(min_length=1)
    payment_method: str = Field(min_length=1)
    payment_screenshot: str | None = None
    items: list[OrderItemIn] = Field(min_length=1)
    coupon_code: str | None = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
