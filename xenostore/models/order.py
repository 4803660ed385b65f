"""Order and line items: enough to report coupon usage and per-item profit."""
from datetime import datetime

from sqlmodel import Field, Relationship, SQLModel

from xenostore.core.clock import utcnow

ORDER_STATUSES = ("pending", "processing", "confirmed", "shipped", "delivered", "completed", "cancelled")
# Orders that count towards revenue/profit in the finance report
FULFILLED_STATUSES = ("completed", "delivered")


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=128)
    payment_method: str = Field(max_length=64)
    payment_screenshot: str | None = None
    status: str = Field(default="pending", index=True, max_length=16)
    subtotal: float = 0  # sum of unit_price * quantity
    total: float = 0  # subtotal - coupon_discount
    coupon_code: str | None = Field(default=None, max_length=64)
    coupon_discount: float = 0
    coupon_discount_type: str | None = Field(default=None, max_length=16)
    # Profit data (admin only); None until computed
    total_cost: float | None = None
    total_revenue: float | None = None
    total_profit: float | None = None
    created_at: datetime | None = Field(default_factory=utcnow, index=True)

    items: list["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "OrderItem.id"},
    )


class OrderItem(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    order_id: int | None = Field(default=None, foreign_key="orders.id", index=True)
    product_id: str = Field(max_length=128)
    title: str = ""
    quantity: int = 1
    unit_price: float = 0
    cost_price: float = 0  # per unit, resolved by the catalog at checkout
    revenue_after_discount: float | None = None
    profit: float | None = None

    order: Order | None = Relationship(back_populates="items")

    @property
    def original_revenue(self) -> float:
        return (self.unit_price or 0) * (self.quantity or 0)
