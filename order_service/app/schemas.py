"""Request and response models for the HTTP API."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, StringConstraints


PaymentMethod = Literal["CREDIT_CARD", "DEBIT_CARD", "PAYPAL", "APPLE_PAY", "GOOGLE_PAY"]
ShippingMethod = Literal["STANDARD", "EXPRESS", "OVERNIGHT"]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"


# --- Request Models ---
class PlaceOrderRequest(BaseModel):
    """An order as submitted by the customer."""

    model_config = ConfigDict(extra="ignore")

    user_id: PositiveInt
    product_ids: list[PositiveInt] = Field(min_length=1, max_length=50)
    total_amount: Decimal = Field(ge=Decimal("0.01"), le=Decimal("99999.99"), max_digits=7, decimal_places=2)
    shipping_address: Annotated[str, StringConstraints(strip_whitespace=True, min_length=10, max_length=500)]
    payment_method: PaymentMethod
    shipping_method: ShippingMethod = "STANDARD"
    special_instructions: str | None = Field(default=None, max_length=1000)
    customer_email: str | None = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    customer_phone: str | None = Field(default=None, pattern=PHONE_PATTERN)


class ProductCreate(BaseModel):
    """Pydantic model for adding a product to the catalogue."""

    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    price: float = Field(ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    description: str | None = None


class StockUpdate(BaseModel):
    stock_quantity: int = Field(ge=0)


# --- Response Models ---
class OrderResponse(BaseModel):
    """Confirmation, status or error answer for a single order."""

    order_id: int | None = None
    status: str
    message: str | None = None
    order_number: str | None = None
    tracking_number: str | None = None
    total_amount: float | None = None
    order_date: datetime | None = None

    @classmethod
    def placed(cls, order) -> "OrderResponse":
        return cls(
            order_id=order.id,
            status=order.status,
            message="Order placed successfully and is being processed",
            order_number=order.order_number,
            total_amount=order.total_amount,
            order_date=order.created_at,
        )

    @classmethod
    def current_status(cls, order) -> "OrderResponse":
        return cls(
            order_id=order.id,
            status=order.status,
            message=f"Order is {order.status.replace('_', ' ').lower()}",
            order_number=order.order_number,
            tracking_number=order.tracking_number,
            order_date=order.created_at,
        )


class OrderDetail(BaseModel):
    """Full order record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    user_id: int
    shipping_address: str
    product_ids: list[int]
    total_amount: float
    status: str
    payment_method: str
    shipping_method: str
    special_instructions: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    tracking_number: str | None = None
    created_at: datetime


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: float
    stock_quantity: int
    description: str | None = None


class OrderStatistics(BaseModel):
    total: int
    by_status: dict[str, int]
