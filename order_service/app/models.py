import enum
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base  # Import the Base class from our database setup


class OrderStatus(str, enum.Enum):
    """Lifecycle of an order, stored as its name."""

    CREATED = "CREATED"
    INVENTORY_RESERVED = "INVENTORY_RESERVED"
    PAYMENT_PROCESSED = "PAYMENT_PROCESSED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PREPARING_SHIPMENT = "PREPARING_SHIPMENT"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    PAYMENT_FAILED = "PAYMENT_FAILED"


# Orders can only be cancelled if they haven't been shipped.
CANCELLABLE_STATUSES = frozenset(
    {
        OrderStatus.CREATED,
        OrderStatus.INVENTORY_RESERVED,
        OrderStatus.PAYMENT_PROCESSED,
        OrderStatus.PAYMENT_CONFIRMED,
        OrderStatus.PREPARING_SHIPMENT,
    }
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Defines the ORM model for a product held in stock.
class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    price = Column(Float, nullable=False, default=0.0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    description = Column(Text)


# Bridge table linking an order to the products it references, in order.
# The same product may appear more than once, so the key is the position.
# There is no foreign key to products: an order may reference a product that
# does not exist, which the inventory stage rejects.
class OrderProduct(Base):
    __tablename__ = "order_products"

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True)
    position = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False, index=True)


# Defines the ORM model for an 'Order' stored in the database.
class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)  # Owning user (external reference).
    shipping_address = Column(String(500), nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String(50), nullable=False, default=OrderStatus.CREATED.value, index=True)
    payment_method = Column(String(50), nullable=False)
    shipping_method = Column(String(50), nullable=False, default="STANDARD")
    special_instructions = Column(Text)
    customer_email = Column(String(255))
    customer_phone = Column(String(20))
    tracking_number = Column(String(64))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    lines = relationship(
        "OrderProduct",
        order_by=OrderProduct.position,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def product_ids(self) -> list[int]:
        return [line.product_id for line in self.lines]

    @property
    def order_number(self) -> str:
        return f"ORD-{self.id:08d}"
