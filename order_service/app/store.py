"""Order and product persistence.

Every operation opens its own short-lived session. Status and stock changes
are single conditional UPDATE statements, so concurrent stage handlers cannot
overwrite each other's work with a stale read.
"""

import enum
from collections.abc import Iterable

from sqlalchemy import func, update

from .models import Order, OrderProduct, OrderStatus, Product, utcnow


class StockOutcome(str, enum.Enum):
    """Result of trying to take one unit of a product out of stock."""

    RESERVED = "RESERVED"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class OrderStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def add_order(
        self,
        *,
        user_id: int,
        shipping_address: str,
        product_ids: Iterable[int],
        total_amount: float,
        payment_method: str,
        shipping_method: str = "STANDARD",
        special_instructions: str | None = None,
        customer_email: str | None = None,
        customer_phone: str | None = None,
    ) -> Order:
        """Persist a new order in CREATED status and return it."""
        order = Order(
            user_id=user_id,
            shipping_address=shipping_address,
            total_amount=total_amount,
            status=OrderStatus.CREATED.value,
            payment_method=payment_method,
            shipping_method=shipping_method,
            special_instructions=special_instructions,
            customer_email=customer_email,
            customer_phone=customer_phone,
            created_at=utcnow(),
        )
        order.lines = [
            OrderProduct(position=position, product_id=product_id) for position, product_id in enumerate(product_ids)
        ]

        db = self._session_factory()
        try:
            db.add(order)
            db.commit()
        finally:
            db.close()
        return order

    def get_order(self, order_id: int) -> Order | None:
        db = self._session_factory()
        try:
            return db.get(Order, order_id)
        finally:
            db.close()

    def list_orders_for_user(self, user_id: int) -> list[Order]:
        """Orders placed by the user, newest first."""
        db = self._session_factory()
        try:
            return (
                db.query(Order)
                .filter(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .all()
            )
        finally:
            db.close()

    def transition(
        self,
        order_id: int,
        new_status: OrderStatus,
        expected: Iterable[OrderStatus] | None = None,
    ) -> bool:
        """Set the order status, optionally only if it is currently in ``expected``.

        Returns True when the row was updated.
        """
        stmt = update(Order).where(Order.id == order_id)
        if expected is not None:
            stmt = stmt.where(Order.status.in_([status.value for status in expected]))
        stmt = stmt.values(status=new_status.value).execution_options(synchronize_session=False)

        db = self._session_factory()
        try:
            result = db.execute(stmt)
            db.commit()
            return result.rowcount == 1
        finally:
            db.close()

    def set_tracking_number(self, order_id: int, tracking_number: str) -> bool:
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(tracking_number=tracking_number)
            .execution_options(synchronize_session=False)
        )
        db = self._session_factory()
        try:
            result = db.execute(stmt)
            db.commit()
            return result.rowcount == 1
        finally:
            db.close()

    def count_by_status(self) -> dict[str, int]:
        db = self._session_factory()
        try:
            rows = db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
        finally:
            db.close()
        return {status: count for status, count in rows}


class ProductStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def add_product(self, name: str, price: float, stock_quantity: int = 0, description: str | None = None) -> Product:
        product = Product(name=name, price=price, stock_quantity=stock_quantity, description=description)
        db = self._session_factory()
        try:
            db.add(product)
            db.commit()
        finally:
            db.close()
        return product

    def get_product(self, product_id: int) -> Product | None:
        db = self._session_factory()
        try:
            return db.get(Product, product_id)
        finally:
            db.close()

    def list_products(self) -> list[Product]:
        db = self._session_factory()
        try:
            return db.query(Product).order_by(Product.id).all()
        finally:
            db.close()

    def set_stock(self, product_id: int, stock_quantity: int) -> Product | None:
        """Overwrite the stock level. Returns None if the product does not exist."""
        db = self._session_factory()
        try:
            product = db.get(Product, product_id)
            if product is None:
                return None
            product.stock_quantity = stock_quantity
            db.commit()
            return product
        finally:
            db.close()

    def reserve_unit(self, product_id: int) -> StockOutcome:
        """Atomically take one unit out of stock if any is left."""
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity > 0)
            .values(stock_quantity=Product.stock_quantity - 1)
            .execution_options(synchronize_session=False)
        )
        db = self._session_factory()
        try:
            result = db.execute(stmt)
            if result.rowcount == 1:
                db.commit()
                return StockOutcome.RESERVED
            db.rollback()

            exists = db.query(Product.id).filter(Product.id == product_id).first()
            if exists is None:
                return StockOutcome.PRODUCT_NOT_FOUND
            return StockOutcome.OUT_OF_STOCK
        finally:
            db.close()

    def release_unit(self, product_id: int) -> bool:
        """Put one unit back into stock. Returns False if the product is gone."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + 1)
            .execution_options(synchronize_session=False)
        )
        db = self._session_factory()
        try:
            result = db.execute(stmt)
            db.commit()
            return result.rowcount == 1
        finally:
            db.close()
