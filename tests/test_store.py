"""Tests for order and product persistence."""

from concurrent.futures import ThreadPoolExecutor

from order_service.app.models import OrderStatus
from order_service.app.store import StockOutcome


def add_order(order_store, product_ids=(1,), user_id=7):
    return order_store.add_order(
        user_id=user_id,
        shipping_address="42 Wallaby Way, Sydney",
        product_ids=product_ids,
        total_amount=19.99,
        payment_method="PAYPAL",
    )


class TestOrderStore:
    def test_new_order_is_created(self, order_store):
        order = add_order(order_store)

        saved = order_store.get_order(order.id)
        assert saved.status == OrderStatus.CREATED.value
        assert saved.shipping_method == "STANDARD"
        assert saved.tracking_number is None
        assert saved.created_at is not None

    def test_product_references_keep_order_and_duplicates(self, order_store):
        order = add_order(order_store, product_ids=[3, 1, 3])

        assert order_store.get_order(order.id).product_ids == [3, 1, 3]

    def test_order_number_is_zero_padded(self, order_store):
        order = add_order(order_store)

        assert order.order_number == f"ORD-{order.id:08d}"

    def test_missing_order_is_none(self, order_store):
        assert order_store.get_order(999) is None

    def test_user_orders_newest_first(self, order_store):
        first = add_order(order_store, user_id=5)
        second = add_order(order_store, user_id=5)
        add_order(order_store, user_id=6)

        assert [o.id for o in order_store.list_orders_for_user(5)] == [second.id, first.id]


class TestTransition:
    def test_transition_from_expected_status(self, order_store):
        order = add_order(order_store)

        assert order_store.transition(order.id, OrderStatus.INVENTORY_RESERVED, expected={OrderStatus.CREATED})
        assert order_store.get_order(order.id).status == "INVENTORY_RESERVED"

    def test_transition_refused_from_other_status(self, order_store):
        order = add_order(order_store)
        order_store.transition(order.id, OrderStatus.CANCELLED)

        assert not order_store.transition(order.id, OrderStatus.INVENTORY_RESERVED, expected={OrderStatus.CREATED})
        assert order_store.get_order(order.id).status == "CANCELLED"

    def test_transition_of_missing_order(self, order_store):
        assert not order_store.transition(999, OrderStatus.SHIPPED)

    def test_tracking_number(self, order_store):
        order = add_order(order_store)

        assert order_store.set_tracking_number(order.id, "UPS12345678")
        assert order_store.get_order(order.id).tracking_number == "UPS12345678"
        assert not order_store.set_tracking_number(999, "UPS12345678")

    def test_count_by_status(self, order_store):
        add_order(order_store)
        cancelled = add_order(order_store)
        order_store.transition(cancelled.id, OrderStatus.CANCELLED)

        assert order_store.count_by_status() == {"CREATED": 1, "CANCELLED": 1}


class TestProductStore:
    def test_reserve_unit_decrements(self, product_store):
        product = product_store.add_product("Widget", 9.99, stock_quantity=2)

        assert product_store.reserve_unit(product.id) is StockOutcome.RESERVED
        assert product_store.get_product(product.id).stock_quantity == 1

    def test_reserve_unit_out_of_stock(self, product_store):
        product = product_store.add_product("Widget", 9.99, stock_quantity=0)

        assert product_store.reserve_unit(product.id) is StockOutcome.OUT_OF_STOCK
        assert product_store.get_product(product.id).stock_quantity == 0

    def test_reserve_unit_missing_product(self, product_store):
        assert product_store.reserve_unit(999) is StockOutcome.PRODUCT_NOT_FOUND

    def test_release_unit(self, product_store):
        product = product_store.add_product("Widget", 9.99, stock_quantity=0)

        assert product_store.release_unit(product.id)
        assert product_store.get_product(product.id).stock_quantity == 1
        assert not product_store.release_unit(999)

    def test_set_stock(self, product_store):
        product = product_store.add_product("Widget", 9.99)

        assert product_store.set_stock(product.id, 12).stock_quantity == 12
        assert product_store.set_stock(999, 12) is None

    def test_list_products(self, product_store):
        product_store.add_product("Widget", 9.99)
        product_store.add_product("Gadget", 19.99)

        assert [p.name for p in product_store.list_products()] == ["Widget", "Gadget"]

    def test_concurrent_reservations_never_oversell(self, product_store):
        product = product_store.add_product("Limited", 49.0, stock_quantity=4)

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(lambda _: product_store.reserve_unit(product.id), range(10)))

        assert outcomes.count(StockOutcome.RESERVED) == 4
        assert outcomes.count(StockOutcome.OUT_OF_STOCK) == 6
        assert product_store.get_product(product.id).stock_quantity == 0
