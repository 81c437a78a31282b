"""Tests for the payment stage."""

import re

import pytest

from order_service.app.consumers import PaymentConsumer
from order_service.app.events import InventoryReserved, PaymentProcessed
from order_service.app.integrations import FixedOutcomeGateway, PaymentGateway
from order_service.app.models import OrderStatus


class BrokenGateway(PaymentGateway):
    def authorize(self, order_id, amount, payment_method):
        raise ConnectionError("gateway unreachable")


@pytest.fixture
def gateway():
    return FixedOutcomeGateway()


@pytest.fixture
def payment(bus, order_store, gateway):
    return PaymentConsumer(bus, order_store, gateway)


@pytest.fixture
def reserved_order(order_store):
    order = order_store.add_order(
        user_id=7,
        shipping_address="42 Wallaby Way, Sydney",
        product_ids=[1, 2],
        total_amount=45.5,
        payment_method="APPLE_PAY",
    )
    order_store.transition(order.id, OrderStatus.INVENTORY_RESERVED)
    return order


def reserved_event(order):
    return InventoryReserved.from_order(order, correlation_id="corr-1", reserved_product_ids=(1, 2))


class TestPaymentStage:
    def test_successful_payment_confirms_order(self, payment, recorder, bus, order_store, gateway, reserved_order):
        recorder.listen(PaymentProcessed)

        payment.process_inventory_reserved(reserved_event(reserved_order))
        bus.wait_until_idle(5)

        assert order_store.get_order(reserved_order.id).status == "PAYMENT_CONFIRMED"
        assert gateway.calls == [{"order_id": reserved_order.id, "amount": 45.5, "payment_method": "APPLE_PAY"}]

        [event] = recorder.of_type(PaymentProcessed)
        assert event.success
        assert re.fullmatch(r"TXN_[0-9A-F]{8}", event.transaction_id)
        assert event.amount == 45.5
        assert event.correlation_id == "corr-1"

    def test_declined_payment_fails_order(self, payment, recorder, bus, order_store, gateway, reserved_order):
        recorder.listen(PaymentProcessed)
        gateway.configure(should_succeed=False, failure_reason="Insufficient funds")

        payment.process_inventory_reserved(reserved_event(reserved_order))
        bus.wait_until_idle(5)

        assert order_store.get_order(reserved_order.id).status == "PAYMENT_FAILED"
        [event] = recorder.of_type(PaymentProcessed)
        assert not event.success
        assert event.failure_reason == "Insufficient funds"

    def test_skips_order_not_awaiting_payment(self, payment, recorder, bus, order_store, gateway, reserved_order):
        recorder.listen(PaymentProcessed)
        order_store.transition(reserved_order.id, OrderStatus.CANCELLED)

        payment.process_inventory_reserved(reserved_event(reserved_order))
        bus.wait_until_idle(5)

        assert order_store.get_order(reserved_order.id).status == "CANCELLED"
        assert gateway.calls == []
        assert recorder.of_type(PaymentProcessed) == []

    def test_gateway_error_fails_order(self, bus, recorder, order_store, reserved_order):
        recorder.listen(PaymentProcessed)
        payment = PaymentConsumer(bus, order_store, BrokenGateway())

        payment.process_inventory_reserved(reserved_event(reserved_order))
        bus.wait_until_idle(5)

        assert order_store.get_order(reserved_order.id).status == "PAYMENT_FAILED"
        [event] = recorder.of_type(PaymentProcessed)
        assert not event.success
        assert event.failure_reason == "Payment processing error"
        assert event.amount == 45.5

    def test_result_dropped_when_cancelled_during_authorization(
        self, payment, recorder, bus, order_store, gateway, reserved_order, monkeypatch
    ):
        recorder.listen(PaymentProcessed)
        real_authorize = gateway.authorize

        def cancel_then_authorize(order_id, amount, payment_method):
            order_store.transition(order_id, OrderStatus.CANCELLED)
            return real_authorize(order_id, amount, payment_method)

        monkeypatch.setattr(gateway, "authorize", cancel_then_authorize)

        payment.process_inventory_reserved(reserved_event(reserved_order))
        bus.wait_until_idle(5)

        assert order_store.get_order(reserved_order.id).status == "CANCELLED"
        assert len(gateway.calls) == 1
        assert recorder.of_type(PaymentProcessed) == []
