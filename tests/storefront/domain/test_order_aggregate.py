"""Tests for the Order aggregate: totals invariant and state machine."""

import pytest
from protean.exceptions import ValidationError
from storefront.errors import InvalidTransition
from storefront.order.events import OrderCancelled, OrderConfirmed, OrderPlaced, OrderRefunded
from storefront.order.order import (
    Address,
    CancellationActor,
    Order,
    OrderItem,
    OrderPricing,
    OrderStatus,
    PaymentStatus,
)


def _pricing(**overrides):
    values = {
        "original_subtotal": 10000,
        "product_discount": 1000,
        "subtotal": 9000,
        "subtotal_excl_vat": 7438,
        "vat_amount": 1562,
        "discount": 1080,
        "shipping_cost": 599,
        "total": 8519,
    }
    values.update(overrides)
    return OrderPricing(**values)


def _order():
    address = Address(first_name="Jane", last_name="Doe", street="Main 1", city="Vilnius", postal_code="01103", country="LT")
    item = OrderItem(
        product_id="prod-shirt",
        variant_id="var-shirt-m",
        product_name="Linen shirt",
        sku="SHIRT-LIN-M",
        quantity=1,
        unit_price=10000,
        unit_discount=1000,
        subtotal=7438,
        tax=1562,
        total=9000,
    )
    order = Order.place(
        customer_name="Jane Doe",
        customer_email="jane@example.com",
        shipping_address=address,
        billing_address=address,
        pricing=_pricing(),
        items=[item],
        shipping_method="venipak-courier",
        payment_method="stripe",
        user_id="user-1",
        session_token="tok",
    )
    order._events.clear()
    return order


def _confirmed():
    order = _order()
    order.submit_for_payment("stripe")
    order.record_payment_success(order_number="6002", invoice_number="IN001362", gateway_transaction_id="pi_1")
    order._events.clear()
    return order


class TestPricingInvariant:
    def test_reconciled_totals_accepted(self):
        assert _pricing().total == 8519

    def test_total_mismatch_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _pricing(total=8520)
        assert "total" in exc.value.messages

    def test_vat_mismatch_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _pricing(vat_amount=1561, total=8519)
        assert "vat_amount" in exc.value.messages

    def test_discount_above_subtotal_rejected(self):
        with pytest.raises(ValidationError):
            _pricing(discount=9100, shipping_cost=100, total=0)


class TestPlacement:
    def test_new_order_is_draft_with_reference(self):
        address = Address(first_name="A", street="S", city="C", postal_code="1", country="LT")
        order = Order.place(
            customer_name="A",
            customer_email="a@example.com",
            shipping_address=address,
            billing_address=address,
            pricing=_pricing(),
            items=[
                OrderItem(
                    product_id="p", variant_id="v", product_name="P", sku="S", quantity=1,
                    unit_price=10000, subtotal=7438, tax=1562, total=9000,
                )
            ],
            shipping_method="venipak-courier",
            payment_method="stripe",
        )
        assert order.status == OrderStatus.DRAFT.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.payment_reference.startswith("PAY-")
        assert len(order.payment_reference) == 14
        assert order.order_number is None
        assert isinstance(order._events[-1], OrderPlaced)

    def test_order_needs_items(self):
        address = Address(first_name="A", street="S", city="C", postal_code="1", country="LT")
        with pytest.raises(ValidationError):
            Order.place(
                customer_name="A",
                customer_email="a@example.com",
                shipping_address=address,
                billing_address=address,
                pricing=_pricing(),
                items=[],
                shipping_method="venipak-courier",
                payment_method="stripe",
            )


class TestPaymentLifecycle:
    def test_success_confirms_and_numbers(self):
        order = _confirmed()
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.order_number == "6002"
        assert order.invoice_number == "IN001362"
        assert order.public_reference == "6002"

    def test_success_keeps_existing_order_number(self):
        order = _order()
        order.order_number = "5000"
        order.submit_for_payment("stripe")
        order.record_payment_success(order_number="6002", invoice_number="IN001362")
        assert order.order_number == "5000"
        assert isinstance(order._events[-1], OrderConfirmed)

    def test_draft_cannot_be_confirmed(self):
        order = _order()
        with pytest.raises(InvalidTransition):
            order.record_payment_success(order_number="6002", invoice_number="IN001362")

    def test_failure_cancels_unpaid_order(self):
        order = _order()
        order.submit_for_payment("paysera")
        order.record_payment_failure("Card declined")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.payment_status == PaymentStatus.FAILED.value
        assert order.cancelled_by == CancellationActor.GATEWAY.value

    def test_paid_order_cannot_fail(self):
        order = _confirmed()
        with pytest.raises(InvalidTransition):
            order.record_payment_failure("late failure")

    def test_refund_cancels(self):
        order = _confirmed()
        order.refund("pi_1")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order.refunded_at is not None
        assert any(isinstance(e, OrderRefunded) for e in order._events)

    def test_unpaid_order_cannot_be_refunded(self):
        with pytest.raises(InvalidTransition):
            _order().refund()


class TestOperatorLifecycle:
    def test_full_fulfillment_path(self):
        order = _confirmed()
        order.mark_processing()
        order.ship(tracking_number=" 1Z999 ", carrier="fedex")
        order.complete()
        assert order.status == OrderStatus.COMPLETED.value
        assert order.tracking_number == "1Z999"
        assert order.delivered_at is not None
        assert order.is_terminal

    def test_ship_requires_tracking(self):
        order = _confirmed()
        order.mark_processing()
        with pytest.raises(ValidationError) as exc:
            order.ship(tracking_number="  ")
        assert "tracking_number" in exc.value.messages

    def test_cannot_skip_processing(self):
        order = _confirmed()
        with pytest.raises(InvalidTransition):
            order.ship(tracking_number="1Z")

    def test_unpaid_order_needs_override(self):
        order = _confirmed()
        order.payment_status = PaymentStatus.PENDING.value
        with pytest.raises(InvalidTransition) as exc:
            order.mark_processing()
        assert "payment is pending" in exc.value.messages["status"][0]

        order.mark_processing(override=True)
        assert order.status == OrderStatus.PROCESSING.value

    def test_cancel_paid_order_marks_refunded(self):
        order = _confirmed()
        order.cancel(reason="Customer request")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert isinstance(order._events[-1], OrderCancelled)

    def test_terminal_states_are_final(self):
        order = _order()
        order.cancel(reason="Changed mind")
        with pytest.raises(InvalidTransition):
            order.submit_for_payment("stripe")
        with pytest.raises(InvalidTransition):
            order.cancel()

    def test_transition_table(self):
        order = _order()
        assert order.can_transition_to(OrderStatus.PENDING)
        assert order.can_transition_to(OrderStatus.CANCELLED)
        assert not order.can_transition_to(OrderStatus.SHIPPED)


class TestAccess:
    def test_owner_by_user(self):
        order = _order()
        assert order.is_owned_by(user_id="user-1")
        assert not order.is_owned_by(user_id="user-2")

    def test_owner_by_session_token(self):
        order = _order()
        order.user_id = None
        assert order.is_owned_by(session_token="tok")
        assert not order.is_owned_by(session_token="other")
        assert not order.is_owned_by()

    def test_soft_delete(self):
        order = _order()
        order.soft_delete()
        assert order.is_deleted
