"""Operator-driven order lifecycle: processing, shipment, delivery, cancellation.

Each operation is a serialized read-modify-write through ``mutate_order``.
Moves past confirmation require a paid order unless ``override`` is set.
"""

from storefront.domain import logger
from storefront.order.mutation import mutate_order
from storefront.order.order import CancellationActor, Order
from storefront.promotion import ledger


def _apply(order_id: str, action: str, operation) -> Order:
    def change(order: Order) -> bool:
        operation(order)
        return True

    order, _ = mutate_order(order_id, change)
    logger.info(
        "Order status changed by operator",
        order_id=str(order.id),
        action=action,
        status=order.status,
        payment_status=order.payment_status,
    )
    return order


def mark_processing(order_id: str, override: bool = False) -> Order:
    return _apply(order_id, "processing", lambda order: order.mark_processing(override=override))


def ship(order_id: str, tracking_number: str, carrier: str | None = None, override: bool = False) -> Order:
    return _apply(
        order_id,
        "shipped",
        lambda order: order.ship(tracking_number=tracking_number, carrier=carrier, override=override),
    )


def complete(order_id: str, override: bool = False) -> Order:
    return _apply(order_id, "completed", lambda order: order.complete(override=override))


def cancel(order_id: str, reason: str | None = None, actor: CancellationActor = CancellationActor.OPERATOR) -> Order:
    """Cancel the order and void any reservation still pending against it."""
    order = _apply(order_id, "cancelled", lambda current: current.cancel(reason=reason, actor=actor))
    ledger.release(order_id)
    return order


def soft_delete_order(order_id: str) -> Order:
    """Hide the order from every lookup. The row is kept."""

    def change(order: Order) -> bool:
        if order.is_deleted:
            return False
        order.soft_delete()
        return True

    order, _ = mutate_order(order_id, change)
    logger.info("Order deleted", order_id=str(order.id))
    return order
