"""Reconciliation of gateway payment events against orders.

Both gateway adapters feed the same engine. For a given order the engine
serializes its work through ``mutate_order`` and is idempotent: replaying
an event that was already applied changes nothing, never draws a second
order or invoice number and never sends a second confirmation.

Events that cannot apply to the order's current state (a success for a
refunded order, a refund for an unpaid one) are logged and discarded; the
gateway still gets an acknowledgement.
"""

from dataclasses import dataclass
from enum import Enum

import structlog
from protean.utils.globals import current_domain

from storefront.domain import logger
from storefront.errors import OrderNotFound
from storefront.notification.dispatch import dispatch_order_confirmation
from storefront.order.mutation import mutate_order
from storefront.order.numbering import next_invoice_number, next_order_number
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.payment.event import LookupKind, OrderLookup, PaymentEvent, PaymentOutcome
from storefront.promotion import ledger


class ReconciliationOutcome(Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    order_id: str
    status: str
    payment_status: str
    detail: str | None = None

    @property
    def applied(self) -> bool:
        return self.outcome == ReconciliationOutcome.APPLIED


def _find(lookup: OrderLookup) -> Order | None:
    repo = current_domain.repository_for(Order)
    if lookup.kind == LookupKind.ORDER_NUMBER:
        return repo.find_by_order_number(lookup.value)
    if lookup.kind == LookupKind.PAYMENT_REFERENCE:
        return repo.find_by_payment_reference(lookup.value)
    if lookup.kind == LookupKind.TRANSACTION_ID:
        return repo.find_by_transaction_id(lookup.value)
    if lookup.kind == LookupKind.TRANSACTION_FRAGMENT:
        return repo.find_paid_by_transaction_fragment(lookup.value)
    return None


def resolve_order(event: PaymentEvent) -> Order:
    """Try each lookup in turn, most specific first."""
    for lookup in event.lookups:
        order = _find(lookup)
        if order is not None:
            logger.debug("Order resolved", order_id=str(order.id), lookup=lookup.kind.value)
            return order
    raise OrderNotFound(event.order_reference or "unknown")


class ReconciliationEngine:
    def reconcile(self, event: PaymentEvent) -> ReconciliationResult:
        with structlog.contextvars.bound_contextvars(**event.log_context()):
            order = resolve_order(event)
            handler = {
                PaymentOutcome.SUCCEEDED: self._succeeded,
                PaymentOutcome.FAILED: self._failed,
                PaymentOutcome.REFUNDED: self._refunded,
                PaymentOutcome.PENDING: self._pending,
            }[event.outcome]
            result = handler(str(order.id), event)
            logger.info(
                "Payment event reconciled",
                order_id=result.order_id,
                result=result.outcome.value,
                status=result.status,
                payment_status=result.payment_status,
                detail=result.detail,
            )
            return result

    # -------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------
    def _succeeded(self, order_id: str, event: PaymentEvent) -> ReconciliationResult:
        verdict: dict = {}
        drawn: dict = {}

        def change(order: Order) -> bool:
            if order.is_paid:
                verdict["outcome"] = ReconciliationOutcome.DUPLICATE
                return False
            if order.payment_status == PaymentStatus.REFUNDED.value or order.order_status == OrderStatus.CANCELLED:
                verdict["outcome"] = ReconciliationOutcome.REJECTED
                verdict["detail"] = f"Payment succeeded for a {order.status} order"
                return False

            if order.order_status == OrderStatus.DRAFT:
                order.submit_for_payment(event.gateway)

            # Numbers drawn on an earlier conflicting attempt are reused.
            if not order.order_number and "order_number" not in drawn:
                drawn["order_number"] = next_order_number()
            if not order.invoice_number and "invoice_number" not in drawn:
                drawn["invoice_number"] = next_invoice_number()

            order.record_payment_success(
                order_number=drawn.get("order_number"),
                invoice_number=drawn.get("invoice_number"),
                gateway_transaction_id=event.gateway_transaction_id,
            )
            order.mark_notified()
            verdict["outcome"] = ReconciliationOutcome.APPLIED
            return True

        order, written = mutate_order(order_id, change)

        if verdict["outcome"] == ReconciliationOutcome.REJECTED:
            logger.error(
                "Payment success for an order that can no longer be confirmed",
                order_id=order_id,
                status=order.status,
                payment_status=order.payment_status,
            )
        if verdict["outcome"] in (ReconciliationOutcome.APPLIED, ReconciliationOutcome.DUPLICATE):
            ledger.confirm(order_id)
        if written:
            dispatch_order_confirmation(order)

        return self._result(verdict["outcome"], order, verdict.get("detail"))

    def _failed(self, order_id: str, event: PaymentEvent) -> ReconciliationResult:
        verdict: dict = {}

        def change(order: Order) -> bool:
            if order.is_paid:
                verdict["outcome"] = ReconciliationOutcome.IGNORED
                verdict["detail"] = "Failure reported for a paid order"
                return False
            if order.payment_status == PaymentStatus.FAILED.value:
                verdict["outcome"] = ReconciliationOutcome.DUPLICATE
                return False
            if order.is_terminal:
                verdict["outcome"] = ReconciliationOutcome.REJECTED
                verdict["detail"] = f"Payment failed for a {order.status} order"
                return False

            order.record_payment_failure(event.reason)
            verdict["outcome"] = ReconciliationOutcome.APPLIED
            return True

        order, written = mutate_order(order_id, change)
        if verdict["outcome"] != ReconciliationOutcome.IGNORED:
            ledger.release(order_id)
        if verdict["outcome"] in (ReconciliationOutcome.IGNORED, ReconciliationOutcome.REJECTED):
            logger.warning("Payment failure discarded", order_id=order_id, detail=verdict.get("detail"))
        return self._result(verdict["outcome"], order, verdict.get("detail"))

    def _refunded(self, order_id: str, event: PaymentEvent) -> ReconciliationResult:
        verdict: dict = {}

        def change(order: Order) -> bool:
            if order.payment_status == PaymentStatus.REFUNDED.value:
                verdict["outcome"] = ReconciliationOutcome.DUPLICATE
                return False
            if not order.is_paid or order.is_terminal:
                verdict["outcome"] = ReconciliationOutcome.REJECTED
                verdict["detail"] = f"Refund reported for an order whose payment is {order.payment_status}"
                return False

            order.refund(event.gateway_transaction_id)
            verdict["outcome"] = ReconciliationOutcome.APPLIED
            return True

        order, _ = mutate_order(order_id, change)
        if verdict["outcome"] == ReconciliationOutcome.REJECTED:
            logger.warning("Refund discarded", order_id=order_id, detail=verdict["detail"])
        return self._result(verdict["outcome"], order, verdict.get("detail"))

    def _pending(self, order_id: str, event: PaymentEvent) -> ReconciliationResult:
        order = current_domain.repository_for(Order).get_live(order_id)
        return self._result(ReconciliationOutcome.IGNORED, order, event.reason or "Payment still pending")

    @staticmethod
    def _result(outcome: ReconciliationOutcome, order: Order, detail: str | None) -> ReconciliationResult:
        return ReconciliationResult(
            outcome=outcome,
            order_id=str(order.id),
            status=order.status,
            payment_status=order.payment_status,
            detail=detail,
        )


_engine = ReconciliationEngine()


def reconcile(event: PaymentEvent) -> ReconciliationResult:
    return _engine.reconcile(event)
