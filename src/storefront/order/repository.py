"""Order repository: lookups by public references and checked writes."""

from protean.exceptions import ExpectedVersionError, ObjectNotFoundError

from storefront.domain import storefront
from storefront.errors import OrderNotFound, PersistenceConflict
from storefront.order.order import Order, OrderStatus, PaymentStatus

_MAX_ROWS = 1000


@storefront.repository(part_of=Order)
class OrderRepository:
    def _first_live(self, **filters) -> Order | None:
        for order in self._dao.query.filter(**filters).limit(_MAX_ROWS).all().items:
            if order.deleted_at is None:
                return order
        return None

    def get_live(self, order_id: str) -> Order:
        """Load an order that has not been soft-deleted."""
        try:
            order = self._dao.get(order_id)
        except ObjectNotFoundError:
            raise OrderNotFound(str(order_id)) from None
        if order.deleted_at is not None:
            raise OrderNotFound(str(order_id))
        return order

    def find_by_payment_reference(self, reference: str) -> Order | None:
        return self._first_live(payment_reference=reference)

    def find_by_order_number(self, order_number: str) -> Order | None:
        return self._first_live(order_number=str(order_number))

    def find_by_transaction_id(self, transaction_id: str) -> Order | None:
        return self._first_live(gateway_transaction_id=transaction_id)

    def find_paid_by_transaction_fragment(self, fragment: str) -> Order | None:
        """Loose match for gateways that report a prefixed or suffixed transaction id."""
        paid = self._dao.query.filter(payment_status=PaymentStatus.PAID.value).limit(_MAX_ROWS).all().items
        for order in paid:
            txn = order.gateway_transaction_id
            if order.deleted_at is None and txn and (fragment in txn or txn in fragment):
                return order
        return None

    def drafts(self) -> list[Order]:
        orders = self._dao.query.filter(status=OrderStatus.DRAFT.value).limit(_MAX_ROWS).all().items
        return [order for order in orders if order.deleted_at is None]

    def save_checked(self, order: Order, expected_revision: int) -> Order:
        """Persist ``order`` only if nobody else wrote it since ``expected_revision``.

        Callers hold the order's record lock.
        """
        try:
            persisted = self._dao.get(order.id)
        except ObjectNotFoundError:
            raise OrderNotFound(str(order.id)) from None

        if (persisted.revision or 0) != expected_revision:
            raise PersistenceConflict(
                f"Order {order.id} changed concurrently (expected revision {expected_revision}, "
                f"found {persisted.revision})"
            )

        order.revision = expected_revision + 1
        try:
            self.add(order)
        except ExpectedVersionError as exc:
            raise PersistenceConflict(str(exc)) from exc
        return order
