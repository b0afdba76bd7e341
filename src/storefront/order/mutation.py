"""Serialized read-modify-write of a single order.

Every change to a persisted order goes through ``mutate_order``: load under
the order's record lock, apply the change, write back with a revision check.
A revision mismatch is retried a bounded number of times before the
conflict is surfaced to the caller.
"""

from collections.abc import Callable

from protean.utils.globals import current_domain

from storefront.domain import logger
from storefront.errors import PersistenceConflict
from storefront.order.order import Order
from storefront.utils.locks import record_lock
from storefront.utils.settings import get_settings


def mutate_order(
    order_id: str,
    change: Callable[[Order], bool],
    *,
    max_attempts: int | None = None,
) -> tuple[Order, bool]:
    """Apply ``change`` to the current state of the order.

    ``change`` returns True when it modified the order; nothing is written
    otherwise. Returns the order as last seen and whether it was written.
    """
    repo = current_domain.repository_for(Order)
    attempts = max_attempts or get_settings().reconciliation_max_retries

    for attempt in range(1, attempts + 1):
        with record_lock("order", str(order_id)):
            order = repo.get_live(order_id)
            revision = order.revision or 0
            if not change(order):
                return order, False
            try:
                repo.save_checked(order, revision)
                return order, True
            except PersistenceConflict as exc:
                logger.warning(
                    "Order write conflict",
                    order_id=str(order_id),
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(exc),
                )

    raise PersistenceConflict(f"Order {order_id} could not be written after {attempts} attempts")
