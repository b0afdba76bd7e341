"""Draft expiry: reclaim orders abandoned before payment started.

Designed to be triggered periodically by an external scheduler (cron, K8s
CronJob) via ``manage.py expire-drafts`` or the maintenance API endpoint.
Drafts older than the threshold are cancelled by the system and their
promotional code reservations are released.
"""

from datetime import datetime, timedelta

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.domain import logger
from storefront.errors import OrderNotFound, PersistenceConflict
from storefront.order.mutation import mutate_order
from storefront.order.order import CancellationActor, Order, OrderStatus
from storefront.promotion import ledger
from storefront.utils.clock import as_utc, utcnow
from storefront.utils.settings import get_settings

EXPIRY_REASON = "Checkout abandoned"


def expire_stale_drafts(older_than_minutes: int | None = None, as_of: datetime | None = None) -> int:
    """Cancel drafts created before the cutoff. Returns the number expired."""
    as_of = as_utc(as_of) or utcnow()
    threshold_minutes = older_than_minutes or get_settings().draft_expiry_minutes
    cutoff = as_of - timedelta(minutes=threshold_minutes)

    logger.info("Checking for stale drafts", cutoff=cutoff.isoformat(), threshold_minutes=threshold_minutes)

    stale = [
        order
        for order in current_domain.repository_for(Order).drafts()
        if order.created_at and as_utc(order.created_at) <= cutoff
    ]
    if not stale:
        logger.info("No stale drafts found")
        return 0

    def change(order: Order) -> bool:
        # Payment may have started since the scan.
        if order.order_status != OrderStatus.DRAFT:
            return False
        order.cancel(reason=EXPIRY_REASON, actor=CancellationActor.SYSTEM)
        return True

    expired_count = 0
    for draft in stale:
        try:
            order, written = mutate_order(str(draft.id), change)
            if not written:
                continue
            ledger.release(str(order.id))
        except (ValidationError, OrderNotFound, PersistenceConflict) as exc:
            logger.warning("Failed to expire draft", order_id=str(draft.id), error=str(exc))
            continue

        expired_count += 1
        logger.info(
            "Expired stale draft",
            order_id=str(order.id),
            payment_reference=order.payment_reference,
            created_at=str(order.created_at),
        )

    logger.info("Stale draft cleanup complete", expired_count=expired_count)
    return expired_count
