"""Usage ledger: reservations against promotional code limits.

``reserve`` performs the conditional increment ``times_used += 1 WHERE
times_used < usage_limit`` as one step under the code's record lock; no
caller reads the counter and writes it back on its own. Every counter write
is revision-checked and retried, like order writes.

``confirm`` and ``release`` re-read the pending usage once the lock is held,
so two settlements of the same reservation never both apply.
"""

from collections.abc import Callable

from protean.utils.globals import current_domain

from storefront.domain import logger
from storefront.errors import DiscountRejected, PersistenceConflict, RejectionReason
from storefront.promotion.code import PromotionalCode
from storefront.promotion.usage import PromotionalCodeUsage
from storefront.promotion.validator import PromoQuote
from storefront.utils.locks import record_lock
from storefront.utils.settings import get_settings

_LOCK_KIND = "promotional_code"


def _write_counter(code_id: str, change: Callable[[PromotionalCode], None]) -> PromotionalCode:
    repo = current_domain.repository_for(PromotionalCode)
    attempts = get_settings().reconciliation_max_retries

    for attempt in range(1, attempts + 1):
        with record_lock(_LOCK_KIND, code_id):
            promo = repo._dao.get(code_id)
            revision = promo.revision or 0
            change(promo)
            try:
                return repo.save_checked(promo, revision)
            except PersistenceConflict as exc:
                logger.warning(
                    "Promotional code write conflict",
                    code_id=code_id,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(exc),
                )

    raise PersistenceConflict(f"Promotional code {code_id} could not be written after {attempts} attempts")


def claim_slot(code_id: str) -> PromotionalCode:
    """Atomically increment ``times_used`` if the code still has capacity."""

    def take(promo: PromotionalCode) -> None:
        if promo.usage_limit_reached():
            logger.info(
                "Promotional code exhausted at reservation time",
                code=promo.code,
                times_used=promo.times_used,
                usage_limit=promo.usage_limit,
            )
            raise DiscountRejected(RejectionReason.USAGE_LIMIT_REACHED)
        promo.times_used = (promo.times_used or 0) + 1

    return _write_counter(code_id, take)


def return_slot(code_id: str) -> None:
    """Give one slot back, never dropping below zero."""

    def give_back(promo: PromotionalCode) -> None:
        promo.times_used = max(0, (promo.times_used or 0) - 1)

    _write_counter(code_id, give_back)


def reserve(quote: PromoQuote, order_id: str, customer_key: str) -> PromotionalCodeUsage:
    """Claim a slot and record a pending usage for ``order_id``."""
    claim_slot(quote.code_id)

    usage = PromotionalCodeUsage.reserve(
        code_id=quote.code_id,
        code=quote.code,
        order_id=order_id,
        customer_key=customer_key,
        discount=quote.discount,
    )
    try:
        current_domain.repository_for(PromotionalCodeUsage).add(usage)
    except Exception:
        return_slot(quote.code_id)
        raise

    logger.info("Promotional code reserved", code=quote.code, order_id=str(order_id))
    return usage


def _settle(order_id: str, settle: Callable[[PromotionalCodeUsage], None]) -> PromotionalCodeUsage | None:
    repo = current_domain.repository_for(PromotionalCodeUsage)
    seen = repo.pending_for_order(order_id)
    if seen is None:
        return None

    with record_lock(_LOCK_KIND, str(seen.code_id)):
        # Another settlement may have won the lock since the lookup.
        usage = repo.pending_for_order(order_id)
        if usage is None:
            return None
        settle(usage)
        return usage


def confirm(order_id: str) -> PromotionalCodeUsage | None:
    """Flip the order's pending reservation to confirmed. No-op when there is none."""
    repo = current_domain.repository_for(PromotionalCodeUsage)

    def apply(usage: PromotionalCodeUsage) -> None:
        usage.confirm()
        repo.save(usage)

    usage = _settle(order_id, apply)
    if usage is not None:
        logger.info("Promotional code usage confirmed", code=usage.code, order_id=str(order_id))
    return usage


def release(order_id: str) -> PromotionalCodeUsage | None:
    """Void the order's pending reservation and return its slot. No-op when there is none."""
    repo = current_domain.repository_for(PromotionalCodeUsage)

    def apply(usage: PromotionalCodeUsage) -> None:
        usage.release()
        repo.save(usage)
        return_slot(str(usage.code_id))

    usage = _settle(order_id, apply)
    if usage is not None:
        logger.info("Promotional code reservation released", code=usage.code, order_id=str(order_id))
    return usage
