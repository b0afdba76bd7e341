"""Repositories for promotional codes and their usage rows."""

from protean.exceptions import ExpectedVersionError

from storefront.domain import storefront
from storefront.errors import PersistenceConflict
from storefront.promotion.code import PromotionalCode, normalize_code
from storefront.promotion.usage import PromotionalCodeUsage, UsageStatus

_MAX_ROWS = 1000


@storefront.repository(part_of=PromotionalCode)
class PromotionalCodeRepository:
    def find_by_code(self, code: str) -> PromotionalCode | None:
        """Find a code by its case-normalized value."""
        return self._dao.query.filter(code=normalize_code(code)).all().first

    def save_checked(self, promo: PromotionalCode, expected_revision: int) -> PromotionalCode:
        """Persist ``promo`` only if nobody else wrote it since ``expected_revision``.

        Callers hold the code's record lock.
        """
        persisted = self._dao.get(promo.id)
        if (persisted.revision or 0) != expected_revision:
            raise PersistenceConflict(
                f"Promotional code {promo.code} changed concurrently (expected revision {expected_revision}, "
                f"found {persisted.revision})"
            )

        promo.revision = expected_revision + 1
        try:
            self.add(promo)
        except ExpectedVersionError as exc:
            raise PersistenceConflict(str(exc)) from exc
        return promo


@storefront.repository(part_of=PromotionalCodeUsage)
class PromotionalCodeUsageRepository:
    def for_order(self, order_id: str) -> list[PromotionalCodeUsage]:
        return self._dao.query.filter(order_id=str(order_id)).limit(_MAX_ROWS).all().items

    def pending_for_order(self, order_id: str) -> PromotionalCodeUsage | None:
        return (
            self._dao.query.filter(order_id=str(order_id), status=UsageStatus.PENDING.value)
            .all()
            .first
        )

    def save(self, usage: PromotionalCodeUsage) -> PromotionalCodeUsage:
        """Persist a usage row, reporting a concurrent write as a conflict."""
        try:
            self.add(usage)
        except ExpectedVersionError as exc:
            raise PersistenceConflict(str(exc)) from exc
        return usage

    def confirmed_count(self, code_id: str, customer_key: str) -> int:
        confirmed = (
            self._dao.query.filter(
                code_id=str(code_id),
                customer_key=customer_key,
                status=UsageStatus.CONFIRMED.value,
            )
            .limit(_MAX_ROWS)
            .all()
            .items
        )
        return len(confirmed)
