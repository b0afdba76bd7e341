"""Promotional code management: commands and handlers."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import logger, storefront
from storefront.promotion.code import PromotionalCode
from storefront.utils.locks import record_lock


@storefront.command(part_of="PromotionalCode")
class CreatePromotionalCode:
    code = String(required=True, max_length=50)
    discount_type = String(required=True, max_length=20)
    value = String(required=True, max_length=20)
    min_order_amount = String(max_length=20)
    max_discount_amount = String(max_length=20)
    usage_limit = Integer()
    per_user_limit = Integer()
    starts_at = DateTime()
    expires_at = DateTime()
    is_active = Boolean(default=True)


@storefront.command(part_of="PromotionalCode")
class DeactivatePromotionalCode:
    code_id = Identifier(required=True)


@storefront.command_handler(part_of=PromotionalCode)
class ManagePromotionalCodeHandler:
    @handle(CreatePromotionalCode)
    def create_code(self, command):
        repo = current_domain.repository_for(PromotionalCode)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": [f"Promo code {command.code.strip().upper()} already exists"]})

        promo = PromotionalCode.create(
            code=command.code,
            discount_type=command.discount_type,
            value=command.value,
            min_order_amount=command.min_order_amount,
            max_discount_amount=command.max_discount_amount,
            usage_limit=command.usage_limit,
            per_user_limit=command.per_user_limit,
            starts_at=command.starts_at,
            expires_at=command.expires_at,
            is_active=command.is_active,
        )
        repo.add(promo)

        logger.info("Promotional code created", code=promo.code, usage_limit=promo.usage_limit)
        return str(promo.id)

    @handle(DeactivatePromotionalCode)
    def deactivate_code(self, command):
        repo = current_domain.repository_for(PromotionalCode)
        with record_lock("promotional_code", str(command.code_id)):
            promo = repo._dao.get(command.code_id)
            revision = promo.revision or 0
            promo.deactivate()
            repo.save_checked(promo, revision)
