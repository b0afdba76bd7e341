"""Catalog discount management: commands and handlers."""

import json

from protean import handle
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.discount.discount import CatalogDiscount, DiscountScope
from storefront.discount.resolver import invalidate_discount_cache
from storefront.domain import logger, storefront


@storefront.command(part_of="CatalogDiscount")
class CreateCatalogDiscount:
    name = String(required=True, max_length=255)
    discount_type = String(required=True, max_length=20)
    value = String(required=True, max_length=20)  # decimal string
    scope = String(default=DiscountScope.ALL.value, max_length=20)
    target_ids = Text()  # JSON list
    priority = Integer(default=0)
    is_active = Boolean(default=True)
    starts_at = DateTime()
    ends_at = DateTime()


@storefront.command(part_of="CatalogDiscount")
class UpdateCatalogDiscount:
    discount_id = Identifier(required=True)
    name = String(max_length=255)
    discount_type = String(max_length=20)
    value = String(max_length=20)
    scope = String(max_length=20)
    target_ids = Text()
    priority = Integer()
    starts_at = DateTime()
    ends_at = DateTime()


@storefront.command(part_of="CatalogDiscount")
class DeactivateCatalogDiscount:
    discount_id = Identifier(required=True)


@storefront.command(part_of="CatalogDiscount")
class DeleteCatalogDiscount:
    discount_id = Identifier(required=True)


@storefront.command_handler(part_of=CatalogDiscount)
class ManageCatalogDiscountHandler:
    @handle(CreateCatalogDiscount)
    def create_discount(self, command):
        discount = CatalogDiscount.create(
            name=command.name,
            discount_type=command.discount_type,
            value=command.value,
            scope=command.scope,
            target_ids=json.loads(command.target_ids) if command.target_ids else None,
            priority=command.priority,
            is_active=command.is_active,
            starts_at=command.starts_at,
            ends_at=command.ends_at,
        )
        current_domain.repository_for(CatalogDiscount).add(discount)
        invalidate_discount_cache()

        logger.info("Catalog discount created", discount_id=str(discount.id), scope=discount.scope)
        return str(discount.id)

    @handle(UpdateCatalogDiscount)
    def update_discount(self, command):
        repo = current_domain.repository_for(CatalogDiscount)
        discount = repo.get(command.discount_id)
        discount.update_terms(
            name=command.name,
            discount_type=command.discount_type,
            value=command.value,
            scope=command.scope,
            target_ids=json.loads(command.target_ids) if command.target_ids else None,
            priority=command.priority,
            starts_at=command.starts_at,
            ends_at=command.ends_at,
        )
        repo.add(discount)
        invalidate_discount_cache()

    @handle(DeactivateCatalogDiscount)
    def deactivate_discount(self, command):
        repo = current_domain.repository_for(CatalogDiscount)
        discount = repo.get(command.discount_id)
        discount.deactivate()
        repo.add(discount)
        invalidate_discount_cache()

    @handle(DeleteCatalogDiscount)
    def delete_discount(self, command):
        repo = current_domain.repository_for(CatalogDiscount)
        discount = repo.get(command.discount_id)
        repo._dao.delete(discount)
        invalidate_discount_cache()

        logger.info("Catalog discount deleted", discount_id=str(command.discount_id))
