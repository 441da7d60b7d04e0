"""Discount administration: commands and handler."""

import json

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from commerce.discount.discount import ApplicationType, Discount
from commerce.domain import commerce
from commerce.errors import DuplicateDiscountCode

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Discount")
class CreateDiscount:
    name = String(required=True, max_length=255)
    description = Text()
    code = String(max_length=50)
    discount_type = String(required=True, max_length=50)
    value = Float(required=True, min_value=0.0)
    application_type = String(max_length=50, default=ApplicationType.ENTIRE_ORDER.value)
    applicable_products = Text()  # JSON array
    applicable_categories = Text()  # JSON array
    minimum_purchase_amount = Float(min_value=0.0)
    minimum_quantity = Integer(min_value=0)
    usage_limit = Integer(min_value=0)
    usage_limit_per_customer = Integer(default=1, min_value=0)
    start_date = DateTime()
    end_date = DateTime()
    is_active = Boolean(default=True)
    is_public = Boolean(default=True)
    targeted_user_ids = Text()  # JSON array
    targeted_user_emails = Text()  # JSON array
    exclude_sale_items = Boolean(default=False)
    first_order_only = Boolean(default=False)
    created_by = Identifier()


@commerce.command(part_of="Discount")
class UpdateDiscount:
    """Change discount terms; fields left unset keep their current value."""

    discount_id = Identifier(required=True)
    name = String(max_length=255)
    description = Text()
    value = Float(min_value=0.0)
    application_type = String(max_length=50)
    applicable_products = Text()
    applicable_categories = Text()
    minimum_purchase_amount = Float(min_value=0.0)
    minimum_quantity = Integer(min_value=0)
    usage_limit = Integer(min_value=0)
    usage_limit_per_customer = Integer(min_value=0)
    start_date = DateTime()
    end_date = DateTime()
    is_public = Boolean()
    targeted_user_ids = Text()
    targeted_user_emails = Text()


@commerce.command(part_of="Discount")
class DeactivateDiscount:
    discount_id = Identifier(required=True)


@commerce.command(part_of="Discount")
class ActivateDiscount:
    discount_id = Identifier(required=True)


@commerce.command(part_of="Discount")
class DeleteDiscount:
    discount_id = Identifier(required=True)


_JSON_LIST_FIELDS = ("applicable_products", "applicable_categories", "targeted_user_ids", "targeted_user_emails")

_UPDATE_FIELDS = (
    "name",
    "description",
    "value",
    "application_type",
    "minimum_purchase_amount",
    "minimum_quantity",
    "usage_limit",
    "usage_limit_per_customer",
    "start_date",
    "end_date",
    "is_public",
    *_JSON_LIST_FIELDS,
)


def _decode(field_name, value):
    if field_name in _JSON_LIST_FIELDS and isinstance(value, str):
        return json.loads(value) if value else []
    return value


@commerce.command_handler(part_of=Discount)
class ManageDiscountHandler:
    @handle(CreateDiscount)
    def create_discount(self, command):
        repo = current_domain.repository_for(Discount)
        if command.code and repo.find_by_code(command.code) is not None:
            raise DuplicateDiscountCode({"code": ["Discount code already exists"]})

        discount = Discount.create(
            name=command.name,
            description=command.description,
            code=command.code,
            discount_type=command.discount_type,
            value=command.value,
            application_type=command.application_type,
            applicable_products=_decode("applicable_products", command.applicable_products),
            applicable_categories=_decode("applicable_categories", command.applicable_categories),
            minimum_purchase_amount=command.minimum_purchase_amount,
            minimum_quantity=command.minimum_quantity,
            usage_limit=command.usage_limit,
            usage_limit_per_customer=command.usage_limit_per_customer,
            start_date=command.start_date,
            end_date=command.end_date,
            is_active=command.is_active,
            is_public=command.is_public,
            targeted_user_ids=_decode("targeted_user_ids", command.targeted_user_ids),
            targeted_user_emails=_decode("targeted_user_emails", command.targeted_user_emails),
            exclude_sale_items=command.exclude_sale_items,
            first_order_only=command.first_order_only,
            created_by=command.created_by,
        )
        repo.add(discount)
        return str(discount.id)

    @handle(UpdateDiscount)
    def update_discount(self, command):
        repo = current_domain.repository_for(Discount)
        discount = repo.get(command.discount_id)

        changes = {
            field_name: _decode(field_name, getattr(command, field_name))
            for field_name in _UPDATE_FIELDS
            if getattr(command, field_name) is not None
        }
        if changes:
            discount.update(**changes)
            repo.add(discount)

    @handle(DeactivateDiscount)
    def deactivate_discount(self, command):
        repo = current_domain.repository_for(Discount)
        discount = repo.get(command.discount_id)
        discount.deactivate()
        repo.add(discount)

    @handle(ActivateDiscount)
    def activate_discount(self, command):
        repo = current_domain.repository_for(Discount)
        discount = repo.get(command.discount_id)
        discount.activate()
        repo.add(discount)

    @handle(DeleteDiscount)
    def delete_discount(self, command):
        repo = current_domain.repository_for(Discount)
        discount = repo.get(command.discount_id)
        repo._dao.delete(discount)
        logger.info("discount_deleted", discount_id=str(discount.id), code=discount.code)
