"""Domain events for the Discount aggregate."""

from protean.fields import Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Discount")
class DiscountCreated:
    __version__ = 1

    discount_id = Identifier(required=True)
    code = String()
    discount_type = String(required=True)
    value = Float(required=True)


@commerce.event(part_of="Discount")
class DiscountUpdated:
    __version__ = 1

    discount_id = Identifier(required=True)
    changed_fields = String()  # comma-separated field names


@commerce.event(part_of="Discount")
class DiscountActivated:
    __version__ = 1

    discount_id = Identifier(required=True)


@commerce.event(part_of="Discount")
class DiscountDeactivated:
    __version__ = 1

    discount_id = Identifier(required=True)


@commerce.event(part_of="Discount")
class DiscountUsageRecorded:
    """A checkout consumed one use of the discount."""

    __version__ = 1

    discount_id = Identifier(required=True)
    order_number = String()
    customer_id = Identifier()
    usage_count = Integer(required=True)
