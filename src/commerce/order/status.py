"""Order State Machine: status updates and cancellation (commands and handler).

Handlers only change and persist the order. Cancelling also returns stock,
which happens in ``cancel_order`` after the cancellation has committed: a
restock failure then surfaces as InventoryInconsistency while the order
already reads ``cancelled``, so a second cancel cannot return the same
stock twice.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.errors import InventoryInconsistency
from commerce.inventory import guard
from commerce.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(max_length=50)
    payment_status = String(max_length=50)
    fulfillment_status = String(max_length=50)
    tracking_number = String(max_length=255)
    tracking_url = String(max_length=1000)
    shipping_carrier = String(max_length=100)
    internal_note = Text()


@commerce.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requester_id = Identifier()
    is_admin = Boolean(default=False)
    reason = String(max_length=500)


@commerce.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        order.update_status(
            status=command.status,
            payment_status=command.payment_status,
            fulfillment_status=command.fulfillment_status,
            tracking_number=command.tracking_number,
            tracking_url=command.tracking_url,
            shipping_carrier=command.shipping_carrier,
            internal_note=command.internal_note,
        )
        repo.add(order)
        logger.info("order_status_updated", order_number=order.order_number, status=order.status)
        return order.status

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        order.cancel(
            requester_id=command.requester_id,
            is_admin=command.is_admin,
            reason=command.reason,
        )
        repo.add(order)
        logger.info("order_cancelled", order_number=order.order_number)
        return order.status


def restock(order: Order) -> None:
    """Return every line of a cancelled order to inventory.

    Every line is attempted; lines that could not be returned are reported
    together.
    """
    failed = []
    for item in order.items:
        try:
            unit = guard.resolve(item.product_id, item.variant_id, active_only=False)
            guard.increment_stock(unit, item.quantity)
        except Exception:
            failed.append(str(item.variant_id or item.product_id))

    if failed:
        logger.critical("order_restock_failed", order_number=order.order_number, units=failed)
        raise InventoryInconsistency("Stock of a cancelled order could not be returned", units=failed)

    logger.info("order_restocked", order_number=order.order_number, lines=len(order.items))


def cancel_order(order_id, requester_id=None, is_admin=False, reason=None) -> Order:
    current_domain.process(
        CancelOrder(order_id=order_id, requester_id=requester_id, is_admin=is_admin, reason=reason),
        asynchronous=False,
    )
    order = current_domain.repository_for(Order).get(order_id)
    restock(order)
    return order


def update_order_status(order_id, status=None, **changes) -> Order:
    """Apply a status update; ``cancelled`` is routed through ``cancel_order``.

    Asking for ``cancelled`` on an order that is already cancelled is a no-op
    for the status track, like any other repeated status.
    """
    repo = current_domain.repository_for(Order)
    if status == OrderStatus.CANCELLED.value:
        if repo.get(order_id).status != OrderStatus.CANCELLED.value:
            cancel_order(order_id, is_admin=True, reason=changes.get("internal_note"))
        status = None

    current_domain.process(UpdateOrderStatus(order_id=order_id, status=status, **changes), asynchronous=False)
    return repo.get(order_id)
