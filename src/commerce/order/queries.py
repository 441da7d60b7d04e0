"""Order read access with ownership checks."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.order.order import Order


def list_orders(requester_id=None, is_admin=False) -> list[Order]:
    """Admins see every order; customers see their own, newest first."""
    repo = current_domain.repository_for(Order)
    if is_admin:
        return repo.list_all()
    if not requester_id:
        return []
    return repo.list_for_customer(requester_id)


def find_order(order_number, requester_id=None, is_admin=False) -> Order:
    order = current_domain.repository_for(Order).find_by_number(order_number)
    if order is None:
        raise ObjectNotFoundError({"order_number": [f"Order `{order_number}` not found"]})
    order.assert_visible_to(requester_id, is_admin=is_admin)
    return order
