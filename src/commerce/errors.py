"""Error taxonomy for the commerce transaction core.

Every business-rule failure is a ``protean.exceptions.ValidationError``
subclass carrying the usual ``{"field": ["reason"]}`` messages dict, so
aggregates, handlers and the checkout orchestrator raise them exactly like
the framework's own validation errors. The API layer maps each class to an
HTTP status (see ``commerce.api.errors``).
"""

from protean.exceptions import ObjectNotFoundError, ValidationError

__all__ = [
    "CheckoutIncomplete",
    "Conflict",
    "DuplicateCoupon",
    "DuplicateDiscountCode",
    "EmptyCart",
    "Forbidden",
    "InvalidCoupon",
    "InvalidInput",
    "InvalidReference",
    "InvalidTransition",
    "InventoryInconsistency",
    "NotFound",
    "OutOfStock",
]

NotFound = ObjectNotFoundError


class InvalidInput(ValidationError):
    """Malformed or out-of-range input."""


class InvalidReference(InvalidInput):
    """A variant was supplied that does not belong to the supplied product."""


class EmptyCart(InvalidInput):
    pass


class InvalidCoupon(ValidationError):
    """The Discount Validator rejected a coupon; messages carry its reason."""


class Conflict(ValidationError):
    pass


class DuplicateCoupon(Conflict):
    pass


class DuplicateDiscountCode(Conflict):
    pass


class OutOfStock(ValidationError):
    pass


class InvalidTransition(ValidationError):
    pass


class Forbidden(ValidationError):
    pass


class InventoryInconsistency(Exception):
    """Stock could not be returned after a failed checkout or a cancellation.

    Fatal: counters no longer match committed orders and need manual repair.
    """

    def __init__(self, message, units=None):
        super().__init__(message)
        self.units = units or []


class CheckoutIncomplete(Exception):
    """An order was committed but the steps that follow it did not all finish.

    ``steps`` names what is left undone (``cart``, ``coupon_usage``).
    """

    def __init__(self, message, order_number, steps=None):
        super().__init__(message)
        self.order_number = order_number
        self.steps = steps or []
