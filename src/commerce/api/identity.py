"""Caller identity, as asserted by the upstream authentication layer.

The core never authenticates; it trusts these headers:

- ``X-User-Id``: registered customer id
- ``X-Session-Id``: anonymous session id for guest carts
- ``X-User-Role``: ``admin`` unlocks administrative routes
"""

from dataclasses import dataclass

from fastapi import Header

from commerce.errors import Forbidden

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Requester:
    user_id: str | None = None
    session_id: str | None = None
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == ADMIN_ROLE


def get_requester(
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Requester:
    return Requester(user_id=x_user_id or None, session_id=x_session_id or None, role=x_user_role)


def require_admin(requester: Requester) -> None:
    if not requester.is_admin:
        raise Forbidden({"role": ["Administrator access required"]})
