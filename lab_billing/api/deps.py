"""
Request dependencies shared by the billing routers.

The acting user comes from headers set by the identity gateway
in front of this service. The ledger trusts them as given.
"""

from fastapi import Header

from lab_billing.models.enums import UserRole
from lab_billing.schemas.actor import Actor


def get_actor(
    x_user_id: str = Header(..., min_length=1, max_length=64),
    x_user_role: UserRole = Header(...),
    x_lab_id: int | None = Header(default=None),
) -> Actor:
    """Build the Actor from X-User-Id, X-User-Role and X-Lab-Id."""
    return Actor(user_id=x_user_id, role=x_user_role, lab_id=x_lab_id)
