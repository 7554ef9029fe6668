"""
Role checks shared by the billing services.

The acting user is always passed in explicitly; these helpers
only compare it against what an operation requires and raise
Forbidden when it falls short.
"""

from collections.abc import Iterable

from lab_billing.exceptions import Forbidden
from lab_billing.models.enums import UserRole
from lab_billing.models.order import Order
from lab_billing.schemas.actor import Actor


def require_privileged(actor: Actor, action: str) -> None:
    """Only admins may perform privileged transitions."""
    if not actor.is_privileged:
        raise Forbidden(
            f"Only administrators may {action}",
            details={"action": action, "role": actor.role.value},
        )


def require_role(actor: Actor, roles: Iterable[UserRole], action: str) -> None:
    allowed = set(roles)
    if actor.role not in allowed:
        raise Forbidden(
            f"Role '{actor.role.value}' may not {action}",
            details={
                "action": action,
                "role": actor.role.value,
                "allowed_roles": sorted(role.value for role in allowed),
            },
        )


def is_order_party(actor: Actor, order: Order) -> bool:
    """
    The ordering doctor, or staff of the lab the order is assigned to.

    Admins are never a party to an order.
    """
    if actor.role == UserRole.DOCTOR:
        return actor.user_id == order.doctor_id
    if actor.role == UserRole.LAB_STAFF:
        return actor.lab_id is not None and actor.lab_id == order.lab_id
    return False


def require_order_party(actor: Actor, order: Order, action: str) -> None:
    if not is_order_party(actor, order):
        raise Forbidden(
            f"Only a party to order {order.order_number} may {action}",
            details={
                "action": action,
                "role": actor.role.value,
                "order_id": order.id,
            },
        )


def require_lab_scope(actor: Actor, order: Order, action: str) -> None:
    """Lab staff only act on orders assigned to their own lab."""
    if actor.role == UserRole.LAB_STAFF:
        require_order_party(actor, order, action)
