"""
Order status state machine and the single place that decides who may move an
order from one status to another.

    pending   -> preparing   staff/admin
    pending   -> cancelled   owner or staff/admin
    preparing -> ready       staff/admin
    preparing -> cancelled   staff/admin
    ready     -> completed   staff/admin

completed and cancelled are absorbing.
"""
from typing import Protocol

from campus_canteen.errors import Forbidden, InvalidStatus, InvalidTransition
from campus_canteen.models.order import OrderStatusEnum
from campus_canteen.models.user import RoleEnum


TRANSITIONS: dict[OrderStatusEnum, frozenset[OrderStatusEnum]] = {
    OrderStatusEnum.pending: frozenset({OrderStatusEnum.preparing, OrderStatusEnum.cancelled}),
    OrderStatusEnum.preparing: frozenset({OrderStatusEnum.ready, OrderStatusEnum.cancelled}),
    OrderStatusEnum.ready: frozenset({OrderStatusEnum.completed}),
    OrderStatusEnum.completed: frozenset(),
    OrderStatusEnum.cancelled: frozenset(),
}

# the only edges an order's owner may take without staff rights
OWNER_TRANSITIONS: frozenset[tuple[OrderStatusEnum, OrderStatusEnum]] = frozenset(
    {(OrderStatusEnum.pending, OrderStatusEnum.cancelled)}
)


class _Requester(Protocol):
    user_id: str
    role: RoleEnum


def parse_status(value) -> OrderStatusEnum:
    try:
        return OrderStatusEnum(value)
    except ValueError:
        raise InvalidStatus(f"Unknown order status: {value!r}")


def authorize_transition(order, requester: _Requester, new_status) -> OrderStatusEnum:
    """
    Returns the parsed target status if `requester` may move `order` there,
    otherwise raises InvalidStatus, InvalidTransition or Forbidden.
    Never mutates the order.
    """
    target = parse_status(new_status)
    current = OrderStatusEnum(order.status)
    is_owner = order.user_id == requester.user_id

    # strangers are refused before the order state is looked at
    if not (requester.role.is_privileged or is_owner):
        raise Forbidden("Not allowed to change the status of this order")

    if current.is_terminal:
        raise InvalidTransition(f"Order is already {current.value}")

    if requester.role.is_privileged:
        if target not in TRANSITIONS[current]:
            raise InvalidTransition(f"Cannot move order from {current.value} to {target.value}")
        return target

    if is_owner and target == OrderStatusEnum.cancelled:
        if (current, target) not in OWNER_TRANSITIONS:
            raise InvalidTransition(f"Only pending orders can be cancelled, this one is {current.value}")
        return target

    raise Forbidden("Not allowed to change the status of this order")
