"""Subscription lifecycle state machine.

Every status change of a subscription goes through ``transition``. A change to
the current status is always accepted, which keeps redelivered webhook events
idempotent.
"""

from billsync.core.exceptions import InvalidStateError
from billsync.schemas.subscription import Subscription, SubscriptionStatus

S = SubscriptionStatus

ALLOWED_TRANSITIONS: dict[SubscriptionStatus, frozenset[SubscriptionStatus]] = {
    S.PENDING: frozenset({S.ACTIVE, S.CANCELING, S.CANCELLED}),
    S.ACTIVE: frozenset({S.TRIALING, S.CANCELING, S.CANCELLED, S.UNPAID_CANCELED, S.DISABLED}),
    S.TRIALING: frozenset({S.ACTIVE, S.CANCELING, S.CANCELLED, S.UNPAID_CANCELED, S.DISABLED}),
    S.CANCELING: frozenset({S.ACTIVE, S.CANCELLED}),
    S.UNPAID_CANCELED: frozenset({S.CANCELLED}),
    S.DISABLED: frozenset({S.CANCELLED}),
    S.CANCELLED: frozenset(),
    S.DELETED: frozenset(),
}


def can_transition(current: SubscriptionStatus, target: SubscriptionStatus) -> bool:
    """Whether a subscription in ``current`` may move to ``target``."""
    current, target = SubscriptionStatus(current), SubscriptionStatus(target)
    return current == target or target in ALLOWED_TRANSITIONS[current]


def transition(subscription: Subscription, target: SubscriptionStatus) -> Subscription:
    """Move ``subscription`` to ``target`` in place.

    Raises:
        InvalidStateError: if the move is not allowed. The subscription is left
            untouched.
    """
    if not can_transition(subscription.status, target):
        raise InvalidStateError(
            f"Subscription cannot move from {SubscriptionStatus(subscription.status).value} "
            f"to {SubscriptionStatus(target).value}"
        )
    subscription.status = SubscriptionStatus(target)
    return subscription
