from __future__ import annotations

from enum import StrEnum


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


SUBSCRIPTION_ALLOWED_TRANSITIONS: dict[SubscriptionStatus, set[SubscriptionStatus]] = {
    SubscriptionStatus.ACTIVE: {
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.SUSPENDED,
    },
    SubscriptionStatus.SUSPENDED: {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED},
    SubscriptionStatus.EXPIRED: set(),
    SubscriptionStatus.CANCELLED: set(),
}


def can_subscription_transition(source: SubscriptionStatus | str, target: SubscriptionStatus) -> bool:
    return target in SUBSCRIPTION_ALLOWED_TRANSITIONS.get(SubscriptionStatus(source), set())


class CancellationState(StrEnum):
    REQUESTED = "requested"
    CONFIRMED = "confirmed"


CANCELLATION_ALLOWED_TRANSITIONS: dict[CancellationState, set[CancellationState]] = {
    CancellationState.REQUESTED: {CancellationState.CONFIRMED},
    CancellationState.CONFIRMED: set(),
}


def can_cancellation_transition(source: CancellationState, target: CancellationState) -> bool:
    return target in CANCELLATION_ALLOWED_TRANSITIONS.get(source, set())
