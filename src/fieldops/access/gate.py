"""
Subscription access gate.

``should_lockout_user`` is a pure function of the company's subscription
and seat state. It denies access at the first failing layer:

1. no company
2. missing or unparseable subscription status
3. seat limit not positive
4. more seated employees than seats
5. expired/cancelled, trial without days left, or active/grace without a seat
"""

from __future__ import annotations

from enum import Enum

from fieldops.schema.entities import Company, SubscriptionStatus


class LockoutReason(Enum):
    """Why the lockout screen is shown."""

    NO_COMPANY = "no_company"
    INVALID_STATUS = "invalid_status"
    INVALID_SEAT_LIMIT = "invalid_seat_limit"
    SEATS_EXCEEDED = "seats_exceeded"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    TRIAL_EXPIRED = "trial_expired"
    TRIAL_END_UNKNOWN = "trial_end_unknown"
    NO_SEAT = "no_seat"

    @property
    def layer(self) -> int:
        return _LAYERS[self]

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_LAYERS = {
    LockoutReason.NO_COMPANY: 1,
    LockoutReason.INVALID_STATUS: 2,
    LockoutReason.INVALID_SEAT_LIMIT: 3,
    LockoutReason.SEATS_EXCEEDED: 4,
    LockoutReason.SUBSCRIPTION_EXPIRED: 5,
    LockoutReason.SUBSCRIPTION_CANCELLED: 5,
    LockoutReason.TRIAL_EXPIRED: 5,
    LockoutReason.TRIAL_END_UNKNOWN: 5,
    LockoutReason.NO_SEAT: 5,
}

_INVALID_DATA = "We couldn't verify your company's subscription. Please contact your administrator."

_MESSAGES = {
    LockoutReason.NO_COMPANY: "Your account isn't linked to a company.",
    LockoutReason.INVALID_STATUS: _INVALID_DATA,
    LockoutReason.INVALID_SEAT_LIMIT: _INVALID_DATA,
    LockoutReason.SEATS_EXCEEDED: "Your company has more seated employees than its plan allows.",
    LockoutReason.SUBSCRIPTION_EXPIRED: "Your company's subscription has expired.",
    LockoutReason.SUBSCRIPTION_CANCELLED: "Your company's subscription has been cancelled.",
    LockoutReason.TRIAL_EXPIRED: "Your free trial has ended. Choose a plan to keep your team connected.",
    LockoutReason.TRIAL_END_UNKNOWN: _INVALID_DATA,
    LockoutReason.NO_SEAT: "No seat is available for you. Ask your administrator to assign you a seat.",
}


def lockout_reason(
    company: Company | None,
    status: SubscriptionStatus | None,
    seated_count: int,
    max_seats: int,
    user_has_seat: bool,
    trial_days_remaining: int | None,
) -> LockoutReason | None:
    """Return the first layer that denies access, or None to allow."""
    if company is None:
        return LockoutReason.NO_COMPANY

    if status is None:
        return LockoutReason.INVALID_STATUS

    if max_seats <= 0:
        return LockoutReason.INVALID_SEAT_LIMIT

    if seated_count > max_seats:
        return LockoutReason.SEATS_EXCEEDED

    if status == SubscriptionStatus.EXPIRED:
        return LockoutReason.SUBSCRIPTION_EXPIRED
    if status == SubscriptionStatus.CANCELLED:
        return LockoutReason.SUBSCRIPTION_CANCELLED

    if status == SubscriptionStatus.TRIAL:
        if trial_days_remaining is None:
            return LockoutReason.TRIAL_END_UNKNOWN
        if trial_days_remaining <= 0:
            return LockoutReason.TRIAL_EXPIRED
        return None

    # active or grace
    if not user_has_seat:
        return LockoutReason.NO_SEAT
    return None


def should_lockout_user(
    company: Company | None,
    status: SubscriptionStatus | None,
    seated_count: int,
    max_seats: int,
    user_has_seat: bool,
    trial_days_remaining: int | None,
) -> bool:
    """True if the user must be locked out of the app."""
    return (
        lockout_reason(company, status, seated_count, max_seats, user_has_seat, trial_days_remaining)
        is not None
    )
