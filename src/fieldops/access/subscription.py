"""
Subscription manager.

Publishes the access state derived from the current user's company and
mediates seat changes. The server owns the seat list: a seat change is
sent remotely and only the list the server returns is written locally.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fieldops.controller import DataController
from fieldops.errors import (
    AuthorizationError,
    CannotRemoveOwnSeatError,
    CapacityError,
    LocalCommitError,
    NoCompanyError,
    RemoteServiceError,
    SyncError,
)
from fieldops.remote.retry import NO_RETRY, RetryPolicy
from fieldops.schema.entities import Company, SubscriptionPlan, SubscriptionStatus, User, utc_now

from .gate import LockoutReason, lockout_reason


@dataclass
class SubscriptionState:
    """Values published to the presentation layer."""

    subscription_status: SubscriptionStatus | None = None
    subscription_plan: SubscriptionPlan | None = None
    should_show_lockout: bool = False
    lockout_reason: LockoutReason | None = None
    should_show_grace_period_banner: bool = False
    user_has_seat: bool = False
    is_user_admin: bool = False
    trial_days_remaining: int | None = None
    grace_days_remaining: int | None = None
    max_seats: int = 0
    seated_employee_ids: list[str] = field(default_factory=list)
    has_priority_support: bool = False
    checked_at: datetime | None = None

    @property
    def lockout_message(self) -> str | None:
        return self.lockout_reason.message if self.lockout_reason else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscription_status": self.subscription_status.value if self.subscription_status else None,
            "subscription_plan": self.subscription_plan.value if self.subscription_plan else None,
            "should_show_lockout": self.should_show_lockout,
            "lockout_reason": self.lockout_reason.value if self.lockout_reason else None,
            "should_show_grace_period_banner": self.should_show_grace_period_banner,
            "user_has_seat": self.user_has_seat,
            "is_user_admin": self.is_user_admin,
            "trial_days_remaining": self.trial_days_remaining,
            "grace_days_remaining": self.grace_days_remaining,
            "max_seats": self.max_seats,
            "seated_count": len(self.seated_employee_ids),
            "has_priority_support": self.has_priority_support,
            "checked_at": self.checked_at.isoformat() if self.checked_at else None,
        }


StateListener = Callable[[SubscriptionState], None]


class SubscriptionManager:
    """
    Access control and seat management for the current user's company.

    Features:
    - Lockout recomputed on every foreground and every company sync
    - Admin-only seat changes, serialized per company
    - Server-authoritative seat lists
    """

    def __init__(
        self,
        controller: DataController,
        retry_policy: RetryPolicy = NO_RETRY,
        clock: Callable[[], datetime] = utc_now,
        logger: logging.Logger | None = None,
    ):
        self.controller = controller
        self.retry_policy = retry_policy
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

        self.state = SubscriptionState()
        self.listeners: list[StateListener] = []
        self._seat_locks: dict[str, asyncio.Lock] = {}

    # Status

    def check_subscription_status(self) -> SubscriptionState:
        """Recompute and publish the access state from local data."""
        now = self.clock()
        user = self.controller.current_user
        company = self.controller.get_current_user_company()
        user_id = user.id if user else None

        state = SubscriptionState(checked_at=now)
        if company is not None:
            state.subscription_status = company.subscription_status
            state.subscription_plan = company.subscription_plan
            state.max_seats = company.max_seats
            state.seated_employee_ids = list(company.seated_employee_ids)
            state.has_priority_support = company.has_priority_support
            state.is_user_admin = bool(user_id) and company.is_admin(user_id)
            state.user_has_seat = bool(user_id) and company.has_seat(user_id)
            state.trial_days_remaining = company.days_remaining_in_trial(now)
            state.grace_days_remaining = company.days_remaining_in_grace_period(now)
            state.should_show_grace_period_banner = company.should_show_grace_period_warning
            if not company.seats_within_limit():
                self.logger.error(
                    "Company %s has %d seated employees but only %d seats",
                    company.id,
                    company.seated_count,
                    company.max_seats,
                )
        else:
            self.logger.warning("No company found for current user")

        state.lockout_reason = lockout_reason(
            company,
            state.subscription_status,
            len(state.seated_employee_ids),
            state.max_seats,
            state.user_has_seat,
            state.trial_days_remaining,
        )
        state.should_show_lockout = state.lockout_reason is not None

        if state.should_show_lockout != self.state.should_show_lockout:
            self.logger.info(
                "Lockout %s (%s)",
                "engaged" if state.should_show_lockout else "lifted",
                state.lockout_reason.value if state.lockout_reason else "access granted",
            )

        self.state = state
        for listener in list(self.listeners):
            listener(state)
        return state

    def on_app_foreground(self) -> SubscriptionState:
        return self.check_subscription_status()

    def on_company_synced(self, company: Company | None = None) -> SubscriptionState:
        return self.check_subscription_status()

    def subscribe(self, listener: StateListener) -> None:
        self.listeners.append(listener)

    # Seats

    def _seat_lock(self, company_id: str) -> asyncio.Lock:
        lock = self._seat_locks.get(company_id)
        if lock is None:
            lock = self._seat_locks[company_id] = asyncio.Lock()
        return lock

    def _require_admin_company(self) -> tuple[User, Company]:
        user = self.controller.current_user
        company = self.controller.get_current_user_company()
        if user is None or company is None:
            raise NoCompanyError()
        if not company.is_admin(user.id):
            raise AuthorizationError()
        return user, company

    async def add_seat(self, user_id: str) -> list[str]:
        """Give ``user_id`` a seat. Returns the server's seat list."""
        _, company = self._require_admin_company()

        async with self._seat_lock(company.id):
            desired = list(company.seated_employee_ids)
            if user_id not in desired:
                if not company.has_available_seats():
                    raise CapacityError()
                desired.append(user_id)

            self.logger.info("Adding seat for user %s", user_id)
            return await self._update_seats(company, desired)

    async def remove_seat(self, user_id: str) -> list[str]:
        """Take away ``user_id``'s seat. Admins cannot remove their own."""
        current_user, company = self._require_admin_company()
        if user_id == current_user.id:
            raise CannotRemoveOwnSeatError()

        async with self._seat_lock(company.id):
            desired = [uid for uid in company.seated_employee_ids if uid != user_id]
            self.logger.info("Removing seat for user %s", user_id)
            return await self._update_seats(company, desired)

    async def _update_seats(self, company: Company, desired: list[str]) -> list[str]:
        remote = self.controller.remote
        try:
            record = await self.retry_policy.run(
                lambda: remote.update_company_seats(company.id, desired),
                logger=self.logger,
                description=f"Seat update for company {company.id}",
            )
        except RemoteServiceError as e:
            self.logger.error("Failed to update seated employees for %s: %s", company.id, e)
            raise SyncError() from e

        # The server has applied the change, so local state follows it even
        # when the commit below fails.
        company.seated_employee_ids = list(record.seated_employee_ids)
        self.check_subscription_status()
        if self.controller.store is not None:
            try:
                await self.controller.store.save()
            except Exception as e:
                self.logger.error("Seat list for %s updated remotely but not saved locally: %s", company.id, e)
                raise LocalCommitError() from e

        return list(company.seated_employee_ids)

    # Display helpers

    def subscription_status_text(self) -> str:
        state = self.state
        status = state.subscription_status
        if status is None:
            return "Unknown"
        if status == SubscriptionStatus.TRIAL:
            if state.trial_days_remaining is not None:
                return f"Trial - {state.trial_days_remaining} days left"
            return "Trial"
        if status == SubscriptionStatus.ACTIVE:
            plan = state.subscription_plan.display_name if state.subscription_plan else "Subscription"
            return f"{plan} Plan - Active"
        if status == SubscriptionStatus.GRACE:
            if state.grace_days_remaining is not None:
                return f"Grace Period - {state.grace_days_remaining} days left"
            return "Grace Period"
        if status == SubscriptionStatus.EXPIRED:
            return "Subscription Expired"
        return "Subscription Cancelled"

    def seated_employees(self) -> list[User]:
        company = self.controller.get_current_user_company()
        if company is None:
            return []
        users = (self.controller.get_user(uid) for uid in company.seated_employee_ids)
        return [u for u in users if u is not None]

    def newest_seated_non_admin(self) -> User | None:
        """Last seated employee who is not an admin, the candidate for auto-removal."""
        company = self.controller.get_current_user_company()
        if company is None:
            return None
        for user in reversed(self.seated_employees()):
            if not company.is_admin(user.id):
                return user
        return None
