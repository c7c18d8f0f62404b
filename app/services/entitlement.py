"""
Entitlement resolution.

A user is Pro while they hold an active subscription or while their trial
window is still open. The decision is recomputed on every call from the
stored user and subscription rows and is never written back.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from app.core.errors import PrincipalNotFound
from app.core.features import SubscriptionStatus
from app.models.subscription import Subscription
from app.models.user import User
from app.services.overrides import EntitlementOverridePolicy, NoOverridePolicy
from app.services.store import RecordStore, as_utc, utcnow

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class SubscriptionSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    trial_end: datetime | None = None

    @classmethod
    def from_record(cls, subscription: Subscription) -> "SubscriptionSnapshot":
        return cls(
            status=subscription.status,
            start_date=as_utc(subscription.current_period_start),
            end_date=as_utc(subscription.current_period_end),
            trial_end=as_utc(subscription.trial_end_date),
        )

    def to_response(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "trialEnd": _iso(self.trial_end),
        }


class EntitlementDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_pro: bool
    trial_days_left: int
    subscription: SubscriptionSnapshot | None = None
    reason: str

    def to_response(self) -> dict[str, Any]:
        return {
            "isPro": self.is_pro,
            "trialDaysLeft": self.trial_days_left,
            "subscriptionData": self.subscription.to_response() if self.subscription else None,
        }


def days_until(deadline: datetime | None, now: datetime) -> int | None:
    """Whole days until ``deadline``, rounded up. Negative once it has passed."""
    if deadline is None:
        return None
    seconds_left = (as_utc(deadline) - as_utc(now)).total_seconds()
    return math.ceil(seconds_left / SECONDS_PER_DAY)


def trial_days_left(user: User, now: datetime) -> int:
    days = days_until(user.trial_ends_at, now)
    if days is None:
        return 0
    return max(0, days)


def trial_is_open(user: User, now: datetime) -> bool:
    if user.trial_ends_at is None:
        return False
    # trial_ends_at < now means not Pro, even when the rounded days left reads 0.
    # The trial_ends_at instant itself still counts.
    return as_utc(user.trial_ends_at) >= as_utc(now)


class EntitlementResolver:
    def __init__(
        self,
        store: RecordStore,
        override_policy: EntitlementOverridePolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.override_policy = override_policy or NoOverridePolicy()
        self.clock = clock

    def resolve(self, user_id: int, now: datetime | None = None) -> EntitlementDecision:
        user = self.store.get_user(user_id)
        if user is None:
            raise PrincipalNotFound(user_id)

        now = now or self.clock()
        subscription = self._subscription_for(user)
        snapshot = SubscriptionSnapshot.from_record(subscription) if subscription else None
        days_left = trial_days_left(user, now)

        override = self.override_policy.override_for(user)
        if override is not None and override.is_pro is not None:
            logger.info(
                "entitlement_override user_id=%s is_pro=%s reason=%s",
                user.id,
                override.is_pro,
                override.reason,
            )
            return EntitlementDecision(
                is_pro=override.is_pro,
                trial_days_left=days_left,
                subscription=snapshot,
                reason=f"override:{override.reason}",
            )

        is_pro, reason = self._compute_pro(user, subscription, now)
        return EntitlementDecision(
            is_pro=is_pro,
            trial_days_left=days_left,
            subscription=snapshot,
            reason=reason,
        )

    def _subscription_for(self, user: User) -> Subscription | None:
        if user.stripe_subscription_id:
            referenced = self.store.get_subscription_by_external_id(user.stripe_subscription_id)
            if referenced is not None and referenced.user_id == user.id:
                return referenced
        return self.store.get_subscription_for_user(user.id)

    def _compute_pro(
        self, user: User, subscription: Subscription | None, now: datetime
    ) -> tuple[bool, str]:
        if user.stripe_subscription_id and subscription is not None:
            if subscription.status == SubscriptionStatus.ACTIVE.value:
                return True, "subscription_active"
            logger.info(
                "entitlement_subscription_inactive user_id=%s subscription_id=%s status=%s",
                user.id,
                subscription.id,
                subscription.status,
            )

        if user.trial_ends_at is not None:
            if trial_is_open(user, now):
                return True, "trial_active"
            return False, "trial_expired"

        return False, "no_entitlement"


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()
