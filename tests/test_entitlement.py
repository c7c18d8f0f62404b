"""Tests for entitlement resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import PrincipalNotFound
from app.services.entitlement import EntitlementResolver, trial_days_left
from app.services.overrides import ConfiguredOverridePolicy, NoOverridePolicy

CREATED = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _with_subscription(store, user, status, external_id="sub_1"):
    store.create_subscription(
        user_id=user.id,
        stripe_subscription_id=external_id,
        status=status,
        current_period_start=CREATED,
        current_period_end=CREATED + timedelta(days=30),
        trial_end_date=CREATED + timedelta(days=3),
    )
    store.update_user_billing(user.id, stripe_subscription_id=external_id)


@pytest.fixture
def resolver(store):
    return EntitlementResolver(store)


class TestTrial:
    def test_fresh_user_has_three_days(self, store, resolver):
        user = store.create_user(email="alice@example.com", now=CREATED)

        decision = resolver.resolve(user.id, now=CREATED)

        assert decision.is_pro is True
        assert decision.trial_days_left == 3
        assert decision.subscription is None
        assert decision.reason == "trial_active"

    def test_partial_day_rounds_up(self, store, resolver):
        user = store.create_user(email="alice@example.com", now=CREATED)

        decision = resolver.resolve(user.id, now=CREATED + timedelta(days=2, hours=1))

        assert decision.is_pro is True
        assert decision.trial_days_left == 1

    def test_last_instant_of_trial_is_still_pro(self, store, resolver):
        user = store.create_user(email="alice@example.com", now=CREATED)

        decision = resolver.resolve(user.id, now=CREATED + timedelta(days=3))

        assert decision.is_pro is True
        assert decision.trial_days_left == 0

    def test_one_second_after_trial_is_not_pro(self, store, resolver):
        user = store.create_user(email="alice@example.com", now=CREATED)

        decision = resolver.resolve(user.id, now=CREATED + timedelta(days=3, seconds=1))

        assert decision.is_pro is False
        assert decision.trial_days_left == 0

    def test_elapsed_trial_is_not_pro(self, store, resolver):
        user = store.create_user(email="alice@example.com", now=CREATED)

        decision = resolver.resolve(user.id, now=CREATED + timedelta(days=4))

        assert decision.is_pro is False
        assert decision.trial_days_left == 0
        assert decision.reason == "trial_expired"

    def test_trial_days_left_never_negative(self, store):
        user = store.create_user(email="alice@example.com", now=CREATED)

        assert trial_days_left(user, CREATED + timedelta(days=365)) == 0


class TestSubscription:
    def test_active_subscription_is_pro_after_trial(self, store, resolver):
        user = store.create_user(email="bob@example.com", now=CREATED)
        _with_subscription(store, user, "active")

        decision = resolver.resolve(user.id, now=CREATED + timedelta(days=20))

        assert decision.is_pro is True
        assert decision.trial_days_left == 0
        assert decision.reason == "subscription_active"
        assert decision.subscription.status == "active"

    def test_canceled_subscription_after_trial(self, store, resolver):
        user = store.create_user(email="bob@example.com", now=CREATED)
        _with_subscription(store, user, "canceled")

        decision = resolver.resolve(user.id, now=CREATED + timedelta(days=10))

        assert decision.is_pro is False
        assert decision.subscription.status == "canceled"

    def test_past_due_subscription_during_trial_is_pro_via_trial(self, store, resolver):
        user = store.create_user(email="bob@example.com", now=CREATED)
        _with_subscription(store, user, "past_due")

        decision = resolver.resolve(user.id, now=CREATED + timedelta(hours=1))

        assert decision.is_pro is True
        assert decision.reason == "trial_active"

    def test_subscription_without_reference_does_not_grant_pro(self, store, resolver):
        user = store.create_user(email="bob@example.com", now=CREATED)
        store.create_subscription(user.id, "sub_1", "active", CREATED, CREATED + timedelta(days=30))

        decision = resolver.resolve(user.id, now=CREATED + timedelta(days=10))

        assert decision.is_pro is False
        assert decision.subscription.status == "active"

    def test_snapshot_response_shape(self, store, resolver):
        user = store.create_user(email="bob@example.com", now=CREATED)
        _with_subscription(store, user, "active")

        body = resolver.resolve(user.id, now=CREATED).to_response()

        assert body["isPro"] is True
        assert body["trialDaysLeft"] == 3
        assert body["subscriptionData"] == {
            "status": "active",
            "startDate": "2026-03-01T12:00:00+00:00",
            "endDate": "2026-03-31T12:00:00+00:00",
            "trialEnd": "2026-03-04T12:00:00+00:00",
        }


class TestResolver:
    def test_unknown_user_raises(self, resolver):
        with pytest.raises(PrincipalNotFound):
            resolver.resolve(12345)

    def test_resolution_is_idempotent(self, store, resolver):
        user = store.create_user(email="carl@example.com", now=CREATED)
        now = CREATED + timedelta(days=1)

        first = resolver.resolve(user.id, now=now)
        second = resolver.resolve(user.id, now=now)

        assert first == second

    def test_uses_injected_clock(self, store):
        user = store.create_user(email="carl@example.com", now=CREATED)
        resolver = EntitlementResolver(store, clock=lambda: CREATED + timedelta(days=5))

        assert resolver.resolve(user.id).is_pro is False


class TestOverrides:
    def test_default_policy_is_noop(self, store):
        user = store.create_user(email="demo@example.com", now=CREATED)
        resolver = EntitlementResolver(store, override_policy=NoOverridePolicy())

        assert resolver.resolve(user.id, now=CREATED + timedelta(days=9)).is_pro is False

    def test_configured_pro_email(self, store):
        user = store.create_user(email="demo@example.com", now=CREATED)
        policy = ConfiguredOverridePolicy(pro_emails=["DEMO@example.com"])
        resolver = EntitlementResolver(store, override_policy=policy)

        decision = resolver.resolve(user.id, now=CREATED + timedelta(days=9))

        assert decision.is_pro is True
        assert decision.trial_days_left == 0
        assert decision.reason == "override:configured_pro"
        assert policy.is_admin(user) is False

    def test_admin_email_implies_pro(self, store):
        user = store.create_user(email="root@example.com", now=CREATED)
        policy = ConfiguredOverridePolicy(admin_emails=["root@example.com"])
        resolver = EntitlementResolver(store, override_policy=policy)

        assert resolver.resolve(user.id, now=CREATED + timedelta(days=9)).is_pro is True
        assert policy.is_admin(user) is True
