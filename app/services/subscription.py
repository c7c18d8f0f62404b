from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, NamedTuple

from fastapi import Request

from app.core.errors import (
    AuthenticationRequired,
    BillingUnavailable,
    DuplicateRecord,
    InvalidInput,
    PrincipalNotFound,
)
from app.core.features import PLAN_PRO, SubscriptionStatus, normalize_subscription_status
from app.models.subscription import Subscription
from app.models.user import User
from app.services.audit_logger import create_audit_log
from app.services.billing import BillingProvider, payment_intent_secret
from app.services.store import BILLING_EVENT_FAILED, RecordStore, as_utc, utcnow

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
}

EVENT_APPLIED = "APPLIED"
EVENT_IGNORED = "IGNORED"
EVENT_IGNORED_UNKNOWN_CUSTOMER = "IGNORED_UNKNOWN_CUSTOMER"
EVENT_IGNORED_OUT_OF_ORDER = "IGNORED_OUT_OF_ORDER"


class EventOutcome(NamedTuple):
    status: str
    user_id: int | None


class SubscriptionService:
    def __init__(
        self,
        store: RecordStore,
        billing: BillingProvider | None,
        price_id: str | None,
        trial_days: int = 3,
        webhook_secret: str | None = None,
    ):
        self.store = store
        self.billing = billing
        self.price_id = price_id
        self.trial_days = trial_days
        self.webhook_secret = webhook_secret

    # ---------------- CHECKOUT ----------------
    def create_subscription(self, user_id: int, request: Request | None = None) -> dict[str, Any]:
        if self.billing is None or not self.price_id:
            raise BillingUnavailable("Stripe keys are not configured")

        user = self.store.get_user(user_id)
        if user is None:
            raise PrincipalNotFound(user_id)

        existing = self._reusable_checkout(user)
        if existing is not None:
            return existing

        customer_id = user.stripe_customer_id
        if not customer_id:
            customer_id = self.billing.create_customer(
                email=user.email,
                name=user.display_name or user.username,
                metadata={"userId": str(user.id)},
            )
            self.store.update_user_billing(user.id, stripe_customer_id=customer_id)

        remote = self.billing.create_subscription(
            customer_id=customer_id,
            price_id=self.price_id,
            trial_days=self.trial_days,
        )
        subscription_id = remote.get("id")
        if not subscription_id:
            raise BillingUnavailable("Billing provider returned no subscription id")

        self.store.update_user_billing(
            user.id,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
        )
        status = self._store_checkout_subscription(user.id, subscription_id, remote)

        create_audit_log(
            self.store,
            event_type="SUBSCRIPTION_CREATED",
            event_description=f"subscription={subscription_id} status={status}",
            request=request,
            user_id=user.id,
        )
        logger.info(
            "subscription_created user_id=%s subscription_id=%s status=%s",
            user.id,
            subscription_id,
            status,
        )
        return {
            "subscriptionId": subscription_id,
            "clientSecret": payment_intent_secret(remote),
        }

    def _store_checkout_subscription(self, user_id: int, subscription_id: str, remote: dict[str, Any]) -> str:
        fields = subscription_fields(remote)
        try:
            self.store.create_subscription(user_id=user_id, stripe_subscription_id=subscription_id, **fields)
            return fields["status"]
        except DuplicateRecord:
            pass

        # The created webhook can land before checkout returns.
        existing = self.store.get_subscription_by_external_id(subscription_id)
        if existing is None:
            raise BillingUnavailable(f"Subscription {subscription_id} could not be stored")
        if existing.last_event_at is None:
            existing = self.store.update_subscription(existing.id, **fields)
        logger.info(
            "subscription_already_stored user_id=%s subscription_id=%s status=%s",
            user_id,
            subscription_id,
            existing.status,
        )
        return existing.status

    def _reusable_checkout(self, user: User) -> dict[str, Any] | None:
        if not user.stripe_subscription_id:
            return None
        try:
            remote = self.billing.retrieve_subscription(user.stripe_subscription_id)
        except BillingUnavailable as exc:
            # A stale reference should not block starting a fresh checkout.
            logger.warning(
                "subscription_lookup_failed user_id=%s subscription_id=%s error=%s",
                user.id,
                user.stripe_subscription_id,
                exc.message,
            )
            return None

        if remote.get("status") == "canceled":
            return None
        secret = payment_intent_secret(remote)
        if not secret:
            return None
        return {"subscriptionId": remote.get("id"), "clientSecret": secret}

    # ---------------- WEBHOOKS ----------------
    def verify_signature(self, raw_body: bytes, signature_header: str | None, now: float | None = None) -> None:
        if not self.webhook_secret:
            raise BillingUnavailable("Stripe webhook secret not configured")
        if not signature_header:
            raise AuthenticationRequired("Invalid webhook signature")

        timestamp = None
        signatures = []
        for part in signature_header.split(","):
            key, _, value = part.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1":
                signatures.append(value)

        if not timestamp or not signatures:
            raise AuthenticationRequired("Invalid webhook signature")
        try:
            signed_at = int(timestamp)
        except ValueError:
            raise AuthenticationRequired("Invalid webhook signature")

        current = time.time() if now is None else now
        if abs(current - signed_at) > SIGNATURE_TOLERANCE_SECONDS:
            raise AuthenticationRequired("Webhook signature expired")

        signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
        expected = hmac.new(
            self.webhook_secret.encode("utf-8"), signed_payload, hashlib.sha256
        ).hexdigest()
        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            raise AuthenticationRequired("Invalid webhook signature")

    def handle_event(self, event: dict[str, Any], request: Request | None = None) -> dict[str, Any]:
        event_id = str(event.get("id") or "").strip()
        event_type = str(event.get("type") or "").strip()
        if not event_id or not event_type:
            raise InvalidInput("event id and type are required", fields=["id", "type"])

        try:
            self.store.record_billing_event(
                event_id=event_id,
                event_type=event_type,
                payload=json.dumps(event, default=str)[:20000],
            )
        except DuplicateRecord:
            logger.info("billing_event_duplicate event_id=%s type=%s", event_id, event_type)
            return {"status": "ok", "idempotent": True, "event_id": event_id}

        if event_type not in SUBSCRIPTION_EVENTS:
            self.store.update_billing_event(event_id, EVENT_IGNORED)
            return {"status": "ok", "idempotent": False, "event_id": event_id, "applied": False}

        remote = (event.get("data") or {}).get("object") or {}
        try:
            outcome = self.apply_subscription_update(
                remote,
                event_type,
                event_at=_parse_datetime(event.get("created")),
                request=request,
            )
            self.store.update_billing_event(event_id, outcome.status, user_id=outcome.user_id)
        except Exception as exc:
            logger.warning(
                "billing_event_failed event_id=%s type=%s error=%s", event_id, event_type, exc
            )
            self._mark_failed(event_id)
            raise

        return {
            "status": "ok",
            "idempotent": False,
            "event_id": event_id,
            "applied": outcome.status == EVENT_APPLIED,
            "processing_status": outcome.status,
        }

    def _mark_failed(self, event_id: str) -> None:
        # A FAILED row is reclaimed when the provider retries the delivery.
        try:
            self.store.update_billing_event(event_id, BILLING_EVENT_FAILED)
        except Exception:
            logger.exception("billing_event_mark_failed event_id=%s", event_id)

    def apply_subscription_update(
        self,
        remote: dict[str, Any],
        event_type: str,
        event_at: datetime | None = None,
        request: Request | None = None,
    ) -> EventOutcome:
        subscription_id = remote.get("id")
        if not subscription_id:
            raise InvalidInput("subscription id is required", fields=["data.object.id"])

        fields = subscription_fields(remote)
        if event_type == "customer.subscription.deleted":
            fields["status"] = SubscriptionStatus.CANCELED.value

        local = self.store.get_subscription_by_external_id(subscription_id)
        if local is not None:
            if is_out_of_order_event(local, event_at):
                logger.info(
                    "billing_event_out_of_order subscription_id=%s event_at=%s last_event_at=%s",
                    subscription_id,
                    event_at.isoformat(),
                    as_utc(local.last_event_at).isoformat(),
                )
                return EventOutcome(EVENT_IGNORED_OUT_OF_ORDER, local.user_id)
            old_status = local.status
            if event_at is not None:
                fields["last_event_at"] = event_at
            self.store.update_subscription(local.id, **fields)
            user_id = local.user_id
        else:
            customer_id = remote.get("customer")
            owner = self.store.get_user_by_stripe_customer_id(customer_id) if customer_id else None
            if owner is None:
                logger.warning(
                    "billing_event_unknown_customer subscription_id=%s customer=%s",
                    subscription_id,
                    customer_id,
                )
                return EventOutcome(EVENT_IGNORED_UNKNOWN_CUSTOMER, None)
            old_status = None
            self.store.create_subscription(
                user_id=owner.id,
                stripe_subscription_id=subscription_id,
                last_event_at=event_at,
                **fields,
            )
            user_id = owner.id

        self.store.update_user_billing(user_id, stripe_subscription_id=subscription_id)

        description = (
            f"event={event_type} subscription={subscription_id} "
            f"status:{old_status}->{fields['status']} "
            f"period_end:{fields['current_period_end'].isoformat()} "
            f"cancel_at_period_end:{fields['cancel_at_period_end']}"
        )
        create_audit_log(
            self.store,
            event_type="SUBSCRIPTION_UPDATED",
            event_description=description,
            request=request,
            user_id=user_id,
        )
        logger.info("subscription_event user_id=%s %s", user_id, description)
        return EventOutcome(EVENT_APPLIED, user_id)


def is_out_of_order_event(subscription: Subscription, incoming_event_at: datetime | None) -> bool:
    if incoming_event_at is None:
        return False

    last_seen = as_utc(subscription.last_event_at)
    if last_seen is None:
        return False

    return as_utc(incoming_event_at) < last_seen


def subscription_fields(remote: dict[str, Any]) -> dict[str, Any]:
    now = utcnow()
    # Newer Stripe API versions move the period onto the subscription items.
    items = ((remote.get("items") or {}).get("data") or [{}])[0] or {}
    period_start = _parse_datetime(
        remote.get("current_period_start") or items.get("current_period_start")
    )
    period_end = _parse_datetime(
        remote.get("current_period_end") or items.get("current_period_end")
    )
    return {
        "status": normalize_subscription_status(remote.get("status")).value,
        "plan": PLAN_PRO,
        "current_period_start": period_start or now,
        "current_period_end": period_end or period_start or now,
        "trial_end_date": _parse_datetime(remote.get("trial_end")),
        "cancel_at_period_end": bool(remote.get("cancel_at_period_end", False)),
    }


def _parse_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        epoch = float(value)
        if epoch > 10_000_000_000:
            epoch = epoch / 1000.0
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        return _parse_datetime(int(text))
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
