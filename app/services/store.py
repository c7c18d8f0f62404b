"""Record store for users, subscriptions, tool history and billing events.

A ``RecordStore`` is built explicitly from an engine and handed to the
services that need it. Reads and writes go through short-lived sessions;
objects returned to callers are detached snapshots.
"""

from __future__ import annotations

import logging
import re
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import DuplicateRecord, InvalidInput, PrincipalNotFound, RecordNotFound
from app.core.features import DEFAULT_TRIAL_DAYS
from app.db import init_db
from app.models.audit_log import AuditLog
from app.models.billing_event import BillingEvent
from app.models.subscription import Subscription
from app.models.tool_history import ToolHistory
from app.models.user import User

logger = logging.getLogger(__name__)

_USER_MUTABLE_FIELDS = {
    "display_name",
    "photo_url",
    "stripe_customer_id",
    "stripe_subscription_id",
}

_SUBSCRIPTION_MUTABLE_FIELDS = {
    "status",
    "plan",
    "current_period_start",
    "current_period_end",
    "trial_end_date",
    "cancel_at_period_end",
    "last_event_at",
}

BILLING_EVENT_FAILED = "FAILED"

_USERNAME_CLEANUP = re.compile(r"[^a-z0-9._-]+")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def username_from_email(email: str) -> str:
    local_part = normalize_email(email).split("@", 1)[0]
    return _USERNAME_CLEANUP.sub("", local_part) or "user"


class RecordStore:
    def __init__(self, engine: Engine, trial_days: int = DEFAULT_TRIAL_DAYS):
        self.engine = engine
        self.trial_days = trial_days
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        # Serializes sessions within this process; unique constraints cover
        # writers in other processes.
        self._lock = threading.RLock()

    def create_schema(self) -> None:
        init_db(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._lock:
            db = self._sessions()
            try:
                yield db
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    # ---------------- USERS ----------------
    def get_user(self, user_id: int) -> User | None:
        with self.session() as db:
            return db.get(User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        with self.session() as db:
            return _user_by_email(db, email)

    def get_user_by_username(self, username: str) -> User | None:
        with self.session() as db:
            return (
                db.query(User)
                .filter(func.lower(User.username) == (username or "").strip().lower())
                .first()
            )

    def get_user_by_provider_id(self, provider_id: str) -> User | None:
        with self.session() as db:
            return db.query(User).filter(User.provider_id == provider_id).first()

    def get_user_by_stripe_customer_id(self, customer_id: str) -> User | None:
        with self.session() as db:
            return db.query(User).filter(User.stripe_customer_id == customer_id).first()

    def create_user(
        self,
        email: str,
        username: str | None = None,
        display_name: str | None = None,
        photo_url: str | None = None,
        auth_provider: str = "email",
        provider_id: str | None = None,
        password_hash: str | None = None,
        now: datetime | None = None,
    ) -> User:
        normalized = normalize_email(email)
        if not normalized:
            raise InvalidInput.missing(["email"])

        with self.session() as db:
            if _user_by_email(db, normalized) is not None:
                raise DuplicateRecord(f"User with email {normalized} already exists")
            if username is not None:
                username = username.strip().lower()
                if db.query(User).filter(func.lower(User.username) == username).first():
                    raise DuplicateRecord(f"Username {username} is already taken")
            else:
                username = _allocate_username(db, username_from_email(normalized))

            created_at = now or utcnow()
            user = User(
                email=normalized,
                username=username,
                display_name=display_name or username,
                photo_url=photo_url or None,
                auth_provider=auth_provider or "email",
                provider_id=provider_id,
                password_hash=password_hash,
                trial_ends_at=created_at + timedelta(days=self.trial_days),
                created_at=created_at,
            )
            db.add(user)
            try:
                db.flush()
            except IntegrityError as exc:
                raise DuplicateRecord(f"User with email {normalized} already exists") from exc
            return user

    def find_or_create_user(
        self,
        email: str,
        display_name: str | None = None,
        photo_url: str | None = None,
        auth_provider: str = "email",
        provider_id: str | None = None,
        now: datetime | None = None,
    ) -> tuple[User, bool]:
        """
        Return the user owning ``email``, creating it on first sight.

        The lookup and the insert run under the store lock, so concurrent
        first requests for one email produce a single user. A unique violation
        from another process falls back to reading the winner's row.

        Returns:
            (user, created)
        """
        with self._lock:
            existing = self.get_user_by_email(email)
            if existing is not None:
                return existing, False
            try:
                user = self.create_user(
                    email=email,
                    display_name=display_name,
                    photo_url=photo_url,
                    auth_provider=auth_provider,
                    provider_id=provider_id,
                    now=now,
                )
            except DuplicateRecord:
                winner = self.get_user_by_email(email)
                if winner is None:
                    raise
                return winner, False
            logger.info("user_created user_id=%s provider=%s", user.id, user.auth_provider)
            return user, True

    def update_user(self, user_id: int, **fields: Any) -> User:
        unknown = set(fields) - _USER_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")
        with self.session() as db:
            user = db.get(User, user_id)
            if user is None:
                raise PrincipalNotFound(user_id)
            for key, value in fields.items():
                setattr(user, key, value)
            db.add(user)
            return user

    def update_user_billing(
        self,
        user_id: int,
        stripe_customer_id: str | None = None,
        stripe_subscription_id: str | None = None,
    ) -> User:
        fields = {}
        if stripe_customer_id is not None:
            fields["stripe_customer_id"] = stripe_customer_id
        if stripe_subscription_id is not None:
            fields["stripe_subscription_id"] = stripe_subscription_id
        return self.update_user(user_id, **fields)

    def count_users(self) -> int:
        with self.session() as db:
            return db.query(func.count(User.id)).scalar() or 0

    # ---------------- SUBSCRIPTIONS ----------------
    def get_subscription(self, subscription_id: int) -> Subscription | None:
        with self.session() as db:
            return db.get(Subscription, subscription_id)

    def get_subscription_for_user(self, user_id: int) -> Subscription | None:
        """First subscription owned by the user, in creation order."""
        with self.session() as db:
            return (
                db.query(Subscription)
                .filter(Subscription.user_id == user_id)
                .order_by(Subscription.id.asc())
                .first()
            )

    def get_subscription_by_external_id(self, stripe_subscription_id: str) -> Subscription | None:
        with self.session() as db:
            return (
                db.query(Subscription)
                .filter(Subscription.stripe_subscription_id == stripe_subscription_id)
                .first()
            )

    def create_subscription(
        self,
        user_id: int,
        stripe_subscription_id: str,
        status: str,
        current_period_start: datetime,
        current_period_end: datetime,
        plan: str = "pro",
        trial_end_date: datetime | None = None,
        cancel_at_period_end: bool = False,
        last_event_at: datetime | None = None,
        now: datetime | None = None,
    ) -> Subscription:
        with self.session() as db:
            if db.get(User, user_id) is None:
                raise PrincipalNotFound(user_id)
            subscription = Subscription(
                user_id=user_id,
                stripe_subscription_id=stripe_subscription_id,
                status=status,
                plan=plan,
                current_period_start=current_period_start,
                current_period_end=current_period_end,
                trial_end_date=trial_end_date,
                cancel_at_period_end=bool(cancel_at_period_end),
                last_event_at=last_event_at,
                created_at=now or utcnow(),
            )
            db.add(subscription)
            try:
                db.flush()
            except IntegrityError as exc:
                raise DuplicateRecord(
                    f"Subscription {stripe_subscription_id} already exists"
                ) from exc
            return subscription

    def update_subscription(self, subscription_id: int, **fields: Any) -> Subscription:
        unknown = set(fields) - _SUBSCRIPTION_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update subscription fields: {', '.join(sorted(unknown))}")
        with self.session() as db:
            subscription = db.get(Subscription, subscription_id)
            if subscription is None:
                raise RecordNotFound(f"Subscription with id {subscription_id} not found")
            for key, value in fields.items():
                setattr(subscription, key, value)
            db.add(subscription)
            return subscription

    def count_subscriptions_by_status(self) -> dict[str, int]:
        with self.session() as db:
            rows = (
                db.query(Subscription.status, func.count(Subscription.id))
                .group_by(Subscription.status)
                .all()
            )
            return {status: count for status, count in rows}

    # ---------------- TOOL HISTORY ----------------
    def create_history(
        self,
        user_id: int,
        tool_type: str,
        input: str,
        output: str = "",
        action: str = "generate",
        format: str | None = None,
        generation_time: int | None = None,
        metadata: str | None = None,
        now: datetime | None = None,
    ) -> ToolHistory:
        with self.session() as db:
            record = ToolHistory(
                user_id=user_id,
                tool_type=tool_type,
                action=action,
                format=format,
                input=input,
                output=output,
                generation_time=generation_time,
                metadata_json=metadata,
                created_at=now or utcnow(),
            )
            db.add(record)
            db.flush()
            return record

    def list_history(self, user_id: int, tool_type: str | None = None) -> list[ToolHistory]:
        """History owned by the user, newest first, optionally for one tool."""
        with self.session() as db:
            query = db.query(ToolHistory).filter(ToolHistory.user_id == user_id)
            if tool_type:
                query = query.filter(ToolHistory.tool_type == tool_type)
            return query.order_by(ToolHistory.created_at.desc(), ToolHistory.id.desc()).all()

    def get_history(self, user_id: int, history_id: int) -> ToolHistory:
        with self.session() as db:
            record = (
                db.query(ToolHistory)
                .filter(ToolHistory.id == history_id, ToolHistory.user_id == user_id)
                .first()
            )
            if record is None:
                raise RecordNotFound("History not found")
            return record

    def count_history(self) -> int:
        with self.session() as db:
            return db.query(func.count(ToolHistory.id)).scalar() or 0

    def count_generations_by_tool(self) -> dict[str, int]:
        with self.session() as db:
            rows = (
                db.query(ToolHistory.tool_type, func.count(ToolHistory.id))
                .filter(ToolHistory.action == "generate")
                .group_by(ToolHistory.tool_type)
                .all()
            )
            return {tool_type: count for tool_type, count in rows}

    # ---------------- BILLING EVENTS / AUDIT ----------------
    def record_billing_event(
        self,
        event_id: str,
        event_type: str,
        payload: str,
        user_id: int | None = None,
        processing_status: str = "RECEIVED",
    ) -> BillingEvent:
        """
        Claim ``event_id`` for processing.

        An event whose earlier attempt ended FAILED is reclaimed so a provider
        retry gets applied; any other existing row is a duplicate.
        """
        with self.session() as db:
            existing = db.query(BillingEvent).filter(BillingEvent.event_id == event_id).first()
            if existing is not None:
                if existing.processing_status != BILLING_EVENT_FAILED:
                    raise DuplicateRecord(f"Billing event {event_id} already recorded")
                existing.processing_status = processing_status
                existing.payload = payload
                db.add(existing)
                return existing

            event = BillingEvent(
                event_id=event_id,
                user_id=user_id,
                event_type=event_type,
                processing_status=processing_status,
                payload=payload,
                created_at=utcnow(),
            )
            db.add(event)
            try:
                db.flush()
            except IntegrityError as exc:
                raise DuplicateRecord(f"Billing event {event_id} already recorded") from exc
            return event

    def get_billing_event(self, event_id: str) -> BillingEvent | None:
        with self.session() as db:
            return db.query(BillingEvent).filter(BillingEvent.event_id == event_id).first()

    def update_billing_event(
        self, event_id: str, processing_status: str, user_id: int | None = None
    ) -> None:
        with self.session() as db:
            event = db.query(BillingEvent).filter(BillingEvent.event_id == event_id).first()
            if event is None:
                raise RecordNotFound(f"Billing event {event_id} not found")
            event.processing_status = processing_status
            if user_id is not None:
                event.user_id = user_id
            db.add(event)

    def add_audit_log(
        self,
        event_type: str,
        event_description: str,
        user_id: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        with self.session() as db:
            log = AuditLog(
                user_id=user_id,
                event_type=event_type,
                event_description=event_description,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=utcnow(),
            )
            db.add(log)
            db.flush()
            return log

    def list_audit_logs(self, user_id: int | None = None) -> list[AuditLog]:
        with self.session() as db:
            query = db.query(AuditLog)
            if user_id is not None:
                query = query.filter(AuditLog.user_id == user_id)
            return query.order_by(AuditLog.id.desc()).all()


def _user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == normalize_email(email)).first()


def _allocate_username(db: Session, base: str) -> str:
    candidate = base
    suffix = 2
    while db.query(User.id).filter(func.lower(User.username) == candidate).first():
        candidate = f"{base}{suffix}"
        suffix += 1
    return candidate
