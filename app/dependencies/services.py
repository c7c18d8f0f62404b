from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from app.core.config import Settings
from app.db import create_db_engine
from app.services.billing import BillingProvider, StripeBillingProvider
from app.services.entitlement import EntitlementResolver
from app.services.identity import IdentityVerifier, JWTIdentityVerifier
from app.services.llm import LanguageModelProvider, OpenAIProvider
from app.services.notion_export import NotionExporter, WorkspaceExporter
from app.services.overrides import EntitlementOverridePolicy, build_override_policy
from app.services.store import RecordStore
from app.services.subscription import SubscriptionService
from app.services.tool_gateway import ToolGateway

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, wired once per application."""

    settings: Settings
    store: RecordStore
    identity: IdentityVerifier
    overrides: EntitlementOverridePolicy
    resolver: EntitlementResolver
    gateway: ToolGateway
    subscriptions: SubscriptionService
    exporter: WorkspaceExporter


def build_services(
    settings: Settings,
    store: RecordStore | None = None,
    identity: IdentityVerifier | None = None,
    llm: LanguageModelProvider | None = None,
    billing: BillingProvider | None = None,
    exporter: WorkspaceExporter | None = None,
    overrides: EntitlementOverridePolicy | None = None,
) -> Services:
    if store is None:
        store = RecordStore(create_db_engine(settings.DATABASE_URL), trial_days=settings.TRIAL_DAYS)
        store.create_schema()

    if billing is None and settings.billing_configured:
        billing = StripeBillingProvider(settings.STRIPE_SECRET_KEY)
    if billing is None:
        logger.warning("billing_unconfigured checkout=disabled")

    overrides = overrides or build_override_policy(settings)

    return Services(
        settings=settings,
        store=store,
        identity=identity
        or JWTIdentityVerifier(
            settings.SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            audience=settings.JWT_AUDIENCE,
        ),
        overrides=overrides,
        resolver=EntitlementResolver(store, override_policy=overrides),
        gateway=ToolGateway(
            store,
            llm or OpenAIProvider(settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL),
        ),
        subscriptions=SubscriptionService(
            store,
            billing,
            price_id=settings.STRIPE_PRICE_ID,
            trial_days=settings.TRIAL_DAYS,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        ),
        exporter=exporter or NotionExporter(api_version=settings.NOTION_API_VERSION),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
