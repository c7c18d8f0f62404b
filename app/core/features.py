from __future__ import annotations

from enum import Enum


class ToolType(str, Enum):
    PROPOSAL = "proposal"
    EMAIL = "email"
    PRICING = "pricing"
    CONTRACT = "contract"
    BRIEF = "brief"
    ONBOARDING = "onboarding"


class HistoryAction(str, Enum):
    GENERATE = "generate"
    EXPORT = "export"


class ExportFormat(str, Enum):
    PDF = "PDF"
    NOTION = "Notion"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    INCOMPLETE = "incomplete"


class Feature(str, Enum):
    NOTION_EXPORT = "NOTION_EXPORT"
    PRO_TOOL = "PRO_TOOL"


PLAN_FREE = "free"
PLAN_PRO = "pro"

DEFAULT_TRIAL_DAYS = 3
GENERATION_TEMPERATURE = 0.7


# Billing provider statuses collapse onto the four stored statuses. Only
# "active" grants Pro; a provider-side trial has not been paid for yet.
BILLING_STATUS_ALIASES = {
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "cancelled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "incomplete": SubscriptionStatus.INCOMPLETE,
    "trialing": SubscriptionStatus.INCOMPLETE,
    "paused": SubscriptionStatus.INCOMPLETE,
}


FEATURE_BENEFITS: dict[Feature, list[str]] = {
    Feature.NOTION_EXPORT: [
        "Export any generated document straight to Notion",
        "Keep proposals and briefs next to your project notes",
    ],
    Feature.PRO_TOOL: [
        "Unlimited access to every Lyra tool",
        "Priority generation",
    ],
}


def normalize_subscription_status(raw_status: str | None) -> SubscriptionStatus:
    if not raw_status:
        return SubscriptionStatus.INCOMPLETE
    normalized = str(raw_status).strip().lower()
    return BILLING_STATUS_ALIASES.get(normalized, SubscriptionStatus.INCOMPLETE)


def parse_tool_type(value: ToolType | str) -> ToolType:
    if isinstance(value, ToolType):
        return value
    return ToolType(str(value).strip().lower())


def parse_csv(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]
