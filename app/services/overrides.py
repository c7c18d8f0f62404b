from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict


class EntitlementOverride(BaseModel):
    model_config = ConfigDict(frozen=True)

    # None leaves the Pro computation to the resolver.
    is_pro: bool | None = None
    is_admin: bool = False
    reason: str


class EntitlementOverridePolicy(ABC):
    """Consulted by the resolver before the billing/trial computation."""

    @abstractmethod
    def override_for(self, user: Any) -> EntitlementOverride | None:
        pass

    def is_admin(self, user: Any) -> bool:
        override = self.override_for(user)
        return bool(override and override.is_admin)


class NoOverridePolicy(EntitlementOverridePolicy):
    def override_for(self, user: Any) -> EntitlementOverride | None:
        return None


class ConfiguredOverridePolicy(EntitlementOverridePolicy):
    """
    Email based overrides taken from configuration.

    Admin emails imply Pro. Matching is case-insensitive.
    """

    def __init__(self, pro_emails: Iterable[str] = (), admin_emails: Iterable[str] = ()):
        self.pro_emails = {email.strip().lower() for email in pro_emails if email.strip()}
        self.admin_emails = {email.strip().lower() for email in admin_emails if email.strip()}

    def override_for(self, user: Any) -> EntitlementOverride | None:
        email = (getattr(user, "email", None) or "").strip().lower()
        if not email:
            return None
        if email in self.admin_emails:
            return EntitlementOverride(is_pro=True, is_admin=True, reason="configured_admin")
        if email in self.pro_emails:
            return EntitlementOverride(is_pro=True, reason="configured_pro")
        return None


def build_override_policy(settings: Any) -> EntitlementOverridePolicy:
    pro_emails = settings.pro_override_emails
    admin_emails = settings.admin_emails
    if not pro_emails and not admin_emails:
        return NoOverridePolicy()
    return ConfiguredOverridePolicy(pro_emails=pro_emails, admin_emails=admin_emails)
