from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import requests

from app.core.errors import BillingUnavailable

logger = logging.getLogger(__name__)

STRIPE_API = "https://api.stripe.com/v1"


class BillingProvider(ABC):

    @abstractmethod
    def create_customer(self, email: str, name: str, metadata: dict[str, str]) -> str:
        """Returns the new customer id."""
        pass

    @abstractmethod
    def create_subscription(self, customer_id: str, price_id: str, trial_days: int) -> dict:
        """
        Returns the provider's subscription object with
        ``latest_invoice.payment_intent`` expanded.
        """
        pass

    @abstractmethod
    def retrieve_subscription(self, subscription_id: str) -> dict:
        """Same shape as create_subscription."""
        pass


class StripeBillingProvider(BillingProvider):
    """
    Stripe REST client.
    Every failure surfaces as BillingUnavailable; nothing is retried here.
    """

    def __init__(self, secret_key: str, timeout: float = 10):
        if not secret_key:
            raise BillingUnavailable("Stripe keys are not configured")
        self.secret_key = secret_key
        self.timeout = timeout

    def create_customer(self, email: str, name: str, metadata: dict[str, str]) -> str:
        data: dict[str, Any] = {"email": email, "name": name}
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = value
        customer = self._request("POST", "/customers", data=data)
        return customer["id"]

    def create_subscription(self, customer_id: str, price_id: str, trial_days: int) -> dict:
        data = {
            "customer": customer_id,
            "items[0][price]": price_id,
            "payment_behavior": "default_incomplete",
            "trial_period_days": trial_days,
            "expand[]": "latest_invoice.payment_intent",
        }
        return self._request("POST", "/subscriptions", data=data)

    def retrieve_subscription(self, subscription_id: str) -> dict:
        return self._request(
            "GET",
            f"/subscriptions/{subscription_id}",
            params={"expand[]": "latest_invoice.payment_intent"},
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        try:
            resp = requests.request(
                method,
                f"{STRIPE_API}{path}",
                auth=(self.secret_key, ""),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.error("stripe_request_failed method=%s path=%s error=%s", method, path, exc)
            raise BillingUnavailable("Billing provider is unreachable") from exc

        if resp.status_code >= 400:
            message = _stripe_error_message(resp)
            logger.error(
                "stripe_request_rejected method=%s path=%s status=%s message=%s",
                method,
                path,
                resp.status_code,
                message,
            )
            raise BillingUnavailable(message)

        return resp.json()


def _stripe_error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"Billing provider error ({resp.status_code})"
    error = body.get("error") or {}
    return error.get("message") or f"Billing provider error ({resp.status_code})"


def payment_intent_secret(subscription: dict) -> str | None:
    invoice = subscription.get("latest_invoice")
    if not isinstance(invoice, dict):
        return None
    intent = invoice.get("payment_intent")
    if not isinstance(intent, dict):
        return None
    return intent.get("client_secret")
