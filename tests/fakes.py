"""In-memory stand-ins for the external collaborators."""

from typing import Any, Dict, List, Optional

from app.core.errors import AuthenticationRequired, BillingUnavailable, ExportFailed
from app.services.billing import BillingProvider
from app.services.identity import IdentityClaims, IdentityVerifier
from app.services.llm import LanguageModelProvider
from app.services.notion_export import WorkspaceExporter

PERIOD_START = 1767225600  # 2026-01-01T00:00:00Z
PERIOD_END = 1769904000  # 2026-02-01T00:00:00Z

WEBHOOK_SECRET = "whsec_test"
ADMIN_EMAIL = "admin@lyra.test"


class FakeLLM(LanguageModelProvider):
    def __init__(self, text: str = "Generated text"):
        self.text = text
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    def complete(self, prompt: str, temperature: float) -> str:
        self.calls.append({"prompt": prompt, "temperature": temperature})
        if self.error is not None:
            raise self.error
        return self.text


class FakeIdentityVerifier(IdentityVerifier):
    """The bearer token is the email itself; "bad" never verifies."""

    def __init__(self):
        self.names: Dict[str, str] = {}

    def verify(self, token: str) -> IdentityClaims:
        if not token or token == "bad" or "@" not in token:
            raise AuthenticationRequired("Invalid token")
        return IdentityClaims(
            subject=f"uid-{token}",
            email=token,
            name=self.names.get(token),
            provider="google.com",
        )


class FakeBilling(BillingProvider):
    def __init__(self):
        self.customers: List[Dict[str, Any]] = []
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.created: List[Dict[str, Any]] = []
        self.fail = False
        # Called with the remote subscription before create_subscription returns.
        self.on_create = None

    def create_customer(self, email: str, name: str, metadata: Dict[str, str]) -> str:
        if self.fail:
            raise BillingUnavailable("card_declined")
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers.append({"id": customer_id, "email": email, "name": name, "metadata": metadata})
        return customer_id

    def create_subscription(self, customer_id: str, price_id: str, trial_days: int) -> dict:
        if self.fail:
            raise BillingUnavailable("card_declined")
        subscription_id = f"sub_{len(self.subscriptions) + 1}"
        remote = {
            "id": subscription_id,
            "customer": customer_id,
            "status": "incomplete",
            "current_period_start": PERIOD_START,
            "current_period_end": PERIOD_END,
            "trial_end": None,
            "cancel_at_period_end": False,
            "latest_invoice": {"payment_intent": {"client_secret": f"pi_secret_{subscription_id}"}},
        }
        self.subscriptions[subscription_id] = remote
        self.created.append({"customer": customer_id, "price": price_id, "trial_days": trial_days})
        if self.on_create is not None:
            self.on_create(remote)
        return remote

    def retrieve_subscription(self, subscription_id: str) -> dict:
        if subscription_id not in self.subscriptions:
            raise BillingUnavailable(f"No such subscription: {subscription_id}")
        return self.subscriptions[subscription_id]


class FakeExporter(WorkspaceExporter):
    def __init__(self, url: str = "https://notion.so/page123"):
        self.url = url
        self.fail = False
        self.calls: List[Dict[str, Any]] = []

    def export(
        self,
        token: str,
        parent_id: str,
        title: str,
        content: str,
        tool_type: str,
        parent_type: str = "database",
    ) -> str:
        self.calls.append({"token": token, "parent_id": parent_id, "title": title, "tool_type": tool_type})
        if self.fail:
            raise ExportFailed("Could not find database")
        return self.url


def auth(email: str) -> dict:
    return {"Authorization": f"Bearer {email}"}
