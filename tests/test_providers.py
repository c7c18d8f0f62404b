"""Tests for the identity, billing and language model adapters."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests
from jose import jwt

from app.core.errors import AuthenticationRequired, BillingUnavailable, GenerationFailed
from app.services.billing import StripeBillingProvider, payment_intent_secret
from app.services.identity import JWTIdentityVerifier
from app.services.llm import OpenAIProvider

SECRET = "test-secret"


class TestJWTIdentityVerifier:
    def test_valid_token(self):
        token = jwt.encode(
            {
                "sub": "uid-1",
                "email": "alice@example.com",
                "name": "Alice",
                "firebase": {"sign_in_provider": "google.com"},
            },
            SECRET,
            algorithm="HS256",
        )

        claims = JWTIdentityVerifier(SECRET).verify(token)

        assert claims.subject == "uid-1"
        assert claims.email == "alice@example.com"
        assert claims.name == "Alice"
        assert claims.provider == "google.com"

    def test_wrong_key(self):
        token = jwt.encode({"sub": "uid-1", "email": "a@b.com"}, "other", algorithm="HS256")

        with pytest.raises(AuthenticationRequired):
            JWTIdentityVerifier(SECRET).verify(token)

    def test_missing_email_claim(self):
        token = jwt.encode({"sub": "uid-1"}, SECRET, algorithm="HS256")

        with pytest.raises(AuthenticationRequired):
            JWTIdentityVerifier(SECRET).verify(token)

    def test_audience_checked_when_configured(self):
        token = jwt.encode({"sub": "u", "email": "a@b.com", "aud": "other-app"}, SECRET, algorithm="HS256")

        with pytest.raises(AuthenticationRequired):
            JWTIdentityVerifier(SECRET, audience="lyra").verify(token)

    def test_unconfigured(self):
        with pytest.raises(AuthenticationRequired):
            JWTIdentityVerifier(None).verify("anything")


class TestStripeBillingProvider:
    def test_requires_key(self):
        with pytest.raises(BillingUnavailable):
            StripeBillingProvider("")

    @patch("app.services.billing.requests.request")
    def test_create_subscription_request(self, mock_request):
        mock_request.return_value = MagicMock(status_code=200, json=lambda: {"id": "sub_1"})

        result = StripeBillingProvider("sk_test").create_subscription("cus_1", "price_1", 3)

        assert result == {"id": "sub_1"}
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://api.stripe.com/v1/subscriptions")
        assert kwargs["data"]["trial_period_days"] == 3
        assert kwargs["data"]["payment_behavior"] == "default_incomplete"
        assert kwargs["auth"] == ("sk_test", "")

    @patch("app.services.billing.requests.request")
    def test_error_message_surfaces(self, mock_request):
        mock_request.return_value = MagicMock(
            status_code=402, json=lambda: {"error": {"message": "Your card was declined."}}
        )

        with pytest.raises(BillingUnavailable) as exc_info:
            StripeBillingProvider("sk_test").create_customer("a@b.com", "A", {})

        assert exc_info.value.message == "Your card was declined."

    @patch("app.services.billing.requests.request", side_effect=requests.Timeout("slow"))
    def test_network_error(self, mock_request):
        with pytest.raises(BillingUnavailable):
            StripeBillingProvider("sk_test").retrieve_subscription("sub_1")

    def test_payment_intent_secret(self):
        assert payment_intent_secret({"latest_invoice": {"payment_intent": {"client_secret": "s"}}}) == "s"
        assert payment_intent_secret({"latest_invoice": "in_1"}) is None
        assert payment_intent_secret({}) is None


class TestOpenAIProvider:
    def test_missing_key(self):
        with pytest.raises(GenerationFailed):
            OpenAIProvider(None).complete("prompt", 0.7)

    def test_completion_text(self):
        provider = OpenAIProvider("sk-test", model="gpt-4o")
        client = MagicMock()
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="  Hello  "))]
        )
        provider._client = client

        assert provider.complete("prompt", 0.7) == "Hello"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.7
        assert kwargs["n"] == 1
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    def test_empty_choices(self):
        provider = OpenAIProvider("sk-test")
        client = MagicMock()
        client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        provider._client = client

        with pytest.raises(GenerationFailed):
            provider.complete("prompt", 0.7)
