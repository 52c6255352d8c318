"""Stripe API integration."""

import logging
from collections.abc import Iterable
from typing import Any

import stripe

from saaskit.config import Settings

logger = logging.getLogger(__name__)

STRIPE_BASE_URL = "https://api.stripe.com"
LIST_PAGE_SIZE = 100


class StripeGatewayError(RuntimeError):
    """Stripe answered a request with an error."""

    def __init__(
        self, message: str, status_code: int | None = None, code: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class StripeGateway:
    """Thin wrapper around the Stripe SDK client and its webhook signing scheme.

    Built once per process (see ``saaskit.main.lifespan``) and handed to
    request handlers through ``saaskit.api.deps.get_stripe_gateway``.
    """

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        *,
        api_base: str = STRIPE_BASE_URL,
        api_version: str = "",
        timeout: float = 30.0,
        tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
    ) -> None:
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._api_base = api_base.rstrip("/")
        self._api_version = api_version
        self._timeout = timeout
        self._tolerance = tolerance
        self._client: stripe.StripeClient | None = None

    @classmethod
    def from_settings(cls, s: Settings) -> "StripeGateway":
        return cls(
            s.stripe_secret_key,
            s.stripe_webhook_secret,
            api_base=s.stripe_api_base,
            api_version=s.stripe_api_version,
            timeout=s.stripe_timeout_seconds,
            tolerance=s.stripe_webhook_tolerance,
        )

    def is_configured(self) -> bool:
        return bool(self._secret_key)

    def has_webhook_secret(self) -> bool:
        return bool(self._webhook_secret)

    def _api(self) -> stripe.StripeClient:
        if not self.is_configured():
            raise RuntimeError("Stripe is not configured")
        if self._client is None:
            self._client = stripe.StripeClient(
                self._secret_key,
                stripe_version=self._api_version or None,
                base_addresses={"api": self._api_base},
                http_client=stripe.HTTPXClient(
                    timeout=self._timeout, allow_sync_methods=True
                ),
            )
        return self._client

    @staticmethod
    def _wrap_error(action: str, exc: stripe.StripeError) -> StripeGatewayError:
        message = exc.user_message or str(exc) or f"Stripe {action} failed"
        logger.error("Stripe %s failed: %s", action, message)
        return StripeGatewayError(message, status_code=exc.http_status, code=exc.code)

    @staticmethod
    def _to_dicts(items: Iterable[Any]) -> list[dict[str, Any]]:
        return [item.to_dict() for item in items]

    # ── Objects ──────────────────────────────────────────

    def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        """Fetch the current state of a subscription."""
        api = self._api()
        try:
            subscription = api.v1.subscriptions.retrieve(subscription_id)
        except stripe.StripeError as exc:
            raise self._wrap_error(f"subscription {subscription_id}", exc) from exc
        return subscription.to_dict()

    def retrieve_customer(self, customer_id: str) -> dict[str, Any]:
        api = self._api()
        try:
            customer = api.v1.customers.retrieve(customer_id)
        except stripe.StripeError as exc:
            raise self._wrap_error(f"customer {customer_id}", exc) from exc
        return customer.to_dict()

    def list_products(self, active: bool | None = None) -> list[dict[str, Any]]:
        """Every product in the account, following pagination."""
        api = self._api()
        params: dict[str, Any] = {"limit": LIST_PAGE_SIZE}
        if active is not None:
            params["active"] = active
        try:
            return self._to_dicts(api.v1.products.list(params).auto_paging_iter())
        except stripe.StripeError as exc:
            raise self._wrap_error("product list", exc) from exc

    def list_prices(self, active: bool | None = None) -> list[dict[str, Any]]:
        api = self._api()
        params: dict[str, Any] = {"limit": LIST_PAGE_SIZE}
        if active is not None:
            params["active"] = active
        try:
            return self._to_dicts(api.v1.prices.list(params).auto_paging_iter())
        except stripe.StripeError as exc:
            raise self._wrap_error("price list", exc) from exc

    # ── Webhook ──────────────────────────────────────────

    def verify_webhook_signature(self, payload: bytes, signature: str) -> None:
        """Check a ``Stripe-Signature`` header against the raw request body.

        Raises ``stripe.SignatureVerificationError`` on a bad signature or a
        timestamp outside the tolerance window.
        """
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            signature,
            self._webhook_secret,
            tolerance=self._tolerance,
        )
