"""Stripe test doubles: signed deliveries and an in-memory gateway."""

import hashlib
import hmac
import json
import time
import uuid
from typing import Any

from saaskit.services.stripe_gateway import StripeGateway, StripeGatewayError

WEBHOOK_SECRET = "whsec_test_secret"


def stripe_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:14]}"


def sign_payload(
    payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None
) -> str:
    """Build a ``Stripe-Signature`` header the way Stripe does."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def build_event(
    event_type: str,
    obj: dict[str, Any],
    *,
    event_id: str | None = None,
    created: int | None = None,
) -> dict[str, Any]:
    return {
        "id": event_id or stripe_id("evt"),
        "object": "event",
        "api_version": "2024-06-20",
        "type": event_type,
        "created": created if created is not None else int(time.time()),
        "livemode": False,
        "data": {"object": obj},
    }


def encode(event: dict[str, Any]) -> bytes:
    return json.dumps(event).encode()


def product_object(product_id: str, name: str = "Pro", active: bool = True) -> dict[str, Any]:
    return {
        "id": product_id,
        "object": "product",
        "name": name,
        "active": active,
        "description": f"{name} plan",
        "metadata": {"tier": name.lower()},
    }


def price_object(
    price_id: str,
    product_id: str,
    unit_amount: int | None = 1500,
    interval: str | None = "month",
    active: bool = True,
) -> dict[str, Any]:
    recurring = (
        {"interval": interval, "interval_count": 1, "trial_period_days": None}
        if interval
        else None
    )
    return {
        "id": price_id,
        "object": "price",
        "product": product_id,
        "active": active,
        "currency": "usd",
        "unit_amount": unit_amount,
        "type": "recurring" if interval else "one_time",
        "recurring": recurring,
        "nickname": None,
        "metadata": {},
    }


def subscription_object(
    subscription_id: str,
    customer_id: str,
    status: str = "active",
    price_id: str | None = None,
) -> dict[str, Any]:
    now = int(time.time())
    items = []
    if price_id:
        items.append(
            {
                "id": stripe_id("si"),
                "object": "subscription_item",
                "price": {"id": price_id, "object": "price"},
                "quantity": 1,
            }
        )
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer_id,
        "status": status,
        "cancel_at_period_end": False,
        "cancel_at": None,
        "canceled_at": now if status == "canceled" else None,
        "ended_at": now if status == "canceled" else None,
        "trial_start": None,
        "trial_end": None,
        "current_period_start": now,
        "current_period_end": now + 30 * 86400,
        "items": {"object": "list", "data": items},
        "metadata": {},
    }


def customer_object(
    customer_id: str, email: str | None = None, user_id: str | None = None
) -> dict[str, Any]:
    metadata = {"user_id": user_id} if user_id else {}
    return {
        "id": customer_id,
        "object": "customer",
        "email": email,
        "name": None,
        "metadata": metadata,
    }


def payment_intent_object(
    intent_id: str, customer_id: str | None = None, amount: int = 4900
) -> dict[str, Any]:
    return {
        "id": intent_id,
        "object": "payment_intent",
        "amount": amount,
        "amount_received": amount,
        "currency": "USD",
        "customer": customer_id,
        "status": "succeeded",
    }


class FakeStripeGateway(StripeGateway):
    """Verifies signatures for real; serves Stripe objects from dictionaries."""

    def __init__(self, webhook_secret: str = WEBHOOK_SECRET) -> None:
        super().__init__("sk_test_fake", webhook_secret)
        self.subscriptions: dict[str, dict[str, Any]] = {}
        self.customers: dict[str, dict[str, Any]] = {}
        self.products: list[dict[str, Any]] = []
        self.prices: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str]] = []

    def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        self.calls.append(("subscription", subscription_id))
        if subscription_id not in self.subscriptions:
            raise StripeGatewayError(
                f"No such subscription: '{subscription_id}'",
                status_code=404,
                code="resource_missing",
            )
        return self.subscriptions[subscription_id]

    def retrieve_customer(self, customer_id: str) -> dict[str, Any]:
        self.calls.append(("customer", customer_id))
        if customer_id not in self.customers:
            raise StripeGatewayError(
                f"No such customer: '{customer_id}'",
                status_code=404,
                code="resource_missing",
            )
        return self.customers[customer_id]

    def list_products(self, active: bool | None = None) -> list[dict[str, Any]]:
        return list(self.products)

    def list_prices(self, active: bool | None = None) -> list[dict[str, Any]]:
        return list(self.prices)
