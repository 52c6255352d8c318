from saaskit.services.billing.catalog import sync_catalog
from saaskit.services.billing.customers import Customers, customers
from saaskit.services.billing.payments import Payments, payments
from saaskit.services.billing.prices import Prices, prices
from saaskit.services.billing.products import Products, products
from saaskit.services.billing.subscriptions import (
    Subscriptions,
    derive_role,
    subscriptions,
)
from saaskit.services.billing.tombstones import Tombstones, tombstones
from saaskit.services.billing.webhooks import (
    EVENT_ROUTES,
    RELEVANT_EVENTS,
    WebhookEvents,
    construct_event,
    dispatch_event,
    webhook_events,
)

__all__ = [
    "Customers",
    "EVENT_ROUTES",
    "Payments",
    "Prices",
    "Products",
    "RELEVANT_EVENTS",
    "Subscriptions",
    "Tombstones",
    "WebhookEvents",
    "construct_event",
    "customers",
    "derive_role",
    "dispatch_event",
    "payments",
    "prices",
    "products",
    "subscriptions",
    "sync_catalog",
    "tombstones",
    "webhook_events",
]
