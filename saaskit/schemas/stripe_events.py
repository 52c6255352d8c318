"""Typed views of the Stripe objects the webhook handlers consume.

Stripe sends far more fields than these. Extra keys are ignored; missing or
mistyped required keys fail validation.
"""
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _expandable_id(value: Any) -> Any:
    """Stripe references may arrive as an id or as the expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value


ExpandableId = Annotated[str, BeforeValidator(_expandable_id)]


class StripeModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ── Event envelope ───────────────────────────────────────


class StripeEventData(StripeModel):
    object: dict[str, Any]


class StripeEvent(StripeModel):
    id: str
    type: str
    created: datetime
    livemode: bool = False
    data: StripeEventData


# ── Catalog ──────────────────────────────────────────────


class StripeProduct(StripeModel):
    id: str
    name: str
    active: bool = True
    description: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class StripeDeletedObject(StripeModel):
    id: str


class StripeRecurring(StripeModel):
    interval: Literal["day", "week", "month", "year"]
    interval_count: int = 1
    trial_period_days: int | None = None


class StripePrice(StripeModel):
    id: str
    product: ExpandableId
    active: bool = True
    currency: str = Field(min_length=3, max_length=3)
    unit_amount: int | None = None
    type: Literal["one_time", "recurring"]
    recurring: StripeRecurring | None = None
    nickname: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


# ── Subscriptions & checkout ─────────────────────────────


class StripeSubscriptionRef(StripeModel):
    id: str
    customer: ExpandableId


class StripeCheckoutSession(StripeModel):
    id: str
    mode: Literal["payment", "setup", "subscription"]
    customer: ExpandableId | None = None
    subscription: ExpandableId | None = None


class StripePriceRef(StripeModel):
    id: str
    product: ExpandableId | None = None


class StripeSubscriptionItem(StripeModel):
    id: str
    price: StripePriceRef
    quantity: int | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None


class StripeSubscriptionItems(StripeModel):
    data: list[StripeSubscriptionItem] = Field(default_factory=list)


class StripeSubscription(StripeModel):
    """Authoritative subscription as returned by ``GET /v1/subscriptions/{id}``."""

    id: str
    customer: ExpandableId
    status: Literal[
        "trialing",
        "active",
        "incomplete",
        "incomplete_expired",
        "past_due",
        "canceled",
        "unpaid",
        "paused",
    ]
    cancel_at_period_end: bool = False
    cancel_at: datetime | None = None
    canceled_at: datetime | None = None
    ended_at: datetime | None = None
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    items: StripeSubscriptionItems = Field(default_factory=StripeSubscriptionItems)
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def primary_item(self) -> StripeSubscriptionItem | None:
        return self.items.data[0] if self.items.data else None

    @property
    def period_bounds(self) -> tuple[datetime | None, datetime | None]:
        # Newer API versions report the period on the subscription item.
        start, end = self.current_period_start, self.current_period_end
        item = self.primary_item
        if item is not None:
            start = start or item.current_period_start
            end = end or item.current_period_end
        return start, end


# ── Customers & payments ─────────────────────────────────


class StripeCustomer(StripeModel):
    id: str
    email: str | None = None
    name: str | None = None
    deleted: bool = False
    metadata: dict[str, str] = Field(default_factory=dict)


class StripePaymentIntent(StripeModel):
    id: str
    amount: int
    amount_received: int | None = None
    currency: str = Field(min_length=3, max_length=3)
    customer: ExpandableId | None = None
    status: str
