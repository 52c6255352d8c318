import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from saaskit.db import Base, TimestampMixin

# ── Enums ────────────────────────────────────────────────


class PriceType(str, enum.Enum):
    one_time = "one_time"
    recurring = "recurring"


class RecurringInterval(str, enum.Enum):
    day = "day"
    week = "week"
    month = "month"
    year = "year"


class SubscriptionStatus(str, enum.Enum):
    trialing = "trialing"
    active = "active"
    incomplete = "incomplete"
    incomplete_expired = "incomplete_expired"
    past_due = "past_due"
    canceled = "canceled"
    unpaid = "unpaid"
    paused = "paused"


class PaymentStatus(str, enum.Enum):
    succeeded = "succeeded"


class WebhookEventStatus(str, enum.Enum):
    pending = "pending"
    processed = "processed"
    failed = "failed"


# ── Catalog mirror ───────────────────────────────────────
# Primary keys are Stripe object ids (prod_..., price_..., cus_..., sub_...).


class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)
    last_event_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    prices = relationship("Price", back_populates="product", passive_deletes=True)


class Price(TimestampMixin, Base):
    __tablename__ = "prices"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    product_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    unit_amount: Mapped[int | None] = mapped_column(Integer)
    type: Mapped[PriceType] = mapped_column(Enum(PriceType), nullable=False)
    recurring_interval: Mapped[RecurringInterval | None] = mapped_column(
        Enum(RecurringInterval)
    )
    recurring_interval_count: Mapped[int | None] = mapped_column(Integer)
    trial_period_days: Mapped[int | None] = mapped_column(Integer)
    nickname: Mapped[str | None] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)
    last_event_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    product = relationship("Product", back_populates="prices")


# ── Customer & Subscriptions ─────────────────────────────


class Customer(TimestampMixin, Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("user_id", name="uq_customers_user_id"),)

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    user = relationship("User", back_populates="customer")
    subscriptions = relationship("Subscription", back_populates="customer")


class Subscription(TimestampMixin, Base):
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    customer_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("customers.id"), nullable=False, index=True
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus), nullable=False
    )
    price_id: Mapped[str | None] = mapped_column(
        String(255), ForeignKey("prices.id", ondelete="SET NULL"), index=True
    )
    quantity: Mapped[int | None] = mapped_column(Integer)
    current_period_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    trial_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    trial_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False)
    cancel_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)
    last_event_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    customer = relationship("Customer", back_populates="subscriptions")
    price = relationship("Price")


# ── Payments ─────────────────────────────────────────────


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    customer_id: Mapped[str | None] = mapped_column(String(255), index=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.succeeded
    )


# ── Webhook Tracking ─────────────────────────────────────


class WebhookEvent(TimestampMixin, Base):
    __tablename__ = "webhook_events"
    __table_args__ = (UniqueConstraint("event_id", name="uq_webhook_events_event_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    provider: Mapped[str] = mapped_column(String(80), default="stripe")
    event_type: Mapped[str] = mapped_column(String(120), nullable=False)
    event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    livemode: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[WebhookEventStatus] = mapped_column(
        Enum(WebhookEventStatus), default=WebhookEventStatus.pending
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


# ── Deletion markers ─────────────────────────────────────


class DeletedCatalogObject(Base):
    """Remembers when a product or price was deleted.

    Create and update events older than ``deleted_at`` must not bring the
    object back once its mirror row is gone.
    """

    __tablename__ = "deleted_catalog_objects"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    object_type: Mapped[str] = mapped_column(String(40), nullable=False)
    deleted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
