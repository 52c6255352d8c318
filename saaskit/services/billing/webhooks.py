"""Stripe webhook intake: signature check, decoding, routing and the event ledger."""
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import stripe
from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from saaskit.metrics import WEBHOOK_EVENTS
from saaskit.models.billing import WebhookEvent, WebhookEventStatus
from saaskit.schemas.stripe_events import (
    StripeCheckoutSession,
    StripeDeletedObject,
    StripeEvent,
    StripePaymentIntent,
    StripePrice,
    StripeProduct,
    StripeSubscriptionRef,
)
from saaskit.services.billing.errors import (
    UnhandledRelevantEventError,
    UnsupportedEventError,
    WebhookConfigError,
    WebhookHandlerError,
    WebhookPayloadError,
    WebhookSignatureError,
)
from saaskit.services.billing.payments import payments
from saaskit.services.billing.prices import prices
from saaskit.services.billing.products import products
from saaskit.services.billing.subscriptions import subscriptions
from saaskit.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

RELEVANT_EVENTS = frozenset(
    {
        "product.created",
        "product.updated",
        "product.deleted",
        "price.created",
        "price.updated",
        "price.deleted",
        "checkout.session.completed",
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
        "payment_intent.succeeded",
    }
)

Handler = Callable[[Session, StripeGateway, StripeEvent, Any], None]


def _validation_reason(exc: ValidationError) -> str:
    # Field locations and messages only; input values stay out of logs.
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
        for err in exc.errors()
    )


# ── Receiver ─────────────────────────────────────────────


def construct_event(
    gateway: StripeGateway, payload: bytes, signature: str | None
) -> StripeEvent:
    """Verify a delivery and decode it into a ``StripeEvent``."""
    if not signature or not gateway.has_webhook_secret():
        raise WebhookConfigError()
    try:
        gateway.verify_webhook_signature(payload, signature)
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
        logger.warning("Webhook signature rejected: %s", exc)
        raise WebhookSignatureError(str(exc)) from exc
    try:
        event = StripeEvent.model_validate_json(payload)
    except ValidationError as exc:
        reason = _validation_reason(exc)
        logger.warning("Webhook body rejected: %s", reason)
        raise WebhookSignatureError(reason) from exc
    logger.info(
        "Webhook received: %s",
        event.type,
        extra={"event_type": event.type, "event_id": event.id},
    )
    return event


# ── Handlers ─────────────────────────────────────────────


def _upsert_product(
    db: Session, gateway: StripeGateway, event: StripeEvent, obj: StripeProduct
) -> None:
    products.upsert(db, obj, event.created)


def _delete_product(
    db: Session, gateway: StripeGateway, event: StripeEvent, obj: StripeDeletedObject
) -> None:
    products.delete(db, obj.id, event.created)


def _upsert_price(
    db: Session, gateway: StripeGateway, event: StripeEvent, obj: StripePrice
) -> None:
    prices.upsert(db, obj, event.created)


def _delete_price(
    db: Session, gateway: StripeGateway, event: StripeEvent, obj: StripeDeletedObject
) -> None:
    prices.delete(db, obj.id, event.created)


def _sync_subscription(
    db: Session, gateway: StripeGateway, event: StripeEvent, obj: StripeSubscriptionRef
) -> None:
    subscriptions.reconcile(
        db,
        gateway,
        obj.id,
        obj.customer,
        is_new_subscription=event.type == "customer.subscription.created",
        event_created=event.created,
    )


def _complete_checkout(
    db: Session, gateway: StripeGateway, event: StripeEvent, obj: StripeCheckoutSession
) -> None:
    if obj.mode != "subscription":
        logger.info("Checkout session %s in %s mode needs no sync", obj.id, obj.mode)
        return
    if not obj.subscription or not obj.customer:
        raise ValueError(f"Checkout session {obj.id} is missing subscription or customer")
    subscriptions.reconcile(
        db,
        gateway,
        obj.subscription,
        obj.customer,
        is_new_subscription=True,
        event_created=event.created,
    )


def _record_payment(
    db: Session, gateway: StripeGateway, event: StripeEvent, obj: StripePaymentIntent
) -> None:
    payments.record_success(db, obj)


EVENT_ROUTES: dict[str, tuple[type[BaseModel], Handler]] = {
    "product.created": (StripeProduct, _upsert_product),
    "product.updated": (StripeProduct, _upsert_product),
    "product.deleted": (StripeDeletedObject, _delete_product),
    "price.created": (StripePrice, _upsert_price),
    "price.updated": (StripePrice, _upsert_price),
    "price.deleted": (StripeDeletedObject, _delete_price),
    "checkout.session.completed": (StripeCheckoutSession, _complete_checkout),
    "customer.subscription.created": (StripeSubscriptionRef, _sync_subscription),
    "customer.subscription.updated": (StripeSubscriptionRef, _sync_subscription),
    "customer.subscription.deleted": (StripeSubscriptionRef, _sync_subscription),
    "payment_intent.succeeded": (StripePaymentIntent, _record_payment),
}


# ── Ledger ───────────────────────────────────────────────


class WebhookEvents:
    @staticmethod
    def get_by_event_id(db: Session, event_id: str) -> WebhookEvent | None:
        return db.scalars(
            select(WebhookEvent).where(WebhookEvent.event_id == event_id)
        ).first()

    @staticmethod
    def begin(db: Session, event: StripeEvent) -> WebhookEvent | None:
        """Claim ``event`` for processing; None if it was already processed."""
        item = WebhookEvents.get_by_event_id(db, event.id)
        if item is None:
            item = WebhookEvent(
                provider="stripe",
                event_type=event.type,
                event_id=event.id,
                livemode=event.livemode,
                attempts=0,
            )
            db.add(item)
        elif item.status == WebhookEventStatus.processed:
            logger.info("Skipping already processed event %s", event.id)
            return None
        item.status = WebhookEventStatus.pending
        item.attempts = (item.attempts or 0) + 1
        item.error_message = None
        try:
            db.commit()
        except IntegrityError:
            # Another delivery of the same event inserted the row first.
            db.rollback()
            item = WebhookEvents.get_by_event_id(db, event.id)
            if item is None:
                raise
            if item.status == WebhookEventStatus.processed:
                return None
        db.refresh(item)
        return item

    @staticmethod
    def mark_processed(db: Session, event_id: str) -> None:
        item = WebhookEvents.get_by_event_id(db, event_id)
        if item is None:
            return
        item.status = WebhookEventStatus.processed
        item.processed_at = datetime.now(UTC)
        db.commit()

    @staticmethod
    def mark_failed(db: Session, event_id: str, message: str) -> None:
        item = WebhookEvents.get_by_event_id(db, event_id)
        if item is None:
            return
        item.status = WebhookEventStatus.failed
        item.error_message = message[:2000]
        db.commit()


webhook_events = WebhookEvents()


# ── Dispatcher ───────────────────────────────────────────


def dispatch_event(db: Session, gateway: StripeGateway, event: StripeEvent) -> bool:
    """Apply a verified event. Returns False for an already processed redelivery."""
    if event.type not in RELEVANT_EVENTS:
        WEBHOOK_EVENTS.labels(event.type, "unsupported").inc()
        logger.warning("Unsupported event type: %s", event.type)
        raise UnsupportedEventError(event.type)

    route = EVENT_ROUTES.get(event.type)
    if route is None:
        logger.error("No route for relevant event type %s", event.type)
        raise UnhandledRelevantEventError(event.type)
    schema, handler = route

    try:
        obj = schema.model_validate(event.data.object)
    except ValidationError as exc:
        reason = _validation_reason(exc)
        WEBHOOK_EVENTS.labels(event.type, "invalid").inc()
        logger.warning("Rejected %s payload (%s): %s", event.type, event.id, reason)
        raise WebhookPayloadError(reason) from exc

    record = webhook_events.begin(db, event)
    if record is None:
        WEBHOOK_EVENTS.labels(event.type, "duplicate").inc()
        return False

    try:
        handler(db, gateway, event, obj)
    except Exception as exc:
        db.rollback()
        logger.exception(
            "Webhook handler failed for %s (%s): %s",
            event.type,
            event.id,
            exc,
            extra={"event_type": event.type, "event_id": event.id},
        )
        webhook_events.mark_failed(db, event.id, f"{type(exc).__name__}: {exc}")
        WEBHOOK_EVENTS.labels(event.type, "failed").inc()
        raise WebhookHandlerError(event.type) from exc

    webhook_events.mark_processed(db, event.id)
    WEBHOOK_EVENTS.labels(event.type, "processed").inc()
    return True
