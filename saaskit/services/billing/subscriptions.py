import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from saaskit.models.billing import Customer, Price, Subscription, SubscriptionStatus
from saaskit.models.user import User, UserRole
from saaskit.schemas.stripe_events import StripeSubscription
from saaskit.services.billing.customers import customers
from saaskit.services.common import is_stale
from saaskit.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

ENTITLING_STATUSES = frozenset(
    {SubscriptionStatus.active, SubscriptionStatus.trialing}
)
REVOKING_STATUSES = frozenset(
    {
        SubscriptionStatus.canceled,
        SubscriptionStatus.unpaid,
        SubscriptionStatus.incomplete_expired,
    }
)


def derive_role(
    current: UserRole,
    latest: SubscriptionStatus,
    customer_statuses: Iterable[SubscriptionStatus],
) -> UserRole:
    """Role implied by a customer's subscriptions after ``latest`` was applied.

    Any active or trialing subscription grants premium. A revoking status only
    drops the user back to the base role when nothing else entitles them;
    the remaining statuses (past_due, incomplete, paused) keep the current
    role until a later event settles it. Admins are left alone.
    """
    if current == UserRole.admin:
        return current
    if any(status in ENTITLING_STATUSES for status in customer_statuses):
        return UserRole.premium
    if latest in REVOKING_STATUSES:
        return UserRole.user
    return current


class Subscriptions:
    @staticmethod
    def reconcile(
        db: Session,
        gateway: StripeGateway,
        subscription_id: str,
        customer_id: str,
        is_new_subscription: bool,
        event_created: datetime | None = None,
    ) -> Subscription:
        """Bring the local row for ``subscription_id`` in line with Stripe.

        The webhook body is only a trigger: status, period and price come from
        a fresh ``GET /v1/subscriptions/{id}``.
        """
        customer = customers.resolve(
            db, gateway, customer_id, create_missing=is_new_subscription
        )

        item = db.get(Subscription, subscription_id)
        if item is not None and is_stale(event_created, item.last_event_at):
            logger.info("Skipped stale event for Subscription: %s", subscription_id)
            db.commit()
            return item

        detail = StripeSubscription.model_validate(
            gateway.retrieve_subscription(subscription_id)
        )
        if detail.customer != customer_id:
            logger.warning(
                "Subscription %s belongs to %s, event named %s",
                subscription_id,
                detail.customer,
                customer_id,
            )

        created = item is None
        if item is None:
            item = Subscription(id=subscription_id)
            db.add(item)
        _apply_detail(db, item, detail)
        item.customer_id = customer.id
        if event_created is not None:
            item.last_event_at = event_created
        db.flush()

        _sync_user_role(db, customer, item.status)
        db.commit()
        db.refresh(item)
        logger.info(
            "%s Subscription: %s (%s)",
            "Created" if created else "Updated",
            item.id,
            item.status.value,
        )
        return item


def _apply_detail(db: Session, item: Subscription, detail: StripeSubscription) -> None:
    item.status = SubscriptionStatus(detail.status)
    primary = detail.primary_item
    price_id = primary.price.id if primary else None
    if price_id and db.get(Price, price_id) is None:
        logger.warning(
            "Price %s for Subscription %s is not mirrored yet", price_id, detail.id
        )
        price_id = None
    item.price_id = price_id
    item.quantity = primary.quantity if primary else None
    item.current_period_start, item.current_period_end = detail.period_bounds
    item.trial_start = detail.trial_start
    item.trial_end = detail.trial_end
    item.cancel_at_period_end = detail.cancel_at_period_end
    item.cancel_at = detail.cancel_at
    item.canceled_at = detail.canceled_at
    item.ended_at = detail.ended_at
    item.metadata_ = dict(detail.metadata)


def _sync_user_role(
    db: Session, customer: Customer, latest: SubscriptionStatus
) -> None:
    user = db.get(User, customer.user_id)
    if user is None:
        logger.warning("Customer %s points at a missing user", customer.id)
        return
    statuses = db.scalars(
        select(Subscription.status).where(Subscription.customer_id == customer.id)
    ).all()
    role = derive_role(user.role, latest, statuses)
    if role != user.role:
        logger.info("Changed role for user %s: %s -> %s", user.id, user.role.value, role.value)
        user.role = role


subscriptions = Subscriptions()
