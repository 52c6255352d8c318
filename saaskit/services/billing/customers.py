import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from saaskit.models.billing import Customer
from saaskit.models.user import User
from saaskit.schemas.stripe_events import StripeCustomer
from saaskit.services.billing.errors import CustomerConflictError, UnknownCustomerError
from saaskit.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

# Checkout code stores the local user id on the Stripe customer under one of these.
USER_ID_METADATA_KEYS = ("user_id", "userId")


def _user_from_metadata(db: Session, metadata: dict[str, str]) -> User | None:
    for key in USER_ID_METADATA_KEYS:
        raw = metadata.get(key)
        if not raw:
            continue
        try:
            user_id = uuid.UUID(raw)
        except ValueError:
            logger.warning("Ignoring malformed %s metadata on customer: %r", key, raw)
            continue
        user = db.get(User, user_id)
        if user:
            return user
    return None


def _user_from_email(db: Session, email: str | None) -> User | None:
    if not email:
        return None
    return db.scalars(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).first()


class Customers:
    @staticmethod
    def resolve(
        db: Session,
        gateway: StripeGateway,
        customer_id: str,
        create_missing: bool,
    ) -> Customer:
        """Return the mapping for ``customer_id``.

        Only a brand-new subscription may create the mapping; an update for an
        unmapped customer raises ``UnknownCustomerError``. The new row is
        flushed, not committed, so it lands together with the subscription.
        """
        item = db.get(Customer, customer_id)
        if item:
            return item
        if not create_missing:
            raise UnknownCustomerError(customer_id)

        detail = StripeCustomer.model_validate(gateway.retrieve_customer(customer_id))
        if detail.deleted:
            logger.warning("Stripe customer %s is deleted", customer_id)
            raise UnknownCustomerError(customer_id)
        user = _user_from_metadata(db, detail.metadata) or _user_from_email(
            db, detail.email
        )
        if user is None:
            raise UnknownCustomerError(customer_id)

        existing = db.scalars(
            select(Customer).where(Customer.user_id == user.id)
        ).first()
        if existing is not None:
            raise CustomerConflictError(customer_id, existing.id)

        item = Customer(id=customer_id, user_id=user.id)
        db.add(item)
        db.flush()
        logger.info("Created Customer: %s for user %s", item.id, user.id)
        return item


customers = Customers()
