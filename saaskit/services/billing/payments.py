import logging

from sqlalchemy.orm import Session

from saaskit.models.billing import Customer, Payment, PaymentStatus
from saaskit.schemas.stripe_events import StripePaymentIntent

logger = logging.getLogger(__name__)


class Payments:
    @staticmethod
    def record_success(db: Session, intent: StripePaymentIntent) -> Payment:
        """Store a succeeded payment intent once, keyed by its id."""
        item = db.get(Payment, intent.id)
        created = item is None
        if item is None:
            item = Payment(id=intent.id)
            db.add(item)

        user_id = None
        if intent.customer:
            customer = db.get(Customer, intent.customer)
            if customer:
                user_id = customer.user_id
            else:
                logger.info("Payment %s from unmapped customer %s", intent.id, intent.customer)

        item.customer_id = intent.customer
        item.user_id = user_id
        item.amount = (
            intent.amount_received if intent.amount_received is not None else intent.amount
        )
        item.currency = intent.currency.lower()
        item.status = PaymentStatus.succeeded
        db.commit()
        db.refresh(item)
        logger.info("%s Payment: %s", "Recorded" if created else "Refreshed", item.id)
        return item


payments = Payments()
