import logging
from datetime import datetime

from sqlalchemy.orm import Session

from saaskit.models.billing import Price, PriceType, RecurringInterval
from saaskit.schemas.stripe_events import StripePrice
from saaskit.services.billing.tombstones import tombstones
from saaskit.services.common import is_stale

logger = logging.getLogger(__name__)


class Prices:
    @staticmethod
    def upsert(
        db: Session, price: StripePrice, event_created: datetime | None = None
    ) -> Price | None:
        item = db.get(Price, price.id)
        if item is None and tombstones.blocks(db, price.id, event_created):
            logger.info("Skipped event for deleted Price: %s", price.id)
            return None
        if item is not None and is_stale(event_created, item.last_event_at):
            logger.info("Skipped stale event for Price: %s", price.id)
            return item
        created = item is None
        if item is None:
            tombstones.clear(db, price.id)
            item = Price(id=price.id)
            db.add(item)
        item.product_id = price.product
        item.currency = price.currency.lower()
        item.unit_amount = price.unit_amount
        item.type = PriceType(price.type)
        if price.recurring is not None:
            item.recurring_interval = RecurringInterval(price.recurring.interval)
            item.recurring_interval_count = price.recurring.interval_count
            item.trial_period_days = price.recurring.trial_period_days
        else:
            item.recurring_interval = None
            item.recurring_interval_count = None
            item.trial_period_days = None
        item.nickname = price.nickname
        item.is_active = price.active
        item.metadata_ = dict(price.metadata)
        if event_created is not None:
            item.last_event_at = event_created
        db.commit()
        db.refresh(item)
        logger.info("%s Price: %s", "Created" if created else "Updated", item.id)
        return item

    @staticmethod
    def delete(
        db: Session, price_id: str, event_created: datetime | None = None
    ) -> bool:
        tombstones.record(db, price_id, "price", event_created)
        item = db.get(Price, price_id)
        if not item:
            db.commit()
            logger.info("Price already absent: %s", price_id)
            return False
        db.delete(item)
        db.commit()
        logger.info("Deleted %s: %s", Price.__name__, price_id)
        return True


prices = Prices()
