import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from saaskit.models.billing import Price, Product
from saaskit.schemas.stripe_events import StripeProduct
from saaskit.services.billing.tombstones import tombstones
from saaskit.services.common import apply_ordering, apply_pagination, is_stale

logger = logging.getLogger(__name__)


class Products:
    @staticmethod
    def upsert(
        db: Session, product: StripeProduct, event_created: datetime | None = None
    ) -> Product | None:
        item = db.get(Product, product.id)
        if item is None and tombstones.blocks(db, product.id, event_created):
            logger.info("Skipped event for deleted Product: %s", product.id)
            return None
        if item is not None and is_stale(event_created, item.last_event_at):
            logger.info("Skipped stale event for Product: %s", product.id)
            return item
        created = item is None
        if item is None:
            tombstones.clear(db, product.id)
            item = Product(id=product.id)
            db.add(item)
        item.name = product.name
        item.description = product.description
        item.is_active = product.active
        item.metadata_ = dict(product.metadata)
        if event_created is not None:
            item.last_event_at = event_created
        db.commit()
        db.refresh(item)
        logger.info("%s Product: %s", "Created" if created else "Updated", item.id)
        return item

    @staticmethod
    def delete(
        db: Session, product_id: str, event_created: datetime | None = None
    ) -> bool:
        tombstones.record(db, product_id, "product", event_created)
        item = db.get(Product, product_id)
        if not item:
            db.commit()
            logger.info("Product already absent: %s", product_id)
            return False
        db.delete(item)
        db.commit()
        logger.info("Deleted %s: %s", Product.__name__, product_id)
        return True

    @staticmethod
    def list_catalog(
        db: Session,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> tuple[list[tuple[Product, list[Price]]], int]:
        """Active products paired with their active prices, cheapest first."""
        query = db.query(Product).filter(Product.is_active.is_(True))
        total = query.count()
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"name": Product.name, "updated_at": Product.updated_at},
        )
        products = list(apply_pagination(query, limit, offset).all())
        if not products:
            return [], total
        prices = db.scalars(
            select(Price)
            .where(
                Price.product_id.in_([p.id for p in products]),
                Price.is_active.is_(True),
            )
            .order_by(Price.unit_amount.asc())
        ).all()
        by_product: dict[str, list[Price]] = {}
        for price in prices:
            by_product.setdefault(price.product_id, []).append(price)
        return [(p, by_product.get(p.id, [])) for p in products], total


products = Products()
