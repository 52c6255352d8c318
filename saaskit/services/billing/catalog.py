"""Backfill the product/price mirror from the Stripe API.

Webhooks keep the catalog current; this fills it in for a fresh database or
after deliveries were lost.
"""
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from saaskit.models.billing import Product
from saaskit.schemas.stripe_events import StripePrice, StripeProduct
from saaskit.services.billing.prices import prices
from saaskit.services.billing.products import products
from saaskit.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


def sync_catalog(db: Session, gateway: StripeGateway) -> dict[str, int]:
    """Upsert every Stripe product, then every price whose product is mirrored."""
    counts = {"products": 0, "prices": 0, "skipped": 0}

    for raw in gateway.list_products():
        try:
            product = StripeProduct.model_validate(raw)
        except ValidationError:
            logger.warning("Skipping malformed product %s", raw.get("id"))
            counts["skipped"] += 1
            continue
        products.upsert(db, product)
        counts["products"] += 1

    for raw in gateway.list_prices():
        try:
            price = StripePrice.model_validate(raw)
        except ValidationError:
            logger.warning("Skipping malformed price %s", raw.get("id"))
            counts["skipped"] += 1
            continue
        if db.get(Product, price.product) is None:
            logger.warning("Skipping price %s for unknown product %s", price.id, price.product)
            counts["skipped"] += 1
            continue
        prices.upsert(db, price)
        counts["prices"] += 1

    logger.info(
        "Catalog sync finished: %s products, %s prices, %s skipped",
        counts["products"],
        counts["prices"],
        counts["skipped"],
    )
    return counts
