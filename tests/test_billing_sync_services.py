"""Tests for the product/price mirror and the catalog backfill."""

from datetime import UTC, datetime, timedelta

from saaskit.models.billing import (
    DeletedCatalogObject,
    Price,
    PriceType,
    Product,
    RecurringInterval,
)
from saaskit.schemas.stripe_events import StripePrice, StripeProduct
from saaskit.services import billing as billing_service
from tests.mocks import price_object, product_object, stripe_id

# ── Products ─────────────────────────────────────────────


def test_upsert_product_inserts_new_row(db_session):
    product_id = stripe_id("prod")
    product = billing_service.products.upsert(
        db_session, StripeProduct.model_validate(product_object(product_id, "Starter"))
    )
    assert product.id == product_id
    assert product.name == "Starter"
    assert product.is_active is True
    assert product.metadata_ == {"tier": "starter"}


def test_upsert_product_is_idempotent(db_session):
    product_id = stripe_id("prod")
    payload = StripeProduct.model_validate(product_object(product_id))
    billing_service.products.upsert(db_session, payload)
    billing_service.products.upsert(db_session, payload)
    assert db_session.query(Product).filter(Product.id == product_id).count() == 1


def test_upsert_product_replaces_fields(db_session):
    product_id = stripe_id("prod")
    billing_service.products.upsert(
        db_session, StripeProduct.model_validate(product_object(product_id, "Old"))
    )
    updated = billing_service.products.upsert(
        db_session,
        StripeProduct.model_validate(product_object(product_id, "New", active=False)),
    )
    assert updated.name == "New"
    assert updated.is_active is False


def test_upsert_product_skips_stale_event(db_session):
    product_id = stripe_id("prod")
    now = datetime.now(UTC)
    billing_service.products.upsert(
        db_session,
        StripeProduct.model_validate(product_object(product_id, "Current")),
        event_created=now,
    )
    result = billing_service.products.upsert(
        db_session,
        StripeProduct.model_validate(product_object(product_id, "Outdated")),
        event_created=now - timedelta(minutes=5),
    )
    assert result.name == "Current"


def test_upsert_product_applies_same_timestamp_again(db_session):
    product_id = stripe_id("prod")
    now = datetime.now(UTC)
    billing_service.products.upsert(
        db_session,
        StripeProduct.model_validate(product_object(product_id, "First")),
        event_created=now,
    )
    result = billing_service.products.upsert(
        db_session,
        StripeProduct.model_validate(product_object(product_id, "Second")),
        event_created=now,
    )
    assert result.name == "Second"


def test_delete_product(db_session, billing_product):
    assert billing_service.products.delete(db_session, billing_product.id) is True
    assert db_session.get(Product, billing_product.id) is None


def test_delete_missing_product_is_noop(db_session):
    assert billing_service.products.delete(db_session, stripe_id("prod")) is False


def test_upsert_product_older_than_delete_stays_deleted(db_session):
    product_id = stripe_id("prod")
    now = datetime.now(UTC)
    billing_service.products.upsert(
        db_session,
        StripeProduct.model_validate(product_object(product_id, "Pro")),
        event_created=now - timedelta(seconds=60),
    )
    billing_service.products.delete(db_session, product_id, event_created=now)

    result = billing_service.products.upsert(
        db_session,
        StripeProduct.model_validate(product_object(product_id, "Old")),
        event_created=now - timedelta(seconds=30),
    )

    assert result is None
    assert db_session.get(Product, product_id) is None
    marker = db_session.get(DeletedCatalogObject, product_id)
    assert marker.object_type == "product"


def test_delete_before_create_keeps_product_absent(db_session):
    product_id = stripe_id("prod")
    now = datetime.now(UTC)
    billing_service.products.delete(db_session, product_id, event_created=now)

    billing_service.products.upsert(
        db_session,
        StripeProduct.model_validate(product_object(product_id)),
        event_created=now - timedelta(seconds=10),
    )

    assert db_session.get(Product, product_id) is None


def test_backfill_upsert_clears_deletion_marker(db_session):
    product_id = stripe_id("prod")
    billing_service.products.delete(
        db_session, product_id, event_created=datetime.now(UTC)
    )

    product = billing_service.products.upsert(
        db_session, StripeProduct.model_validate(product_object(product_id))
    )

    assert product is not None
    assert db_session.get(DeletedCatalogObject, product_id) is None


def test_list_catalog_pairs_active_prices(db_session, billing_product, billing_price):
    inactive_price = Price(
        id=stripe_id("price"),
        product_id=billing_product.id,
        currency="usd",
        unit_amount=900,
        type=PriceType.one_time,
        is_active=False,
    )
    hidden = Product(id=stripe_id("prod"), name="Legacy", is_active=False)
    db_session.add_all([inactive_price, hidden])
    db_session.commit()

    rows, total = billing_service.products.list_catalog(
        db_session, order_by="name", order_dir="asc", limit=50, offset=0
    )

    assert total == 1
    product, prices = rows[0]
    assert product.id == billing_product.id
    assert [p.id for p in prices] == [billing_price.id]


# ── Prices ───────────────────────────────────────────────


def test_upsert_recurring_price(db_session, billing_product):
    price_id = stripe_id("price")
    price = billing_service.prices.upsert(
        db_session,
        StripePrice.model_validate(price_object(price_id, billing_product.id, 2500, "year")),
    )
    assert price.product_id == billing_product.id
    assert price.unit_amount == 2500
    assert price.currency == "usd"
    assert price.type == PriceType.recurring
    assert price.recurring_interval == RecurringInterval.year
    assert price.recurring_interval_count == 1


def test_upsert_price_clears_interval_when_one_time(db_session, billing_price):
    price = billing_service.prices.upsert(
        db_session,
        StripePrice.model_validate(
            price_object(billing_price.id, billing_price.product_id, 4900, interval=None)
        ),
    )
    assert price.type == PriceType.one_time
    assert price.recurring_interval is None
    assert price.recurring_interval_count is None


def test_upsert_price_accepts_expanded_product(db_session, billing_product):
    payload = price_object(stripe_id("price"), billing_product.id)
    payload["product"] = {"id": billing_product.id, "object": "product"}
    price = billing_service.prices.upsert(db_session, StripePrice.model_validate(payload))
    assert price.product_id == billing_product.id


def test_delete_price_twice(db_session, billing_price):
    assert billing_service.prices.delete(db_session, billing_price.id) is True
    assert billing_service.prices.delete(db_session, billing_price.id) is False


def test_upsert_price_skips_stale_event(db_session, billing_product):
    price_id = stripe_id("price")
    now = datetime.now(UTC)
    billing_service.prices.upsert(
        db_session,
        StripePrice.model_validate(price_object(price_id, billing_product.id, 2500)),
        event_created=now,
    )
    result = billing_service.prices.upsert(
        db_session,
        StripePrice.model_validate(price_object(price_id, billing_product.id, 900)),
        event_created=now - timedelta(minutes=5),
    )
    assert result.unit_amount == 2500


def test_upsert_price_older_than_delete_stays_deleted(db_session, billing_product):
    price_id = stripe_id("price")
    now = datetime.now(UTC)
    billing_service.prices.upsert(
        db_session,
        StripePrice.model_validate(price_object(price_id, billing_product.id)),
        event_created=now - timedelta(seconds=60),
    )
    billing_service.prices.delete(db_session, price_id, event_created=now)

    result = billing_service.prices.upsert(
        db_session,
        StripePrice.model_validate(price_object(price_id, billing_product.id, 100)),
        event_created=now - timedelta(seconds=30),
    )

    assert result is None
    assert db_session.get(Price, price_id) is None
    assert db_session.get(DeletedCatalogObject, price_id).object_type == "price"


# ── Catalog backfill ─────────────────────────────────────


def test_sync_catalog_mirrors_products_then_prices(db_session, stripe_gateway):
    product_id = stripe_id("prod")
    price_id = stripe_id("price")
    stripe_gateway.products = [product_object(product_id, "Team")]
    stripe_gateway.prices = [
        price_object(price_id, product_id),
        price_object(stripe_id("price"), stripe_id("prod")),
        {"id": stripe_id("price"), "object": "price"},
    ]

    counts = billing_service.sync_catalog(db_session, stripe_gateway)

    assert counts == {"products": 1, "prices": 1, "skipped": 2}
    assert db_session.get(Product, product_id).name == "Team"
    assert db_session.get(Price, price_id).product_id == product_id
