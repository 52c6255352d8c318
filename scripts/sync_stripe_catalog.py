"""Backfill the local product/price catalog from Stripe."""

from dotenv import load_dotenv

from saaskit.config import settings
from saaskit.db import SessionLocal
from saaskit.logging import configure_logging
from saaskit.services.billing.catalog import sync_catalog
from saaskit.services.stripe_gateway import StripeGateway


def main() -> None:
    load_dotenv()
    configure_logging()
    gateway = StripeGateway.from_settings(settings)
    if not gateway.is_configured():
        raise SystemExit("STRIPE_SECRET_KEY is not set")
    db = SessionLocal()
    try:
        counts = sync_catalog(db, gateway)
        print(
            f"Catalog sync complete: {counts['products']} products, "
            f"{counts['prices']} prices, {counts['skipped']} skipped."
        )
    finally:
        db.close()


if __name__ == "__main__":
    main()
