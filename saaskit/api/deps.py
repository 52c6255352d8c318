from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from saaskit.db import SessionLocal
from saaskit.services.stripe_gateway import StripeGateway


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_stripe_gateway(request: Request) -> StripeGateway:
    """Gateway built once in the application lifespan."""
    return request.app.state.stripe_gateway
