"""Stripe webhook endpoint."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from saaskit.api.deps import get_db, get_stripe_gateway
from saaskit.services.billing.webhooks import construct_event, dispatch_event
from saaskit.services.stripe_gateway import StripeGateway

router = APIRouter(prefix="/stripe", tags=["stripe"])


@router.post("/webhooks")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> dict:
    """Receive a Stripe event. No auth: the signature header is verified instead.

    Errors are ``WebhookError`` subclasses rendered as HTTP 400 so Stripe
    retries the delivery.
    """
    body = await request.body()
    signature = request.headers.get("stripe-signature")
    event = construct_event(gateway, body, signature)
    dispatch_event(db, gateway, event)
    return {"received": True}
