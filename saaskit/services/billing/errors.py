"""Errors raised while receiving and applying Stripe webhook events.

``WebhookError`` subclasses are rendered as HTTP 400 by the handler in
``saaskit.errors``. Stripe retries any non-2xx delivery, so handlers behind
``WebhookHandlerError`` must be safe to re-run.
"""


class WebhookError(Exception):
    code = "webhook_error"
    status_code = 400


class WebhookConfigError(WebhookError):
    """Signing secret or signature header missing; nothing was verified."""

    code = "webhook_secret_missing"

    def __init__(self) -> None:
        super().__init__("Webhook secret not found.")


class WebhookSignatureError(WebhookError):
    """Signature check or body decoding failed; the payload is untrusted."""

    code = "webhook_error"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Webhook Error: {reason}")
        self.reason = reason


class WebhookPayloadError(WebhookSignatureError):
    """Verified event whose ``data.object`` does not match its type."""


class UnsupportedEventError(WebhookError):
    code = "unsupported_event"

    def __init__(self, event_type: str) -> None:
        super().__init__(f"Unsupported event type: {event_type}")
        self.event_type = event_type


class WebhookHandlerError(WebhookError):
    code = "webhook_handler_failed"

    def __init__(self, event_type: str) -> None:
        super().__init__("Webhook handler failed. View your application logs.")
        self.event_type = event_type


class UnhandledRelevantEventError(RuntimeError):
    """An allow-listed event type has no route in the dispatch table.

    Signals a code defect rather than a bad delivery. Not a ``WebhookError``:
    it surfaces as HTTP 500 through the generic exception handler.
    """

    def __init__(self, event_type: str) -> None:
        super().__init__(f"Unhandled relevant event: {event_type}")
        self.event_type = event_type


class UnknownCustomerError(LookupError):
    def __init__(self, customer_id: str) -> None:
        super().__init__(f"No local user for Stripe customer {customer_id}")
        self.customer_id = customer_id


class CustomerConflictError(ValueError):
    def __init__(self, customer_id: str, existing_id: str) -> None:
        super().__init__(
            f"User already mapped to Stripe customer {existing_id}; refusing {customer_id}"
        )
        self.customer_id = customer_id
        self.existing_id = existing_id
