from saaskit.models.user import User, UserRole  # noqa: F401
from saaskit.models.billing import (  # noqa: F401
    Customer,
    DeletedCatalogObject,
    Payment,
    PaymentStatus,
    Price,
    PriceType,
    Product,
    RecurringInterval,
    Subscription,
    SubscriptionStatus,
    WebhookEvent,
    WebhookEventStatus,
)
