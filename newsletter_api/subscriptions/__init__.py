# newsletter_api/subscriptions/__init__.py
from .service import (
    ConfirmationEmailError,
    StoreTokenError,
    UnknownTokenError,
    subscription_service,
)
from .tokens import confirmation_link, generate_subscription_token

__all__ = [
    "subscription_service",
    "generate_subscription_token",
    "confirmation_link",
    "ConfirmationEmailError",
    "StoreTokenError",
    "UnknownTokenError",
]
