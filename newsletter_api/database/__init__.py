# newsletter_api/database/__init__.py
from .connection import DatabaseConnection, connect, get_db_connection
from .subscriber_repository import SubscriberRepository
from .token_repository import SubscriptionTokenRepository

__all__ = [
    "DatabaseConnection",
    "connect",
    "get_db_connection",
    "SubscriberRepository",
    "SubscriptionTokenRepository",
]
