# newsletter_api/subscriptions/service.py
import logging
import uuid
from typing import Any, Dict

import asyncpg

from newsletter_api.database.subscriber_repository import SubscriberRepository
from newsletter_api.database.token_repository import SubscriptionTokenRepository
from newsletter_api.domain import NewSubscriber, SubscriptionStatus
from newsletter_api.services.email_service import EmailClient
from newsletter_api.subscriptions.tokens import confirmation_link, generate_subscription_token

logger = logging.getLogger(__name__)

MAX_TOKEN_ATTEMPTS = 3


class StoreTokenError(Exception):
    """No collision-free token could be stored for a subscriber"""


class ConfirmationEmailError(Exception):
    """The subscriber was saved but the confirmation email could not be sent"""


class UnknownTokenError(Exception):
    """The presented token is not associated with any subscriber"""


class SubscriptionService:
    """Double opt-in workflow: sign-up issues a token, confirmation consumes it"""

    async def subscribe(
        self,
        connection: asyncpg.Connection,
        new_subscriber: NewSubscriber,
        base_url: str,
        email_client: EmailClient,
    ) -> Dict[str, Any]:
        subscribers = SubscriberRepository(connection)
        tokens = SubscriptionTokenRepository(connection)

        async with connection.transaction():
            # the subscriber row lock serializes sign-ups for one email
            existing = await subscribers.get_subscriber_by_email(
                new_subscriber.email, for_update=True
            )
            if existing is None:
                try:
                    async with connection.transaction():
                        subscriber_id = await subscribers.insert_subscriber(new_subscriber)
                except asyncpg.UniqueViolationError:
                    # a concurrent sign-up committed the same email first
                    existing = await subscribers.get_subscriber_by_email(
                        new_subscriber.email, for_update=True
                    )
                    if existing is None:
                        raise

            if existing and existing.status == SubscriptionStatus.CONFIRMED:
                logger.info(f"Subscriber already confirmed: {new_subscriber.email}")
                return {"status": "already_confirmed", "subscriber_id": existing.id}

            if existing:
                subscriber_id = existing.id
                revoked = await tokens.delete_tokens_for_subscriber(subscriber_id)
                logger.info(
                    f"Re-sending confirmation to pending subscriber {subscriber_id} "
                    f"({revoked} previous token(s) revoked)"
                )

            subscription_token = await self._issue_token(tokens, subscriber_id)

        try:
            await email_client.send_confirmation_email(
                email=new_subscriber.email,
                name=new_subscriber.name,
                confirmation_link=confirmation_link(base_url, subscription_token),
            )
        except Exception as e:
            logger.error(f"Failed to send confirmation email to {new_subscriber.email}: {e}")
            raise ConfirmationEmailError(str(e)) from e

        return {
            "status": "pending_confirmation",
            "subscriber_id": subscriber_id,
            "requires_confirmation": True,
        }

    async def _issue_token(
        self, tokens: SubscriptionTokenRepository, subscriber_id: uuid.UUID
    ) -> str:
        for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
            subscription_token = generate_subscription_token()
            try:
                # savepoint: a failed INSERT must not abort the outer transaction
                async with tokens.conn.transaction():
                    await tokens.store_token(subscriber_id, subscription_token)
                return subscription_token
            except asyncpg.UniqueViolationError:
                logger.warning(
                    f"Token collision for subscriber {subscriber_id} "
                    f"(attempt {attempt}/{MAX_TOKEN_ATTEMPTS})"
                )

        raise StoreTokenError(
            f"Could not store a unique subscription token for {subscriber_id}"
        )

    async def confirm(self, connection: asyncpg.Connection, subscription_token: str) -> uuid.UUID:
        """Confirm the subscriber owning the token and invalidate its tokens"""
        subscribers = SubscriberRepository(connection)
        tokens = SubscriptionTokenRepository(connection)

        async with connection.transaction():
            subscriber_id = await tokens.get_subscriber_id_from_token(
                subscription_token, for_update=True
            )
            if subscriber_id is None:
                raise UnknownTokenError("Unknown subscription token")

            await subscribers.update_status(subscriber_id, SubscriptionStatus.CONFIRMED)
            removed = await tokens.delete_tokens_for_subscriber(subscriber_id)

        logger.info(f"Confirmed subscriber {subscriber_id} ({removed} token(s) consumed)")
        return subscriber_id


subscription_service = SubscriptionService()
