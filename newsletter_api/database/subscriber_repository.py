# newsletter_api/database/subscriber_repository.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

import asyncpg

from newsletter_api.domain import NewSubscriber, Subscriber, SubscriptionStatus

logger = logging.getLogger(__name__)

SUBSCRIBER_COLUMNS = "id, email, name, subscribed_at, status"


class SubscriberRepository:
    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    async def insert_subscriber(self, new_subscriber: NewSubscriber) -> uuid.UUID:
        """Insert a pending subscriber and return its id"""
        subscriber_id = uuid.uuid4()
        try:
            await self.conn.execute(
                """
                INSERT INTO subscriptions (id, email, name, subscribed_at, status)
                VALUES ($1, $2, $3, $4, $5)
                """,
                subscriber_id,
                new_subscriber.email,
                new_subscriber.name,
                datetime.now(timezone.utc),
                SubscriptionStatus.PENDING_CONFIRMATION.value,
            )
        except asyncpg.UniqueViolationError:
            logger.warning(f"Subscriber already exists: {new_subscriber.email}")
            raise
        except Exception as e:
            logger.error(f"Failed to insert subscriber {new_subscriber.email}: {e}")
            raise

        logger.info(f"Saved new subscriber {subscriber_id} ({new_subscriber.email})")
        return subscriber_id

    async def get_subscriber(self, subscriber_id: uuid.UUID) -> Optional[Subscriber]:
        try:
            row = await self.conn.fetchrow(
                f"SELECT {SUBSCRIBER_COLUMNS} FROM subscriptions WHERE id = $1",
                subscriber_id,
            )
            return Subscriber(**dict(row)) if row else None

        except Exception as e:
            logger.error(f"Failed to get subscriber {subscriber_id}: {e}")
            raise

    async def get_subscriber_by_email(
        self, email: str, for_update: bool = False
    ) -> Optional[Subscriber]:
        query = f"SELECT {SUBSCRIBER_COLUMNS} FROM subscriptions WHERE email = $1"
        if for_update:
            query += " FOR UPDATE"

        try:
            row = await self.conn.fetchrow(query, email)
            return Subscriber(**dict(row)) if row else None

        except Exception as e:
            logger.error(f"Failed to get subscriber by email {email}: {e}")
            raise

    async def update_status(self, subscriber_id: uuid.UUID, status: SubscriptionStatus) -> bool:
        """Update the subscriber status; False when no such subscriber exists"""
        try:
            result = await self.conn.execute(
                "UPDATE subscriptions SET status = $1 WHERE id = $2",
                status.value,
                subscriber_id,
            )
        except Exception as e:
            logger.error(f"Failed to update status of subscriber {subscriber_id}: {e}")
            raise

        # asyncpg returns the command tag, e.g. "UPDATE 1"
        return result.split()[-1] != "0"
