# newsletter_api/database/token_repository.py
import logging
import uuid
from typing import Optional

import asyncpg

logger = logging.getLogger(__name__)


class SubscriptionTokenRepository:
    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    async def store_token(self, subscriber_id: uuid.UUID, subscription_token: str):
        """Associate a token with a subscriber.

        Raises asyncpg.UniqueViolationError on a token collision and
        asyncpg.ForeignKeyViolationError for an unknown subscriber.
        """
        try:
            await self.conn.execute(
                """
                INSERT INTO subscription_tokens (subscription_token, subscriber_id)
                VALUES ($1, $2)
                """,
                subscription_token,
                subscriber_id,
            )
        except asyncpg.UniqueViolationError:
            logger.warning(f"Subscription token collision for subscriber {subscriber_id}")
            raise
        except asyncpg.ForeignKeyViolationError:
            logger.warning(f"Cannot store a token for unknown subscriber {subscriber_id}")
            raise
        except Exception as e:
            logger.error(f"Failed to store subscription token for {subscriber_id}: {e}")
            raise

    async def get_subscriber_id_from_token(
        self, subscription_token: str, for_update: bool = False
    ) -> Optional[uuid.UUID]:
        query = "SELECT subscriber_id FROM subscription_tokens WHERE subscription_token = $1"
        if for_update:
            query += " FOR UPDATE"

        try:
            return await self.conn.fetchval(query, subscription_token)
        except Exception as e:
            logger.error(f"Failed to look up subscription token {subscription_token[:4]}...: {e}")
            raise

    async def delete_tokens_for_subscriber(self, subscriber_id: uuid.UUID) -> int:
        try:
            result = await self.conn.execute(
                "DELETE FROM subscription_tokens WHERE subscriber_id = $1",
                subscriber_id,
            )
        except Exception as e:
            logger.error(f"Failed to delete tokens of subscriber {subscriber_id}: {e}")
            raise

        return int(result.split()[-1])
