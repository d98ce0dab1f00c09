import asyncio
import logging
from typing import Optional

from redis.asyncio import Redis

from showsphere.services.notification import Notification, NotificationHandler


logger = logging.getLogger(__name__)


class NotificationWorker:
    """Drains the notification list that QueuedDelivery pushes onto."""

    def __init__(self, redis: Redis, queue_key: str, handler: NotificationHandler, block_seconds: int = 2):
        self.redis = redis
        self.queue_key = queue_key
        self.handler = handler
        self.block_seconds = block_seconds

    async def process_one(self, timeout: Optional[int] = None) -> Optional[bool]:
        """Handle one queued notification. None when the queue stayed empty for the timeout."""
        item = await self.redis.brpop(self.queue_key, timeout=self.block_seconds if timeout is None else timeout)
        if item is None:
            return None
        _, raw = item
        try:
            notification = Notification.from_json(raw)
        except (ValueError, KeyError) as e:
            logger.error(f"Dropping malformed notification {raw!r}: {e}")
            return False

        try:
            delivered = await self.handler.handle(notification)
        except Exception as e:
            logger.error(f"Handling {notification.kind.value} failed: {e}", exc_info=True)
            return False
        if not delivered:
            logger.warning(f"{notification.kind.value} {notification.payload} was not delivered")
        return delivered

    async def run(self):
        while True:
            try:
                await self.process_one()
            except Exception as e:
                logger.error(f"Notification worker poll failed: {e}", exc_info=True)
                await asyncio.sleep(1)
