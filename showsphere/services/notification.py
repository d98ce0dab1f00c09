import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Set

from redis.asyncio import Redis

from showsphere.core.exceptions import NotificationError


logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    BOOKING_CONFIRMATION = "booking_confirmation"
    SHOW_ADDED = "show_added"
    SHOW_REMINDER = "show_reminder"


@dataclass
class Notification:
    kind: NotificationKind
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps({"kind": self.kind.value, "payload": self.payload})

    @classmethod
    def from_json(cls, raw: str) -> "Notification":
        data = json.loads(raw)
        return cls(kind=NotificationKind(data["kind"]), payload=data.get("payload") or {})

    @classmethod
    def booking_confirmation(cls, booking_id: str) -> "Notification":
        return cls(NotificationKind.BOOKING_CONFIRMATION, {"bookingId": booking_id})

    @classmethod
    def show_added(cls, movie_title: str) -> "Notification":
        return cls(NotificationKind.SHOW_ADDED, {"movieTitle": movie_title})

    @classmethod
    def show_reminder(cls, email: str, name: str, movie_title: str, show_time: datetime) -> "Notification":
        return cls(NotificationKind.SHOW_REMINDER, {
            "userEmail": email,
            "userName": name,
            "movieTitle": movie_title,
            "showTime": show_time.isoformat(),
        })


class NotificationHandler(ABC):
    @abstractmethod
    async def handle(self, notification: Notification) -> bool:
        """Deliver the notification to its recipients. False means it was declined or failed."""


class DeliveryStrategy(ABC):
    name: str = "strategy"

    @abstractmethod
    async def deliver(self, notification: Notification) -> None:
        """Hand the notification over or raise."""


class QueuedDelivery(DeliveryStrategy):
    """Push onto a Redis list drained by the notification worker."""
    name = "queue"

    def __init__(self, redis: Redis, queue_key: str):
        self.redis = redis
        self.queue_key = queue_key

    async def deliver(self, notification: Notification) -> None:
        await self.redis.lpush(self.queue_key, notification.to_json())


class DirectDelivery(DeliveryStrategy):
    name = "direct"

    def __init__(self, handler: NotificationHandler):
        self.handler = handler

    async def deliver(self, notification: Notification) -> None:
        if not await self.handler.handle(notification):
            raise NotificationError(f"{notification.kind.value} was not delivered")


class NotificationDispatcher:
    """
    Tries each delivery strategy in order until one accepts the notification.
    Never raises: notification problems must not fail bookings or payments.
    """

    def __init__(self, strategies: List[DeliveryStrategy], timeout_seconds: float = 30.0):
        self.strategies = strategies
        self.timeout_seconds = timeout_seconds
        self._background: Set[asyncio.Task] = set()

    async def dispatch(self, notification: Notification) -> bool:
        for strategy in self.strategies:
            try:
                await asyncio.wait_for(strategy.deliver(notification), timeout=self.timeout_seconds)
                logger.info(f"{notification.kind.value} {notification.payload} delivered via {strategy.name}")
                return True
            except Exception as e:
                logger.warning(f"{notification.kind.value} via {strategy.name} failed: {e!r}")
        logger.error(f"WARNING: {notification.kind.value} {notification.payload} could not be delivered via any method")
        return False

    def dispatch_in_background(self, notification: Notification) -> asyncio.Task:
        task = asyncio.create_task(self.dispatch(notification))
        # keep a reference so the task is not garbage collected mid-flight
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for notifications still in flight."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def booking_confirmed(self, booking_id: str) -> bool:
        return await self.dispatch(Notification.booking_confirmation(booking_id))

    async def show_added(self, movie_title: str) -> bool:
        return await self.dispatch(Notification.show_added(movie_title))

    async def show_reminder(self, email: str, name: str, movie_title: str, show_time: datetime) -> bool:
        return await self.dispatch(Notification.show_reminder(email, name, movie_title, show_time))
