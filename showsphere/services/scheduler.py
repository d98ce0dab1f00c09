import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from redis.asyncio import Redis

from showsphere.core.timeutils import utc_now


logger = logging.getLogger(__name__)


class DelayedTaskQueue:
    """
    Task ids kept in a Redis sorted set, scored by the epoch second they become due.
    Survives restarts of the API process, unlike an in-memory timer.
    """

    def __init__(self, redis: Redis, key: str):
        self.redis = redis
        self.key = key

    async def schedule(self, task_id: str, run_at: datetime) -> None:
        await self.redis.zadd(self.key, {task_id: run_at.timestamp()})

    async def claim_due(self, now: Optional[datetime] = None, limit: int = 100) -> List[str]:
        now = now or utc_now()
        due = await self.redis.zrangebyscore(self.key, "-inf", now.timestamp(), start=0, num=limit)
        claimed = []
        for task_id in due:
            # ZREM succeeds for exactly one caller, so each task runs once
            if await self.redis.zrem(self.key, task_id):
                claimed.append(task_id)
        return claimed

    async def pending(self) -> int:
        return await self.redis.zcard(self.key)


class DelayedTaskWorker:
    def __init__(self, queue: DelayedTaskQueue, handler: Callable[[str], Awaitable], poll_seconds: float = 5.0):
        self.queue = queue
        self.handler = handler
        self.poll_seconds = poll_seconds

    async def run_once(self, now: Optional[datetime] = None) -> int:
        processed = 0
        for task_id in await self.queue.claim_due(now):
            try:
                await self.handler(task_id)
                processed += 1
            except Exception as e:
                # the periodic sweep picks up whatever this missed
                logger.error(f"Delayed task {task_id} failed: {e}", exc_info=True)
        return processed

    async def run(self):
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Delayed task poll failed: {e}", exc_info=True)
            await asyncio.sleep(self.poll_seconds)


class PeriodicJob:
    """Runs a coroutine function every interval_seconds until cancelled."""

    def __init__(self, name: str, interval_seconds: float, job: Callable[[], Awaitable]):
        self.name = name
        self.interval_seconds = interval_seconds
        self.job = job

    async def run(self):
        while True:
            try:
                result = await self.job()
                logger.info(f"[{self.name}] {result}")
            except Exception as e:
                logger.error(f"[{self.name}] run failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)
