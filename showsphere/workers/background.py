import asyncio
import logging
from typing import List

from showsphere.core.container import Services
from showsphere.services.scheduler import DelayedTaskWorker, PeriodicJob
from showsphere.workers.notification_worker import NotificationWorker


logger = logging.getLogger(__name__)


def start_background_workers(services: Services) -> List[asyncio.Task]:
    settings = services.settings
    expiry_worker = DelayedTaskWorker(
        services.expiry_queue,
        services.reaper.expire_if_unpaid,
        poll_seconds=settings.DELAYED_TASK_POLL_SECONDS,
    )
    sweep = PeriodicJob("cleanup-expired-bookings", settings.SWEEP_INTERVAL_SECONDS, services.reaper.sweep)
    reminders = PeriodicJob("send-show-reminders", settings.REMINDER_INTERVAL_SECONDS, services.reminders.run_once)
    notifications = NotificationWorker(services.redis, settings.NOTIFICATION_QUEUE_KEY, services.mailer)

    tasks = [
        asyncio.create_task(expiry_worker.run(), name="expiry-checks"),
        asyncio.create_task(sweep.run(), name=sweep.name),
        asyncio.create_task(reminders.run(), name=reminders.name),
        asyncio.create_task(notifications.run(), name="notification-worker"),
    ]
    logger.info(f"Started {len(tasks)} background worker(s)")
    return tasks


async def stop_background_workers(tasks: List[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    logger.info("Background workers stopped")
