"""Telegram delivery - timers on the bot's job queue."""

import logging
from typing import List
from uuid import uuid4

from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import ContextTypes, JobQueue

from duenudge.bot.formatters import format_notification_message
from duenudge.db.models import OutgoingNotification, PendingNotification
from duenudge.delivery.sink import DeliveryError

logger = logging.getLogger(__name__)


async def deliver_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job callback that sends one notification when its timer fires."""
    job = context.job
    notification: OutgoingNotification = job.data  # type: ignore

    repo = context.bot_data.get("repo")
    if notification.task_id is not None and repo is not None:
        task = await repo.get_task(notification.task_id)
        if task is None or task.status == "completed":
            logger.info(
                f"Skipped {notification.kind} notification {job.name}: "
                f"task {notification.task_id} is gone or completed"
            )
            return

    try:
        await context.bot.send_message(
            chat_id=job.chat_id,  # type: ignore
            text=format_notification_message(notification),
            parse_mode=ParseMode.HTML,
        )
        logger.info(f"Delivered {notification.kind} notification {job.name}")
    except TelegramError as e:
        # No retries; the next sweep schedules whatever is still relevant
        logger.error(f"Failed to deliver notification {job.name}: {e}")


class TelegramSink:
    """Notification sink that messages one chat."""

    def __init__(self, job_queue: JobQueue, chat_id: int):
        self.job_queue = job_queue
        self.chat_id = chat_id

    def _notification_jobs(self):
        return [
            job
            for job in self.job_queue.jobs()
            if isinstance(job.data, OutgoingNotification) and not job.removed
        ]

    async def schedule(self, notification: OutgoingNotification) -> str | None:
        handle = uuid4().hex
        try:
            self.job_queue.run_once(
                deliver_job,
                when=notification.time,
                data=notification,
                name=handle,
                chat_id=self.chat_id,
            )
        except Exception as e:
            raise DeliveryError(f"Could not schedule {notification.kind}: {e}") from e
        return handle

    async def cancel(self, handle: str) -> None:
        for job in self.job_queue.get_jobs_by_name(handle):
            job.schedule_removal()

    async def cancel_all_of_type(self, kind: str) -> None:
        for job in self._notification_jobs():
            if job.data.kind == kind:
                job.schedule_removal()

    async def list_pending(self) -> List[PendingNotification]:
        pending = [
            PendingNotification(handle=job.name, notification=job.data)
            for job in self._notification_jobs()
        ]
        pending.sort(key=lambda p: p.notification.time)
        return pending
