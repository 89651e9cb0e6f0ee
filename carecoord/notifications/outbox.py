"""Bounded in-process outbox with a background delivery worker"""
import asyncio
import logging
from typing import Any, Dict, Optional

from carecoord import config
from carecoord.notifications.events import DomainEvent, EventKind
from carecoord.notifications.sink import LoggingPublisher, NotificationSink, Publisher

logger = logging.getLogger(__name__)


class NotificationOutbox(NotificationSink):
    """
    notify() enqueues synchronously; a worker task delivers through the
    publisher with exponential backoff. A full outbox drops the event.
    """

    def __init__(
        self,
        publisher: Optional[Publisher] = None,
        maxsize: int = config.NOTIFY_OUTBOX_SIZE,
        max_attempts: int = config.NOTIFY_MAX_ATTEMPTS,
        retry_base_seconds: float = config.NOTIFY_RETRY_BASE_SECONDS,
    ):
        self.publisher = publisher
        self.max_attempts = max_attempts
        self.retry_base_seconds = retry_base_seconds
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None
        self.dropped = 0
        self.failed = 0
        self.delivered = 0

    def notify(self, kind: EventKind, payload: Dict[str, Any]) -> None:
        event = DomainEvent(kind=kind, payload=payload)
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Notification outbox full, dropping {kind.value} event {event.id}")
            return
        logger.debug(f"Queued {kind.value} event {event.id}")

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.publisher is None:
            self.publisher = build_publisher()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="notification-outbox")
            logger.info("Notification outbox worker started")

    async def stop(self, drain_timeout: float = 5.0) -> None:
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Stopping outbox with {self.pending} undelivered events")
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        if self.publisher is not None:
            self.publisher.close()
        logger.info("Notification outbox worker stopped")

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.deliver(event)
            finally:
                self._queue.task_done()

    async def deliver(self, event: DomainEvent) -> bool:
        """Deliver one event, retrying with backoff. Returns False once attempts are exhausted."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                await asyncio.to_thread(self.publisher.publish, event)
                self.delivered += 1
                return True
            except Exception as e:
                if attempt == self.max_attempts:
                    self.failed += 1
                    logger.error(
                        f"Giving up on {event.kind.value} event {event.id} after {attempt} attempts: {e}"
                    )
                    return False
                delay = self.retry_base_seconds * (2 ** (attempt - 1))
                logger.warning(
                    f"Delivery of {event.kind.value} event {event.id} failed (attempt {attempt}), "
                    f"retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
        return False


def build_publisher() -> Publisher:
    if config.NOTIFICATIONS_BACKEND == "rabbitmq":
        from carecoord.messaging.rabbitmq import RabbitMQPublisher
        return RabbitMQPublisher()
    return LoggingPublisher()


outbox = NotificationOutbox()


def get_notification_sink() -> NotificationSink:
    """Dependency returning the process-wide outbox"""
    return outbox
