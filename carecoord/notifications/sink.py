"""Notification sink and publisher contracts"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from carecoord.notifications.events import DomainEvent, EventKind

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """
    Accepts domain events from the core.

    notify() must be cheap, must not block on delivery and must never raise
    into the caller: delivery happens elsewhere, after the state change is
    committed.
    """

    @abstractmethod
    def notify(self, kind: EventKind, payload: Dict[str, Any]) -> None:
        ...


class Publisher(ABC):
    """Blocking delivery of one event to a transport. Raises on failure."""

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        ...

    def close(self) -> None:
        pass


class LoggingPublisher(Publisher):
    """Writes events to the log instead of a broker (local development)"""

    def publish(self, event: DomainEvent) -> None:
        logger.info(f"Notification {event.kind.value}: {json.dumps(event.to_message(), default=str)}")
