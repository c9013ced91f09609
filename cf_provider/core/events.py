"""Event emitters for deployment orchestration."""

import logging
from abc import ABC, abstractmethod
from typing import Iterable

from cf_provider.core.events_model import DeploymentEvent

logger = logging.getLogger(__name__)


ALLOWED_EVENTS = {
    "droplet.staged",
    "deployment.created",
    "deployment.finalized",
    "deployment.attempt_failed",
    "deployment.succeeded",
    "process.stabilized",
    "application.started",
    "application.stopped",
}


class EventEmitter(ABC):
    """Abstract event emitter."""

    @abstractmethod
    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        """Emit one or more events."""
        pass


class LoggingEventEmitter(EventEmitter):
    """Validates and logs events. Keeps nothing."""

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        for event in events:
            # Validation
            if event.event_type not in ALLOWED_EVENTS:
                raise ValueError(f"Invalid event type: {event.event_type}")
            if not event.app_guid:
                raise ValueError("Event must have app_guid")

            self.record(event)

            logger.info(f"[EVENT] {event.event_type} | app={event.app_guid}")

    def record(self, event: DeploymentEvent) -> None:
        pass


class RecordingEventEmitter(LoggingEventEmitter):
    """Logs events and stores them in memory."""

    def __init__(self):
        self.events = []

    def record(self, event: DeploymentEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str):
        """Stored events with the given type, oldest first."""
        return [e for e in self.events if e.event_type == event_type]


class MultiEventEmitter:
    """Fan-out to multiple emitters."""

    def __init__(self, emitters: Iterable[EventEmitter]):
        self._emitters = list(emitters)

    def emit(self, events: Iterable[DeploymentEvent]):
        """Emit to all emitters."""
        events = list(events)
        for emitter in self._emitters:
            emitter.emit(events)


class NullEventEmitter(EventEmitter):
    """No-op emitter (used when events are not needed)."""

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        """Do nothing."""
        pass
