"""Domain events for the modeling service.

Events are published after a transaction commits. Delivery is in-process
and at-most-once: a failing subscriber is logged and skipped, never
retried, and never affects the operation that produced the event.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Union

from openmodel.domain.models.enums import EventAction
from openmodel.infrastructure.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[["DomainEvent"], Union[None, Awaitable[None]]]


@dataclass
class DomainEvent:
    """A committed change to one entity."""

    entity_kind: str
    entity_id: int
    action: EventAction
    layer: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def topic(self) -> str:
        return f"{self.entity_kind}.{self.action.value}"


class EventBus:
    """In-process publish/subscribe bus for domain events."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}

    def subscribe(self, handler: EventHandler, entity_kind: str = "*") -> None:
        """Register a handler for one entity kind, or every kind with "*"."""
        self._subscribers.setdefault(entity_kind, []).append(handler)

    def unsubscribe(self, handler: EventHandler, entity_kind: str = "*") -> None:
        handlers = self._subscribers.get(entity_kind, [])
        if handler in handlers:
            handlers.remove(handler)

    def _handlers_for(self, event: DomainEvent) -> list[EventHandler]:
        return [
            *self._subscribers.get(event.entity_kind, []),
            *self._subscribers.get("*", []),
        ]

    async def publish(self, event: DomainEvent) -> int:
        """
        Deliver an event to its subscribers.

        Returns:
            Number of handlers that completed without error
        """
        delivered = 0
        for handler in self._handlers_for(event):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.warning_with_context(
                    f"Event handler failed for {event.topic}: {e}",
                    context={"entity_id": event.entity_id, "handler": getattr(handler, "__name__", repr(handler))},
                )
        return delivered

    async def publish_all(self, events: list[DomainEvent]) -> None:
        for event in events:
            await self.publish(event)
