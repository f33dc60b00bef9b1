"""Domain event bus."""

from .events import DomainEvent, EventBus, EventHandler

__all__ = ["DomainEvent", "EventBus", "EventHandler"]
