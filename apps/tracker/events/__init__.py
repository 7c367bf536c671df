"""Event schemas and bus for deployment lifecycle notifications."""

from .schemas import EventType, BaseEvent, DeploymentEvent, TOPICS
from .bus import BaseEventBus, InMemoryEventBus, RedisEventBus, create_event_bus

__all__ = [
    # Schemas
    "EventType",
    "BaseEvent",
    "DeploymentEvent",
    "TOPICS",
    # Bus
    "BaseEventBus",
    "InMemoryEventBus",
    "RedisEventBus",
    "create_event_bus",
]
