"""Event bus abstraction: publish/subscribe for deployment events.

- BaseEventBus defines the interface (publish, subscribe, close)
- InMemoryEventBus fans events out inside the process (default, tests)
- RedisEventBus uses Redis Pub/Sub so other services can listen

Application code only talks to the interface. Switch backends with the
`event_bus_backend` setting.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Awaitable

import redis.asyncio as redis

from .schemas import BaseEvent

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[[dict], Awaitable[None]]


class BaseEventBus(ABC):
    """Abstract event bus: all implementations must follow this interface."""

    @abstractmethod
    async def publish(self, topic: str, event: BaseEvent) -> None:
        """Publish an event to a topic.

        Args:
            topic: Topic name, e.g. "deployments.started"
            event: Event object to publish
        """
        ...

    @abstractmethod
    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Subscribe to a topic with a handler function.

        Args:
            topic: Topic name to listen to
            handler: Async function called with the event dict
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup resources."""
        ...


class InMemoryEventBus(BaseEventBus):
    """In-process event bus.

    Handlers run inline in publish(). Every published event is also kept in
    `published` as (topic, event_dict) so tests can inspect what went out.
    """

    def __init__(self, history_size: int = 1000):
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._history_size = history_size
        self.published: list[tuple[str, dict]] = []

    async def publish(self, topic: str, event: BaseEvent) -> None:
        event_dict = event.to_dict()
        self.published.append((topic, event_dict))
        if len(self.published) > self._history_size:
            del self.published[0]

        for handler in list(self._handlers.get(topic, [])):
            try:
                await handler(event_dict)
            except Exception as e:
                logger.error("Handler error for topic '%s': %s", topic, e)

        logger.debug("Published %s to topic '%s'", event.event_type.value, topic)

    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        self._handlers[topic].append(handler)
        logger.info("Subscribed to topic '%s'", topic)

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.published]

    async def close(self) -> None:
        self._handlers.clear()


class RedisEventBus(BaseEventBus):
    """Redis Pub/Sub implementation of the event bus.

    Each subscription owns its PubSub connection and listen task, so a
    message on one channel is only ever read by that channel's loop.

    No durability: a subscriber that is down when an event is published
    misses it. Clients that need the authoritative state still poll
    GET /deployments/{id}.
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client: redis.Redis | None = None
        self._subscriptions: list[tuple[redis.client.PubSub, asyncio.Task]] = []

    async def _ensure_connected(self):
        """Lazy connection: only connect when first needed."""
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
            logger.info("Connected to Redis at %s", self._redis_url)

    async def publish(self, topic: str, event: BaseEvent) -> None:
        await self._ensure_connected()
        event_json = json.dumps(event.to_dict())
        await self._client.publish(topic, event_json)
        logger.debug("Published %s to topic '%s'", event.event_type.value, topic)

    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Subscribe to a Redis channel and call handler for each message in a background task."""
        await self._ensure_connected()

        pubsub = self._client.pubsub()
        await pubsub.subscribe(topic)
        logger.info("Subscribed to topic '%s'", topic)

        task = asyncio.create_task(self._listen_loop(pubsub, topic, handler))
        self._subscriptions.append((pubsub, task))

    async def _listen_loop(self, pubsub: redis.client.PubSub, topic: str, handler: EventHandler):
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event_dict = json.loads(message["data"])
                    await handler(event_dict)
                except json.JSONDecodeError:
                    logger.error("Invalid JSON in topic '%s': %s", topic, message["data"])
                except Exception as e:
                    logger.error("Handler error for topic '%s': %s", topic, e)

        except asyncio.CancelledError:
            logger.info("Subscriber for topic '%s' cancelled", topic)
        except Exception as e:
            logger.error("Listen loop error for topic '%s': %s", topic, e)

    async def close(self) -> None:
        """Close Redis connections and cancel all subscriber tasks."""
        tasks = [task for _, task in self._subscriptions]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        for pubsub, _ in self._subscriptions:
            await pubsub.aclose()
        self._subscriptions.clear()
        if self._client:
            await self._client.aclose()

        logger.info("Redis event bus closed")


# ── Factory ───────────────────────────────────────────

def create_event_bus(backend: str = "memory", **kwargs) -> BaseEventBus:
    """Create an event bus instance based on config.

    Args:
        backend: "memory" or "redis"
        **kwargs: Backend-specific config (redis_url, history_size)

    Usage:
        event_bus = create_event_bus("redis", redis_url="redis://localhost:6379")
    """
    if backend == "memory":
        return InMemoryEventBus(history_size=kwargs.get("history_size", 1000))

    elif backend == "redis":
        redis_url = kwargs.get("redis_url")
        if not redis_url:
            raise ValueError("redis_url required for Redis event bus")
        return RedisEventBus(redis_url)

    else:
        raise ValueError(f"Unknown event bus backend: {backend}")
