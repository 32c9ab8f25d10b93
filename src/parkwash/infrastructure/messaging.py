# File: src/parkwash/infrastructure/messaging.py
"""
Messaging Infrastructure for the ParkWash Engine

1. Event Bus - intra-process publish/subscribe of domain events
2. Redis forwarding - relays events to a Redis channel for other processes

Handlers run synchronously after the business operation has committed.
A failing handler is logged and never aborts the operation that raised
the event.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Union, Callable, Optional
import json
import logging
import threading

import redis

from ..domain.models import DomainEvent

ALL_EVENTS = "*"


# ============================================================================
# EVENT HANDLERS
# ============================================================================

class EventHandler(ABC):
    """Abstract base class for event handlers"""

    @abstractmethod
    def handle(self, event: DomainEvent) -> None:
        """Handle a domain event"""
        pass

    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the event"""
        return True


class CallbackHandler(EventHandler):
    """Adapts a plain callable to the EventHandler interface"""

    def __init__(self, callback: Callable[[DomainEvent], None]):
        self.callback = callback

    def handle(self, event: DomainEvent) -> None:
        self.callback(event)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CallbackHandler) and other.callback == self.callback

    def __hash__(self) -> int:
        return hash(self.callback)


HandlerLike = Union[EventHandler, Callable[[DomainEvent], None]]


# ============================================================================
# EVENT BUS (In-memory)
# ============================================================================

class EventBus:
    """
    In-memory event bus for intra-process event publishing

    Subscribe by event_type (e.g. "wash.completed") or by ALL_EVENTS.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[EventHandler]] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def _as_handler(handler: HandlerLike) -> EventHandler:
        return handler if isinstance(handler, EventHandler) else CallbackHandler(handler)

    def subscribe(self, event_type: str, handler: HandlerLike) -> None:
        """Subscribe to events of a specific type"""
        handler = self._as_handler(handler)
        with self._lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)
                self._logger.debug(f"Subscribed {handler.__class__.__name__} to {event_type}")

    def unsubscribe(self, event_type: str, handler: HandlerLike) -> None:
        """Unsubscribe handler from events"""
        handler = self._as_handler(handler)
        with self._lock:
            if handler in self._subscribers.get(event_type, []):
                self._subscribers[event_type].remove(handler)
                self._logger.debug(f"Unsubscribed {handler.__class__.__name__} from {event_type}")

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers"""
        self._logger.info(f"Publishing event: {event.event_type} (ID: {event.event_id})")

        with self._lock:
            handlers = list(self._subscribers.get(event.event_type, []))
            handlers += self._subscribers.get(ALL_EVENTS, [])

        for handler in handlers:
            if handler.can_handle(event):
                try:
                    handler.handle(event)
                    self._logger.debug(f"Event handled by {handler.__class__.__name__}")
                except Exception as e:
                    self._logger.error(
                        f"Error handling event {event.event_type} with {handler.__class__.__name__}: {e}"
                    )

    def publish_all(self, events: List[DomainEvent]) -> None:
        for event in events:
            self.publish(event)

    def clear_subscribers(self) -> None:
        """Clear all subscribers (for testing)"""
        with self._lock:
            self._subscribers.clear()


# ============================================================================
# REDIS FORWARDING
# ============================================================================

class RedisEventForwarder(EventHandler):
    """
    Relays every event it receives to a Redis Pub/Sub channel
    Channel name: <channel_prefix><event_type>
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        channel_prefix: str = "parkwash.",
        client: Optional[redis.Redis] = None,
        **kwargs
    ):
        self.redis_url = redis_url
        self.channel_prefix = channel_prefix
        self.redis_client = client or redis.Redis.from_url(redis_url, **kwargs)
        self._logger = logging.getLogger(self.__class__.__name__)

    def handle(self, event: DomainEvent) -> None:
        channel = f"{self.channel_prefix}{event.event_type}"
        receivers = self.redis_client.publish(channel, json.dumps(event.to_dict()))
        self._logger.debug(f"Forwarded {event.event_id} to {channel} ({receivers} receivers)")

    def close(self):
        self.redis_client.close()
