"""Event-driven communication for the timer engine.

Provides the publish/subscribe bus the scheduler announces state
transitions on, and that the audio and persistence collaborators listen to.
"""

import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger("supervisor")


class MessageType(Enum):
    """Enumeration of message types published by the timer engine."""

    RUNTIME_STATE_CHANGED = "runtime_state_changed"
    NODE_RUNNING = "node_running"
    NODE_COMPLETED = "node_completed"


class MessageBus:
    """Thread-safe message bus for event-driven communication.

    Delivery is synchronous: ``publish`` returns after every subscriber has
    been called, in subscription order. A failing subscriber is logged and
    skipped; its exception never reaches the publisher.
    """

    def __init__(self):
        """Initialize the MessageBus with an empty subscriber registry."""
        self._subscribers: dict[str, dict[Any, list[Callable]]] = {}
        self._lock = threading.Lock()
        self._running = False

    def start(self):
        """Start the message bus so published messages are delivered."""
        self._running = True
        logger.info("MessageBus started")

    def stop(self):
        """Stop delivering messages until started again."""
        self._running = False

    def is_running(self) -> bool:
        """Check if the message bus is currently delivering messages.

        Returns:
            bool: True if published messages reach subscribers.
        """
        return self._running

    def publish(self, publisher, message_type, message: Any):
        """Publish a message to all subscribers of ``message_type``.

        Coroutine callbacks are scheduled on the running event loop if there
        is one, otherwise run to completion before the next subscriber.

        Args:
            publisher: The entity publishing the message (for logging).
            message_type: MessageType enum member or plain string.
            message: The message content delivered to subscribers.
        """
        event_type = _event_key(message_type)

        if not self.is_running():
            return

        with self._lock:
            if event_type not in self._subscribers:
                return
            # Copy so callbacks may subscribe or unsubscribe while we deliver.
            subscribers_copy = {
                subscriber: list(callbacks)
                for subscriber, callbacks in self._subscribers[event_type].items()
            }

        logger.debug(f"Publishing message: [{event_type}] {message}")

        for subscriber, callbacks in subscribers_copy.items():
            for callback in callbacks:
                callback_name = getattr(callback, "__name__", "unknown_callback")
                try:
                    if asyncio.iscoroutinefunction(callback):
                        self._run_async_callback(callback, message)
                    else:
                        callback(message)
                except Exception as e:
                    logger.error(
                        f"Error in callback {callback_name} of {subscriber} "
                        f"for [{event_type}] from {_describe(publisher)}: {e}"
                    )

    def _run_async_callback(self, callback: Callable, message: Any):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            asyncio.run(callback(message))
            return

        task = loop.create_task(callback(message))
        task.add_done_callback(_log_task_failure)

    def subscribe(self, subscriber, message_type, callback: Callable):
        """Register ``callback`` for messages of ``message_type``.

        Args:
            subscriber: The entity subscribing (used as registry key).
            message_type: MessageType enum member or plain string.
            callback: Called with the message as its only argument.
        """
        event_type = _event_key(message_type)

        with self._lock:
            callbacks = self._subscribers.setdefault(event_type, {}).setdefault(
                subscriber, []
            )
            callbacks.append(callback)

        logger.info(f"Subscribed {_describe(subscriber)} to event '{event_type}'")

    def unsubscribe(self, subscriber, message_type, callback: Optional[Callable] = None):
        """Remove a subscriber's callback(s) for ``message_type``.

        If no callback is given, every callback of the subscriber for that
        message type is removed.
        """
        event_type = _event_key(message_type)

        with self._lock:
            registry = self._subscribers.get(event_type)
            if not registry or subscriber not in registry:
                return

            if callback is None:
                del registry[subscriber]
            else:
                registry[subscriber] = [cb for cb in registry[subscriber] if cb != callback]
                if not registry[subscriber]:
                    del registry[subscriber]

    def subscriber_count(self, message_type) -> int:
        """Return the number of callbacks registered for ``message_type``."""
        with self._lock:
            registry = self._subscribers.get(_event_key(message_type), {})
            return sum(len(callbacks) for callbacks in registry.values())


def _event_key(message_type) -> str:
    if isinstance(message_type, MessageType):
        return message_type.value
    return message_type


def _describe(entity) -> str:
    if entity is None:
        return "unknown"
    if isinstance(entity, str):
        return entity
    return entity.__class__.__name__


def _log_task_failure(task: "asyncio.Task"):
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"Error in async callback: {task.exception()}")
