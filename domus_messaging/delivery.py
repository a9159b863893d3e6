# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Realtime fan-out of newly appended messages to thread subscribers.

Delivery is at-least-once to subscriptions active at publish time, in
publication order per thread. Nothing is replayed for subscribers that
join later; they backfill through the message log and drop duplicates by
message id.
"""

import logging
import queue
import threading
import uuid
from typing import Callable, Dict, Iterator, List, Optional

from domus_message_bus import EventPublisher
from domus_metrics import MetricsCollector

from .events import MESSAGE_POSTED_ROUTING_KEY, MessagePostedEvent
from .models import Message

logger = logging.getLogger(__name__)

DeliveryCallback = Callable[[Message], None]

_CLOSED = object()


class Subscription:
    """A cancelable registration for one thread's new messages.

    With a callback, messages are handed to it synchronously during
    publish. Without one, they are queued and the subscription can be
    iterated; iteration ends once the subscription is cancelled.
    """

    def __init__(self, channel: "DeliveryChannel", thread_id: str, callback: Optional[DeliveryCallback] = None):
        self.id = str(uuid.uuid4())
        self.thread_id = thread_id
        self.callback = callback
        self._channel = channel
        self._active = True
        self._queue: "queue.Queue" = queue.Queue()

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        self._channel.unsubscribe(self)

    def _close(self) -> None:
        if self._active:
            self._active = False
            self._queue.put(_CLOSED)

    def _deliver(self, message: Message) -> None:
        if self.callback is not None:
            self.callback(message)
        else:
            self._queue.put(message)

    def get(self, timeout: Optional[float] = None) -> Optional[Message]:
        """Next queued message, or None on timeout or after cancellation."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            self._queue.put(_CLOSED)
            return None
        return item

    def __iter__(self) -> Iterator[Message]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                self._queue.put(_CLOSED)
                return
            yield item

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class DeliveryChannel:
    """Per-thread registry of subscriptions plus the publish fan-out.

    The registry lock is never held while subscriber callbacks run, so a
    callback may unsubscribe itself (or anyone else) without deadlocking.
    Cancelled handles are skipped and pruned on the next publish.

    When ``publisher`` is given, every published message is also sent to
    the message bus as a ``MessagePosted`` insert-event so that other
    processes can fan it out to their own subscribers.
    """

    def __init__(
        self,
        publisher: Optional[EventPublisher] = None,
        exchange: str = "domus.events",
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self.publisher = publisher
        self.exchange = exchange
        self.metrics_collector = metrics_collector
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

        self.messages_published = 0
        self.deliveries_failed = 0

    def subscribe(self, thread_id: str, callback: Optional[DeliveryCallback] = None) -> Subscription:
        subscription = Subscription(self, thread_id, callback)
        with self._lock:
            self._subscribers.setdefault(thread_id, []).append(subscription)
        logger.debug("Subscription %s registered for thread %s", subscription.id, thread_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Stop delivering to ``subscription``. Safe from inside a callback."""
        subscription._close()
        logger.debug("Subscription %s cancelled", subscription.id)

    def subscriber_count(self, thread_id: str) -> int:
        with self._lock:
            return sum(1 for s in self._subscribers.get(thread_id, ()) if s.active)

    def publish(self, thread_id: str, message: Message) -> None:
        """Hand ``message`` to every active subscriber of the thread.

        A failing subscriber is logged and counted; it never affects the
        others or the already committed message.
        """
        with self._lock:
            handles = self._subscribers.get(thread_id, [])
            live = [s for s in handles if s.active]
            if live:
                self._subscribers[thread_id] = live
            else:
                self._subscribers.pop(thread_id, None)

        for subscription in live:
            if not subscription.active:
                continue
            try:
                subscription._deliver(message)
            except Exception as e:
                self.deliveries_failed += 1
                logger.warning(
                    "Delivery of message %s to subscription %s failed: %s",
                    message.id, subscription.id, e, exc_info=True,
                )
                if self.metrics_collector:
                    self.metrics_collector.increment(
                        "messaging_delivery_failures_total", tags={"target": "subscriber"}
                    )

        self.messages_published += 1
        self._publish_insert_event(message)

    def _publish_insert_event(self, message: Message) -> None:
        if self.publisher is None:
            return
        event = MessagePostedEvent.from_message(message)
        try:
            self.publisher.publish(self.exchange, MESSAGE_POSTED_ROUTING_KEY, event.to_dict())
        except Exception as e:
            self.deliveries_failed += 1
            logger.error("Failed to publish MessagePosted for %s: %s", message.id, e)
            if self.metrics_collector:
                self.metrics_collector.increment(
                    "messaging_delivery_failures_total", tags={"target": "message_bus"}
                )
