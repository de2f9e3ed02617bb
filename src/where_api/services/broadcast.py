"""Fan-out of completed steps to connected map observers."""

import asyncio
import itertools
import json
import logging
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_subscriber_ids = itertools.count(1)


@dataclass(eq=False)
class Subscriber:
    """Handle for one observer connection and its outbound queue."""

    queue: asyncio.Queue[str]
    loop: asyncio.AbstractEventLoop
    id: int = field(default_factory=lambda: next(_subscriber_ids))
    closed: bool = False


@dataclass
class BroadcastHub:
    """Thread-safe registry of observers.

    `publish` only enqueues; each connection drains its own queue through
    `deliver`, so a slow observer never delays the publisher or the others.
    Queues belong to the loop serving the connection, and publishes coming
    from another loop or thread are handed over with `call_soon_threadsafe`.
    """

    queue_size: int = 100
    send_timeout_seconds: float = 5.0
    _subscribers: set[Subscriber] = field(default_factory=set, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscriber:
        """Register a new observer served by the running event loop."""
        subscriber = Subscriber(
            queue=asyncio.Queue(maxsize=self.queue_size),
            loop=asyncio.get_running_loop(),
        )
        with self._lock:
            self._subscribers.add(subscriber)
            total = len(self._subscribers)
        logger.info(
            "Observer connected",
            extra={"subscriber_id": subscriber.id, "total": total},
        )
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove an observer; repeated calls are no-ops."""
        with self._lock:
            if subscriber.closed:
                return
            subscriber.closed = True
            self._subscribers.discard(subscriber)
            total = len(self._subscribers)
        logger.info(
            "Observer disconnected",
            extra={"subscriber_id": subscriber.id, "total": total},
        )

    def publish(self, feature: dict[str, object]) -> int:
        """Queue a feature for every observer; return how many were reached."""
        try:
            message = json.dumps(feature)
        except (TypeError, ValueError):
            logger.exception("Cannot serialize broadcast feature")
            return 0
        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None
        with self._lock:
            subscribers = list(self._subscribers)

        reached = 0
        for subscriber in subscribers:
            if subscriber.loop is current_loop:
                if self._offer(subscriber, message):
                    reached += 1
                continue
            try:
                subscriber.loop.call_soon_threadsafe(self._offer, subscriber, message)
            except RuntimeError:
                # Loop already closed.
                self.unsubscribe(subscriber)
                continue
            reached += 1
        return reached

    async def deliver(
        self, subscriber: Subscriber, send: Callable[[str], Awaitable[None]]
    ) -> None:
        """Send queued messages in order until a send fails or times out."""
        try:
            while not subscriber.closed:
                message = await subscriber.queue.get()
                await asyncio.wait_for(send(message), self.send_timeout_seconds)
        except TimeoutError:
            logger.warning(
                "Observer send timed out", extra={"subscriber_id": subscriber.id}
            )
        except Exception:
            logger.info(
                "Observer send failed",
                extra={"subscriber_id": subscriber.id},
                exc_info=True,
            )
        finally:
            self.unsubscribe(subscriber)

    def _offer(self, subscriber: Subscriber, message: str) -> bool:
        if subscriber.closed:
            return False
        try:
            subscriber.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(
                "Dropping broadcast for slow observer",
                extra={"subscriber_id": subscriber.id},
            )
            return False
        return True
