from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from ..errors import SubscriptionClosed
from .models import Prediction, Reading


logger = logging.getLogger(__name__)

Message = Dict[str, Any]


def sensor_message(reading: Reading, prediction: Prediction) -> Message:
    return {"type": "sensor_data", "data": reading.to_dict(), "prediction": prediction.to_dict()}


class Subscription:
    """Latest-value mailbox for one push-channel listener.

    Delivery never queues: a slow reader only sees the newest message when it
    next waits. With a callback, delivery invokes it directly instead.
    """

    def __init__(self, sub_id: int, callback: Optional[Callable[[Message], None]] = None) -> None:
        self.id = sub_id
        self._callback = callback
        self._cond = threading.Condition()
        self._pending: Optional[Message] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, message: Message) -> None:
        if self._closed:
            raise SubscriptionClosed(self.id)
        if self._callback is not None:
            self._callback(message)
            return
        with self._cond:
            self._pending = message
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> Optional[Message]:
        """Return the newest undelivered message, or None on timeout or close."""
        with self._cond:
            if self._pending is None and not self._closed:
                self._cond.wait(timeout)
            message, self._pending = self._pending, None
            return message

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class SubscriberRegistry:
    """Fan-out of driver ticks to live subscribers, in registration order."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subs: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def subscribe(self, callback: Optional[Callable[[Message], None]] = None) -> Subscription:
        with self._lock:
            sub = Subscription(next(self._ids), callback)
            self._subs[sub.id] = sub
        logger.info("Subscriber connected", extra={"subscriber": sub.id})
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            removed = self._subs.pop(sub.id, None)
        sub.close()
        if removed is not None:
            logger.info("Subscriber disconnected", extra={"subscriber": sub.id})

    def count(self) -> int:
        with self._lock:
            return len(self._subs)

    def subscribers(self) -> List[Subscription]:
        with self._lock:
            return list(self._subs.values())

    def publish(self, reading: Reading, prediction: Prediction) -> int:
        """Deliver one tick to every subscriber; returns how many received it."""
        message = sensor_message(reading, prediction)
        delivered = 0
        for sub in self.subscribers():
            try:
                sub.deliver(message)
            except Exception:  # noqa: BLE001
                logger.warning("Dropping subscriber after failed delivery", exc_info=True,
                               extra={"subscriber": sub.id})
                self.unsubscribe(sub)
                continue
            delivered += 1
        return delivered
