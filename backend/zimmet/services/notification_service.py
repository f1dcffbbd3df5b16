# Overview: In-process pub/sub for "your transactions changed" signals, one channel per user.

"""
Notification relay.

Each open stream subscribes a queue under its user id; publishing puts one
event on every queue of that user. Delivery is advisory: clients refetch
their data on any event, so a lost or duplicated event is harmless. Nothing
here can make a ledger operation fail.

WHY in-process: the service runs as one process behind a threaded WSGI
server. A multi-process deployment would need a shared broker instead.
"""
from __future__ import annotations

import logging
import queue
import threading


logger = logging.getLogger(__name__)

TRANSACTION_UPDATE = "TRANSACTION_UPDATE"

# Events beyond this are dropped for a slow subscriber; one pending event already triggers a refetch
SUBSCRIBER_QUEUE_SIZE = 100


class NotificationHub:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[str, set[queue.Queue]] = {}

    def subscribe(self, user_id: str) -> queue.Queue:
        q = queue.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        with self._lock:
            self._subscribers.setdefault(user_id, set()).add(q)
        logger.debug("Notification stream opened for user %s", user_id)
        return q

    def unsubscribe(self, user_id: str, q: queue.Queue) -> None:
        with self._lock:
            queues = self._subscribers.get(user_id)
            if not queues:
                return
            queues.discard(q)
            if not queues:
                del self._subscribers[user_id]
        logger.debug("Notification stream closed for user %s", user_id)

    def subscriber_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, ()))

    def publish(self, user_id: str, event: dict) -> int:
        """Queue event for every stream of user_id. Returns how many streams got it."""
        with self._lock:
            queues = list(self._subscribers.get(user_id, ()))

        delivered = 0
        for q in queues:
            try:
                q.put_nowait(event)
                delivered += 1
            except queue.Full:
                logger.warning("Notification queue full for user %s; event dropped", user_id)
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()


hub = NotificationHub()


def notify_user(user_id: str | None) -> None:
    if not user_id:
        return
    hub.publish(user_id, {"type": TRANSACTION_UPDATE})


def notify_users(*user_ids) -> None:
    """
    Signal each distinct user once. Called after commit.

    Failures are logged and swallowed: the ledger change is already durable.
    """
    for user_id in dict.fromkeys(uid for uid in user_ids if uid):
        try:
            notify_user(user_id)
        except Exception:
            logger.exception("Failed to notify user %s", user_id)
