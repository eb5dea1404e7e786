"""
core.realtime — Push-on-write delivery of record snapshots.

A ``SubscriptionHub`` keeps in-process subscriptions keyed by channel
name.  Apps publish the **full serialized state** of a record after every
committed write; subscribers never receive diffs.

Delivery guarantees
-------------------
* At-least-once: a new subscription first receives the current state of
  every record it may see (initial sync), then every later write.  The
  same snapshot may therefore arrive twice.
* Ordered by commit, not by call: publishing is deferred with
  ``transaction.on_commit``, so two concurrent writers reach subscribers
  in whatever order their transactions committed.
* Isolated: a failing subscriber callback is logged and never affects
  the writer or other subscribers.

Usage::

    from core.realtime import hub

    # writer side (typically a post_save receiver)
    hub.publish_on_commit("complaints", complaint.pk, lambda: build_snapshot(complaint.pk))

    # reader side
    with hub.subscribe("complaints", predicate=is_visible) as sub:
        push = sub.get(timeout=15)
"""

from __future__ import annotations

import itertools
import json
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

logger = logging.getLogger(__name__)

COMPLAINTS_CHANNEL = "complaints"

Snapshot = dict[str, Any]
Predicate = Callable[[Snapshot], bool]


def notifications_channel(recipient_id: int) -> str:
    """Channel carrying the notifications of one recipient."""
    return f"notifications:{recipient_id}"


@dataclass(frozen=True)
class Push:
    """One snapshot travelling to one subscriber."""

    channel: str
    key: Any
    snapshot: Snapshot

    def as_dict(self) -> dict[str, Any]:
        return {"channel": self.channel, "key": self.key, "snapshot": self.snapshot}


class Subscription:
    """
    A single consumer attached to one channel.

    Pushes are either handed to ``callback`` synchronously or buffered in
    a bounded queue for the consumer to ``get``.  When the queue is full
    the oldest buffered push is discarded.
    """

    _ids = itertools.count(1)

    def __init__(
        self,
        hub: SubscriptionHub,
        channel: str,
        *,
        predicate: Predicate | None = None,
        callback: Callable[[Push], None] | None = None,
        maxsize: int | None = None,
    ) -> None:
        self.id = next(self._ids)
        self.channel = channel
        self.predicate = predicate
        self.callback = callback
        self.closed = False
        self._hub = hub
        if maxsize is None:
            maxsize = getattr(settings, "HOSTELFIX_REALTIME_QUEUE_SIZE", 256)
        self._queue: queue.Queue[Push] = queue.Queue(maxsize=maxsize)

    def offer(self, push: Push) -> bool:
        """Deliver ``push`` if it passes the predicate.  Returns whether it did."""
        if self.closed:
            return False
        if self.predicate is not None and not self.predicate(push.snapshot):
            return False
        if self.callback is not None:
            self.callback(push)
            return True
        try:
            self._queue.put_nowait(push)
        except queue.Full:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            logger.warning(
                "Subscription %d on %s overflowed; dropped oldest push",
                self.id,
                self.channel,
            )
            self._queue.put_nowait(push)
        return True

    def get(self, timeout: float | None = None) -> Push | None:
        """Block up to ``timeout`` seconds for the next push."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[Push]:
        """Return every buffered push without blocking."""
        pushes: list[Push] = []
        while True:
            try:
                pushes.append(self._queue.get_nowait())
            except queue.Empty:
                return pushes

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._hub.unsubscribe(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class SubscriptionHub:
    """Thread-safe registry of subscriptions, grouped by channel."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: dict[str, dict[int, Subscription]] = {}

    def subscribe(
        self,
        channel: str,
        *,
        predicate: Predicate | None = None,
        callback: Callable[[Push], None] | None = None,
        initial: Iterable[tuple[Any, Snapshot]] = (),
        maxsize: int | None = None,
    ) -> Subscription:
        """
        Attach a new subscription to ``channel``.

        ``initial`` holds ``(key, snapshot)`` pairs describing the current
        state; they are offered to the new subscriber before any later
        publish can reach it.
        """
        subscription = Subscription(
            self,
            channel,
            predicate=predicate,
            callback=callback,
            maxsize=maxsize,
        )
        with self._lock:
            self._channels.setdefault(channel, {})[subscription.id] = subscription
            for key, snapshot in initial:
                self._offer(subscription, Push(channel, key, snapshot))
        logger.debug("Subscription %d opened on %s", subscription.id, channel)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._channels.get(subscription.channel, {})
            subscribers.pop(subscription.id, None)
            if not subscribers:
                self._channels.pop(subscription.channel, None)
        logger.debug("Subscription %d closed on %s", subscription.id, subscription.channel)

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._channels.get(channel, {}))

    def publish(self, channel: str, key: Any, snapshot: Snapshot) -> int:
        """
        Offer a snapshot to every subscriber of ``channel``.

        Returns:
            How many subscribers accepted it.
        """
        push = Push(channel, key, snapshot)
        with self._lock:
            subscribers = list(self._channels.get(channel, {}).values())
            return sum(1 for sub in subscribers if self._offer(sub, push))

    def publish_on_commit(
        self,
        channel: str,
        key: Any,
        build_snapshot: Callable[[], Snapshot | None],
    ) -> None:
        """
        Publish once the surrounding transaction commits.

        The snapshot is built at commit time so subscribers see the
        committed state.  ``build_snapshot`` may return ``None`` to skip.
        """

        def _publish() -> None:
            if not self.subscriber_count(channel):
                return
            try:
                snapshot = build_snapshot()
            except Exception:
                logger.exception("Could not build snapshot for %s/%s", channel, key)
                return
            if snapshot is not None:
                self.publish(channel, key, snapshot)

        transaction.on_commit(_publish)

    @staticmethod
    def _offer(subscription: Subscription, push: Push) -> bool:
        try:
            return subscription.offer(push)
        except Exception:
            logger.exception(
                "Subscriber %d on %s failed to accept push for key %s",
                subscription.id,
                push.channel,
                push.key,
            )
            return False


def sse_frames(
    subscription: Subscription,
    *,
    heartbeat: float | None = None,
) -> Iterator[str]:
    """
    Render a subscription as a server-sent-event stream.

    Yields one ``event: snapshot`` frame per push and a comment line
    every ``heartbeat`` seconds of silence.  Closes the subscription when
    the client goes away.
    """
    if heartbeat is None:
        heartbeat = getattr(settings, "HOSTELFIX_REALTIME_HEARTBEAT_SECONDS", 15)
    try:
        yield "retry: 3000\n\n"
        while not subscription.closed:
            push = subscription.get(timeout=heartbeat)
            if push is None:
                yield ": keep-alive\n\n"
                continue
            data = json.dumps(push.as_dict(), cls=DjangoJSONEncoder)
            yield f"event: snapshot\nid: {push.channel}:{push.key}\ndata: {data}\n\n"
    finally:
        subscription.close()


hub = SubscriptionHub()
