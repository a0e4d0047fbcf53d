# channelbus/subscription.py
import asyncio
import logging
from typing import Any, Awaitable

from . import metrics
from .dispatch import DispatchSurface
from .schemas import OverflowPolicy, SubscriptionState

# Wakes pending pulls once a subscription is cancelled.
_CLOSED = object()


class Subscription:
    """
    Lazy async sequence of payloads published on a single topic.

    The listener is registered on first pull (or on ``async with`` entry) and
    removed exactly once on cancellation. Payloads published while the consumer
    is busy are buffered in an asyncio.Queue, unbounded unless a size is given.
    """

    def __init__(
        self,
        surface: DispatchSurface,
        topic: str,
        *,
        channel_label: str,
        max_queue_size: int = 0,
        overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST,
        metrics_enabled: bool = True,
    ):
        self.topic = topic
        self.channel_label = channel_label
        self.overflow_policy = OverflowPolicy(overflow_policy)
        self._surface = surface
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=max_queue_size)
        self._state = SubscriptionState.CREATED
        self._metrics_enabled = metrics_enabled
        # Keep one bound method so removal matches the registered callable.
        self._listener = self._on_event

    def __repr__(self) -> str:
        return f"<Subscription topic={self.topic!r} state={self._state.value} pending={self.pending}>"

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is SubscriptionState.CANCELLED

    @property
    def pending(self) -> int:
        """Number of buffered payloads not yet pulled."""
        if self.closed:
            return 0
        return self._queue.qsize()

    def listen(self) -> "Subscription":
        """Register the listener now instead of waiting for the first pull."""
        if self._state is not SubscriptionState.CREATED:
            return self
        self._surface.register_listener(self.topic, self._listener)
        self._state = SubscriptionState.LISTENING
        if self._metrics_enabled:
            metrics.ACTIVE_SUBSCRIPTIONS.labels(channel=self.channel_label).inc()
        logging.debug("[Subscription] Listening on '%s'", self.topic)
        return self

    def cancel(self) -> None:
        """Stop consuming. Idempotent; the listener is removed only on the first call."""
        if self._state is SubscriptionState.CANCELLED:
            return
        was_listening = self._state is SubscriptionState.LISTENING
        self._state = SubscriptionState.CANCELLED

        if was_listening:
            self._surface.remove_listener(self.topic, self._listener)
            if self._metrics_enabled:
                metrics.ACTIVE_SUBSCRIPTIONS.labels(channel=self.channel_label).dec()

        discarded = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            discarded += 1
        self._queue.put_nowait(_CLOSED)
        logging.debug(
            "[Subscription] Cancelled '%s' (%d buffered payloads discarded)", self.topic, discarded
        )

    async def aclose(self) -> None:
        self.cancel()

    def _on_event(self, event: Any) -> None:
        if self._state is not SubscriptionState.LISTENING:
            return
        payload = event.data

        if self._queue.full():
            if self.overflow_policy is OverflowPolicy.DROP_NEWEST:
                self._record_overflow()
                return
            self._queue.get_nowait()
            self._record_overflow()
        self._queue.put_nowait(payload)

    def _record_overflow(self) -> None:
        logging.warning(
            "[Subscription] Buffer full on '%s' (max %d), %s",
            self.topic,
            self._queue.maxsize,
            self.overflow_policy.value,
        )
        if self._metrics_enabled:
            metrics.EVENTS_DROPPED.labels(channel=self.channel_label, reason="overflow").inc()

    def __aiter__(self) -> "Subscription":
        return self

    def __anext__(self) -> Awaitable[Any]:
        # Register when the pull is requested, not when its coroutine first runs.
        self.listen()
        return self._next()

    async def _next(self) -> Any:
        if self._state is SubscriptionState.CANCELLED:
            raise StopAsyncIteration

        try:
            payload = await self._queue.get()
        except asyncio.CancelledError:
            logging.info("[Subscription] Consumer of '%s' was cancelled.", self.topic)
            self.cancel()
            raise

        if payload is _CLOSED:
            # Leave the marker for any other pull waiting on this subscription.
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return payload

    async def __aenter__(self) -> "Subscription":
        return self.listen()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
