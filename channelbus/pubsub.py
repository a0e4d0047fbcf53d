# channelbus/pubsub.py
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

from . import metrics
from .config import TOPIC_SEPARATOR, UNDECLARED_CHANNEL_LABEL, PubSubConfig, get_config
from .dispatch import DispatchSurface, DispatchSurfaceError, resolve_dispatch_surface
from .schemas import ChannelDefinition, ChannelShape, Event, OverflowPolicy
from .subscription import Subscription

EventFactory = Callable[[str, Any], Any]
ChannelMap = Mapping[str, Union[ChannelDefinition, ChannelShape, str]]

NOT_CALLABLE_EVENT_FACTORY_ERROR = (
    "[channelbus] event_factory must be callable as event_factory(topic, data) "
    "and return an object exposing a 'data' attribute, got {factory!r}."
)


def resolve_topic(key: str, identifier: Any = None) -> str:
    """Topic string for a channel key, qualified by the identifier when one is given."""
    if identifier is None:
        return key
    return f"{key}{TOPIC_SEPARATOR}{identifier}"


def build_event(topic: str, data: Any = None) -> Event:
    return Event(topic=topic, data=data)


class ChannelPubSub:
    """Publishes synchronous events and hands out async subscriptions, multiplexed by topic."""

    def __init__(
        self,
        surface: DispatchSurface,
        event_factory: EventFactory,
        config: PubSubConfig,
        channels: Dict[str, ChannelDefinition],
    ):
        self.surface = surface
        self.config = config
        self._event_factory = event_factory
        self._channels = channels

    @property
    def channels(self) -> Dict[str, ChannelDefinition]:
        return dict(self._channels)

    def channel(self, key: str) -> Optional[ChannelDefinition]:
        return self._channels.get(key)

    def _channel_label(self, key: str) -> str:
        if self._channels and key not in self._channels:
            return UNDECLARED_CHANNEL_LABEL
        return key

    def publish(self, key: str, *args: Any) -> None:
        """
        Fire an event on the channel.

        publish(key) sends no payload, publish(key, payload) sends to the plain
        topic and publish(key, identifier, payload) sends to "key:identifier".
        Listeners run before this returns. Without listeners the event is dropped.
        """
        if len(args) >= 2:
            topic = resolve_topic(key, args[0])
            payload = args[1]
        else:
            topic = key
            payload = args[0] if args else None

        event = self._event_factory(topic, payload)
        delivered = self.surface.dispatch(topic, event)

        label = self._channel_label(key)
        if self.config.metrics_enabled:
            metrics.EVENTS_PUBLISHED.labels(channel=label).inc()
        if not isinstance(delivered, int):
            return
        if delivered == 0:
            logging.debug("[PubSub] No subscribers on '%s', event dropped", topic)
            if self.config.metrics_enabled:
                metrics.EVENTS_DROPPED.labels(channel=label, reason="no_subscribers").inc()
        elif self.config.metrics_enabled:
            metrics.EVENTS_DELIVERED.labels(channel=label).inc(delivered)

    def subscribe(
        self,
        key: str,
        identifier: Any = None,
        *,
        max_queue_size: Optional[int] = None,
        overflow_policy: Optional[OverflowPolicy] = None,
    ) -> Subscription:
        """Return a new lazy subscription for the channel, or for one identifier on it."""
        if max_queue_size is None:
            max_queue_size = self.config.max_queue_size
        if max_queue_size < 0:
            raise ValueError(f"max_queue_size must be >= 0, got {max_queue_size}")

        return Subscription(
            self.surface,
            resolve_topic(key, identifier),
            channel_label=self._channel_label(key),
            max_queue_size=max_queue_size,
            overflow_policy=overflow_policy or self.config.overflow_policy,
            metrics_enabled=self.config.metrics_enabled,
        )


def _normalize_channels(channels: Optional[ChannelMap]) -> Dict[str, ChannelDefinition]:
    normalized: Dict[str, ChannelDefinition] = {}
    for key, value in (channels or {}).items():
        if isinstance(value, ChannelDefinition):
            normalized[key] = value if value.key == key else value.model_copy(update={"key": key})
        else:
            normalized[key] = ChannelDefinition(key=key, shape=ChannelShape(value))
    return normalized


def create_pubsub(
    channels: Optional[ChannelMap] = None,
    *,
    dispatch_surface: Optional[Any] = None,
    event_factory: Optional[EventFactory] = None,
    config: Optional[PubSubConfig] = None,
) -> ChannelPubSub:
    """
    Utility for publishing and subscribing to events.

    ``channels`` declares the channel keys and their argument shapes. Without a
    ``dispatch_surface`` an in-memory one is created; pass a shared or
    distributed surface to connect several engines.
    """
    config = config or get_config()
    surface = resolve_dispatch_surface(dispatch_surface)

    factory = build_event if event_factory is None else event_factory
    if not callable(factory):
        raise DispatchSurfaceError(NOT_CALLABLE_EVENT_FACTORY_ERROR.format(factory=factory))

    pubsub = ChannelPubSub(surface, factory, config, _normalize_channels(channels))
    logging.info(
        "[PubSub] '%s' ready with %d declared channels on %s",
        config.name,
        len(pubsub.channels),
        type(surface).__name__,
    )
    return pubsub
