# channelbus/dispatch.py
"""Topic-keyed listener registry the channel engine publishes through."""

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

Listener = Callable[[Any], None]

REQUIRED_CAPABILITIES = ("register_listener", "remove_listener", "dispatch")

MISSING_CAPABILITY_ERROR = """
[channelbus] 'create_pubsub' dispatches events through an object providing
register_listener(topic, listener), remove_listener(topic, listener) and
dispatch(topic, event).

The supplied dispatch surface {surface!r} does not provide: {missing}.

Pass a conforming surface, or omit it to use the in-memory default:

    from channelbus.dispatch import InMemoryDispatchSurface
    from channelbus.pubsub import create_pubsub

    pubsub = create_pubsub(dispatch_surface=InMemoryDispatchSurface())
"""


class DispatchSurfaceError(TypeError):
    """Raised at setup time when a dispatch surface or event factory is unusable."""


@runtime_checkable
class DispatchSurface(Protocol):
    def register_listener(self, topic: str, listener: Listener) -> None: ...

    def remove_listener(self, topic: str, listener: Listener) -> None: ...

    def dispatch(self, topic: str, event: Any) -> Optional[int]: ...


class InMemoryDispatchSurface:
    """Synchronous in-process listener registry keyed by topic string."""

    def __init__(self) -> None:
        # Insertion-ordered dicts used as ordered sets of listeners.
        self._listeners: Dict[str, Dict[Listener, None]] = {}

    def register_listener(self, topic: str, listener: Listener) -> None:
        listeners = self._listeners.setdefault(topic, {})
        if listener in listeners:
            return
        listeners[listener] = None
        logging.debug("[Dispatch] Registered listener on '%s' (%d total)", topic, len(listeners))

    def remove_listener(self, topic: str, listener: Listener) -> None:
        listeners = self._listeners.get(topic)
        if not listeners or listener not in listeners:
            return
        del listeners[listener]
        if not listeners:
            del self._listeners[topic]
        logging.debug("[Dispatch] Removed listener from '%s'", topic)

    def dispatch(self, topic: str, event: Any) -> int:
        """Invoke every listener on the topic, in registration order. Returns the invocation count."""
        invoked = 0
        # Snapshot: listeners may register or remove reentrantly.
        for listener in tuple(self._listeners.get(topic, ())):
            if not self.has_listener(topic, listener):
                continue
            try:
                listener(event)
            except Exception as e:
                logging.warning("[Dispatch] Listener on '%s' raised %s: %s", topic, type(e).__name__, e)
                raise
            invoked += 1
        return invoked

    def has_listener(self, topic: str, listener: Listener) -> bool:
        return listener in self._listeners.get(topic, {})

    def listener_count(self, topic: str) -> int:
        return len(self._listeners.get(topic, ()))

    def topics(self) -> List[str]:
        return list(self._listeners)


def resolve_dispatch_surface(surface: Optional[Any] = None) -> DispatchSurface:
    """Return a usable dispatch surface, building the in-memory one when none is given."""
    if surface is None:
        return InMemoryDispatchSurface()

    missing = [
        name for name in REQUIRED_CAPABILITIES
        if not callable(getattr(surface, name, None))
    ]
    if missing:
        raise DispatchSurfaceError(
            MISSING_CAPABILITY_ERROR.format(surface=surface, missing=", ".join(missing))
        )
    return surface
