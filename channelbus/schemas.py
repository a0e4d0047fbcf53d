# channelbus/schemas.py

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

# --- CHANNEL CONTRACTS ---


class ChannelShape(str, Enum):
    """Argument shape a channel's publish call takes."""

    NONE = "none"
    PAYLOAD = "payload"
    QUALIFIED = "qualified"


class ChannelDefinition(BaseModel):
    key: str
    shape: ChannelShape = ChannelShape.PAYLOAD
    description: str = ""

    @property
    def qualified(self) -> bool:
        return self.shape is ChannelShape.QUALIFIED


# --- DISPATCH ---


class Event(BaseModel):
    """A single dispatched notification. The payload is attached by reference."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    topic: str
    data: Any = None


# --- SUBSCRIPTIONS ---


class SubscriptionState(str, Enum):
    CREATED = "created"
    LISTENING = "listening"
    CANCELLED = "cancelled"


class OverflowPolicy(str, Enum):
    DROP_OLDEST = "drop_oldest"
    DROP_NEWEST = "drop_newest"
