# channelbus/config.py
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .schemas import OverflowPolicy

# Topic layout
TOPIC_SEPARATOR = ":"
UNDECLARED_CHANNEL_LABEL = "undeclared"


class PubSubConfig(BaseSettings):
    """
    Settings for the channel engine.
    Pydantic loads these from a .env file and then CHANNELBUS_* environment variables.
    """
    model_config = SettingsConfigDict(
        env_prefix="CHANNELBUS_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    name: str = Field(default="channelbus", description="Name used in log lines.")

    # Subscription buffering. 0 keeps the queue unbounded.
    max_queue_size: int = Field(default=0, ge=0)
    overflow_policy: OverflowPolicy = Field(default=OverflowPolicy.DROP_OLDEST)

    # Observability
    metrics_enabled: bool = Field(default=True)


_config_instance: Optional[PubSubConfig] = None


def get_config() -> PubSubConfig:
    """Returns a singleton instance of the PubSubConfig."""
    global _config_instance
    if _config_instance is None:
        _config_instance = PubSubConfig()
    return _config_instance


def reset_config() -> None:
    """Drops the cached settings so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None
