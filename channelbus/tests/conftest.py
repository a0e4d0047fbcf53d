"""
Global pytest configuration for channelbus tests.
Handles async task cleanup and gives each test a fresh dispatch surface.
"""
import asyncio
from typing import Any

import pytest
import pytest_asyncio

from channelbus.config import PubSubConfig, reset_config
from channelbus.dispatch import InMemoryDispatchSurface
from channelbus.pubsub import create_pubsub
from channelbus.schemas import ChannelShape
from channelbus.subscription import Subscription

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]


@pytest_asyncio.fixture(autouse=True)
async def cleanup_after_test():
    """Automatically cancel tasks a test left running."""
    yield

    current = asyncio.current_task()
    pending_tasks = [task for task in asyncio.all_tasks() if task is not current and not task.done()]
    for task in pending_tasks:
        task.cancel()
    if pending_tasks:
        await asyncio.gather(*pending_tasks, return_exceptions=True)


@pytest.fixture(autouse=True)
def fresh_config():
    """Never leak the settings singleton between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    return PubSubConfig(max_queue_size=0, metrics_enabled=True)


@pytest.fixture
def surface():
    return InMemoryDispatchSurface()


@pytest.fixture
def pubsub(surface, config):
    channels = {
        "ping": ChannelShape.PAYLOAD,
        "tick": ChannelShape.NONE,
        "userUpdated": ChannelShape.QUALIFIED,
        "msg": ChannelShape.QUALIFIED,
    }
    return create_pubsub(channels, dispatch_surface=surface, config=config)


@pytest.fixture
def pull():
    """Await the next payload of a subscription, failing fast instead of hanging."""
    async def _pull(subscription: Subscription, timeout: float = 1.0) -> Any:
        return await asyncio.wait_for(subscription.__anext__(), timeout=timeout)
    return _pull
