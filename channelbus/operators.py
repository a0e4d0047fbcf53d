# channelbus/operators.py
"""Helpers for transforming subscriptions while keeping cancellation intact."""

import inspect
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable, Union

Predicate = Callable[[Any], Union[bool, Awaitable[bool]]]
Mapper = Callable[[Any], Any]
Operator = Callable[[AsyncIterable[Any]], AsyncIterator[Any]]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _close_source(source: AsyncIterable[Any]) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


async def filter_stream(source: AsyncIterable[Any], predicate: Predicate) -> AsyncIterator[Any]:
    """Yield only the payloads the predicate accepts."""
    try:
        async for payload in source:
            if await _resolve(predicate(payload)):
                yield payload
    finally:
        await _close_source(source)


async def map_stream(source: AsyncIterable[Any], fn: Mapper) -> AsyncIterator[Any]:
    """Yield fn(payload) for every payload."""
    try:
        async for payload in source:
            yield await _resolve(fn(payload))
    finally:
        await _close_source(source)


def pipe(source: AsyncIterable[Any], *operators: Operator) -> AsyncIterable[Any]:
    """Apply single-argument operators left to right, e.g. pipe(sub, lambda s: map_stream(s, str))."""
    stream = source
    for operator in operators:
        stream = operator(stream)
    return stream
