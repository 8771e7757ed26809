import asyncio
import inspect
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


async def _await(awaitable: Awaitable[T]) -> T:
    return await awaitable


def resolve(value: T | Awaitable[T]) -> T:
    """Return value, driving it to completion first if it is awaitable.

    Each awaitable runs on its own event loop, so this must not be called
    from inside a running loop.
    """
    if inspect.isawaitable(value):
        return asyncio.run(_await(value))
    return value  # type: ignore[return-value]
