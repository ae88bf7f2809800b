"""
Async utilities for sftp-bridge.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable, Iterable, TypeVar, overload

T = TypeVar("T")


def dual(func: Callable[..., Awaitable[T]]) -> Callable[..., T]:
    """
    Decorator: makes an async function callable both synchronously and asynchronously.

    Usage:
        @dual
        async def handle(event, context):
            await ...

        # Both work:
        handle(event, context)          # blocks in sync context (serverless runtime)
        await handle(event, context)    # works in async context
    """
    if not inspect.iscoroutinefunction(func):
        raise TypeError("@dual can only be applied to async def functions")

    @overload
    def sync_or_async_call(*args: Any, **kwargs: Any) -> T: ...

    @overload
    async def sync_or_async_call(*args: Any, **kwargs: Any) -> T: ...

    @functools.wraps(func)
    def sync_or_async_call(*args: Any, **kwargs: Any) -> Any:
        coro = func(*args, **kwargs)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)
        return coro if loop.is_running() else asyncio.run(coro)

    sync_or_async_call = functools.update_wrapper(sync_or_async_call, func)  # type: ignore
    return sync_or_async_call  # type: ignore


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking paramiko/boto3 call without stalling the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)


async def gather_all(awaitables: Iterable[Awaitable[T]]) -> list[T]:
    """
    Await all, fail on the first error.

    Unlike a bare ``asyncio.gather``, siblings still run to completion before the
    first error is re-raised, so no remote session is left mid-write.
    """
    results = await asyncio.gather(*awaitables, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)  # type: ignore[arg-type]


def flatten(items: Iterable[Any]) -> list[Any]:
    """Flatten nested lists, dropping ``None`` and other falsy leaves."""
    flat: list[Any] = []
    for item in items:
        if isinstance(item, list):
            flat.extend(flatten(item))
        elif item:
            flat.append(item)
    return flat
