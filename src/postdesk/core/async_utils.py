"""Async utilities for running blocking file and git work from async callers."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    File writes and GitPython calls block, so the session and the MCP tool
    handlers push them through here.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        result = await run_sync(pipeline.publish, "posts/a.md", "Update: a.md")
    """
    return await asyncio.to_thread(func, *args, **kwargs)
