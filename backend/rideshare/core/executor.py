"""
Background worker pool for store operations.

Mutations and reads run off the calling thread; sync callers get a Future,
async callers await `run()`.
"""
import asyncio
import functools
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackgroundExecutor:
    """Thin wrapper around a ThreadPoolExecutor with an asyncio bridge."""

    def __init__(self, max_workers: int = 8, thread_name_prefix: str = "rideshare-worker"):
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self._closed = False

    def submit(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> "Future[T]":
        """Schedule `fn` on the pool and return its Future."""
        if self._closed:
            raise RuntimeError("executor has been shut down")
        return self._pool.submit(fn, *args, **kwargs)

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run `fn` on the pool and await its result from the event loop."""
        future = self.submit(functools.partial(fn, *args, **kwargs))
        return await asyncio.wrap_future(future)

    def shutdown(self, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        logger.info("Shutting down background executor")
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "BackgroundExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
