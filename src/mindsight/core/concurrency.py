"""Thread pool for the few CPU-bound steps on the request path (base64 of images)."""

from __future__ import annotations

import asyncio
import os
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any

__all__ = ["run_blocking", "shutdown_blocking_pool"]

_POOL_SIZE = max(1, min(8, os.cpu_count() or 1))

_lock = threading.Lock()
_pool: ThreadPoolExecutor | None = None


def _get_pool() -> ThreadPoolExecutor:
    global _pool
    with _lock:
        if _pool is None:
            _pool = ThreadPoolExecutor(max_workers=_POOL_SIZE, thread_name_prefix="mindsight-encode")
        return _pool


async def run_blocking(func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_get_pool(), partial(func, *args, **kwargs))


def shutdown_blocking_pool() -> None:
    """Stop the pool; the next ``run_blocking`` call starts a fresh one."""

    global _pool
    with _lock:
        pool, _pool = _pool, None
    if pool is not None:
        pool.shutdown(wait=True)
