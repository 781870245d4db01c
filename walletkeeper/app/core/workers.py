# walletkeeper/app/core/workers.py
"""
Bounded thread pool for CPU-bound crypto (Argon2, key derivation).

argon2-cffi and the ed25519 primitives release the GIL, so a handful of
threads keeps one owner's slow hash from stalling other requests on the
event loop.
"""
import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, TypeVar

from walletkeeper.app.core.config import settings

T = TypeVar("T")

_executor: Optional[ThreadPoolExecutor] = None


def get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=settings.CRYPTO_WORKERS,
            thread_name_prefix="walletkeeper-crypto",
        )
    return _executor


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """Run func(*args, **kwargs) on the crypto pool and await its result."""
    loop = asyncio.get_running_loop()
    call = functools.partial(func, *args, **kwargs)
    return await loop.run_in_executor(get_executor(), call)


def shutdown_executor() -> None:
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=True)
        _executor = None
