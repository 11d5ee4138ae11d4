import asyncio
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

UNSAFE_FILENAME_CHARS = '<>:"/\\|?*'


def env_truthy(value: Optional[str], *, default: bool = False) -> bool:
    """Parse common truthy/falsey strings from environment variables."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def strip_unsafe_chars(value: str) -> str:
    """Drop characters that are not allowed in filenames and trim whitespace."""
    for ch in UNSAFE_FILENAME_CHARS:
        value = value.replace(ch, "")
    return value.strip()


# One executor for all blocking filesystem work instead of a pool per call.
# Created on first use so MAX_WORKERS from .env is honored.
_EXECUTOR: Optional[ThreadPoolExecutor] = None


def _get_executor() -> ThreadPoolExecutor:
    global _EXECUTOR
    if _EXECUTOR is None:
        _EXECUTOR = ThreadPoolExecutor(max_workers=int(os.getenv("MAX_WORKERS", "4")), thread_name_prefix="vidrelay-io")
    return _EXECUTOR


async def run_in_threadpool(func, *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_get_executor(), lambda: func(*args, **kwargs))
