import asyncio
import functools
import logging

import httpx

logger = logging.getLogger(__name__)


def retry_on_transient_error(func=None, *, max_retries: int = 3, delay: float = 0.5):
    """
    Retry an async call when the connection drops mid-request
    (httpx.TransportError: ReadError, ConnectError, RemoteProtocolError...).

    Only wrap idempotent calls such as status polls; submissions must not be retried.
    """
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return await fn(*args, **kwargs)
                except httpx.TransportError as e:
                    if attempt < max_retries - 1:
                        logger.warning(f"Transient error on {fn.__name__}: {e!r}. Retrying in {delay} seconds... (Attempt {attempt + 1}/{max_retries})")
                        await asyncio.sleep(delay)
                    else:
                        logger.error(f"{fn.__name__} failed on last attempt: {e!r}")
                        raise
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
