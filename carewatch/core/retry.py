import asyncio
from typing import Any, Callable, Sequence

BACKOFFS = [1, 3, 10]


async def with_retry(
    func: Callable[..., Any], *args, backoffs: Sequence[float] = BACKOFFS, **kwargs
):
    last_exc = None
    for attempt in range(len(backoffs) + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:  # aiogram/HTTPError
            last_exc = e
            if attempt == len(backoffs):
                raise
            await asyncio.sleep(backoffs[attempt])
    raise last_exc
