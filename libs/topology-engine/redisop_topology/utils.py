"""Async helpers."""

import asyncio
from typing import Any, Awaitable


async def gather_all(*aws: Awaitable[Any]) -> list[Any]:
    """
    Await every awaitable, then raise the first failure, if any.

    Unlike a bare ``asyncio.gather`` no call is left running in the
    background when a sibling fails.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)
