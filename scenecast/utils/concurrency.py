import asyncio
from typing import Awaitable, Iterable, List


async def gather_fail_fast(coros: Iterable[Awaitable]) -> List:
    """Run concurrently; on the first failure cancel the rest and re-raise"""
    tasks = [asyncio.ensure_future(c) for c in coros]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
