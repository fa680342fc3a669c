"""Fan-out of independent Result-returning coroutines.

Release creation launches one coroutine per package and joins them as a
batch. How failures are joined is explicit:

- ``ABORT_ON_FIRST_FAILURE``: the first ``Err`` cancels the coroutines still
  running and is returned. Work that already completed stays done.
- ``COLLECT_ALL``: every coroutine runs to completion; the first ``Err`` in
  submission order is returned.

On success the values come back in submission order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Sequence
from enum import Enum, auto
from typing import Any, TypeVar

from cs.core.result import Err, Ok, Result


class JoinPolicy(Enum):
    ABORT_ON_FIRST_FAILURE = auto()
    COLLECT_ALL = auto()


T = TypeVar("T")
E = TypeVar("E")


async def fan_out(
    coros: Sequence[Coroutine[Any, Any, Result[T, E]]],
    *,
    policy: JoinPolicy = JoinPolicy.ABORT_ON_FIRST_FAILURE,
) -> Result[list[T], E]:
    if not coros:
        return Ok([])

    tasks = [asyncio.ensure_future(c) for c in coros]

    if policy is JoinPolicy.COLLECT_ALL:
        results = await asyncio.gather(*tasks)
        for result in results:
            if isinstance(result, Err):
                return result
        return Ok([r.value for r in results if isinstance(r, Ok)])

    pending = set(tasks)
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in tasks:
                if task in done:
                    result = task.result()
                    if isinstance(result, Err):
                        return result
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    return Ok([t.result().unwrap() for t in tasks])
