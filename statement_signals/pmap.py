"""Bounded, order-preserving parallel map over a thread pool.

Used to reconcile several applicants at once. Each applicant's work is pure
and CPU-light, so threads are enough; the bound keeps a large batch from
spawning one worker per applicant.

- ``concurrency`` caps the number of mapper calls in flight.
- ``stop_on_error=True`` re-raises the first failure and cancels work that
  has not started yet.
- ``stop_on_error=False`` lets every call finish, then raises an
  ``ExceptionGroup`` holding all failures.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
    stop_on_error: bool = True,
) -> list[OutT]:
    """Return ``[mapper(x) for x in iterable]`` computed on up to ``concurrency`` threads."""

    if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    pending = enumerate(iterable)
    results: dict[int, OutT] = {}
    errors: list[Exception] = []
    in_flight: dict[Future[OutT], int] = {}

    with ThreadPoolExecutor(max_workers=concurrency) as pool:

        def top_up() -> None:
            while len(in_flight) < concurrency:
                nxt = next(pending, None)
                if nxt is None:
                    return
                idx, item = nxt
                in_flight[pool.submit(mapper, item)] = idx

        top_up()
        while in_flight:
            done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = in_flight.pop(fut)
                exc = fut.exception()
                if exc is None:
                    results[idx] = fut.result()
                    continue
                if stop_on_error:
                    pool.shutdown(wait=False, cancel_futures=True)
                    raise exc
                if not isinstance(exc, Exception):
                    raise exc
                errors.append(exc)
            top_up()

    if errors:
        raise ExceptionGroup("p_map: one or more mapper calls failed", errors)
    return [results[i] for i in sorted(results)]


__all__ = ["p_map"]
