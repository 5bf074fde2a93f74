"""
Fan-out/fan-in barrier for independent corrective writes.

Every task targets a different Ghost entity, so no ordering between them is
needed.  The barrier fails fast: on the first exception, tasks that have not
started yet are cancelled and the exception is re-raised.  Writes that had
already completed stay applied; there is no rollback.
"""

from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")

DEFAULT_MAX_WORKERS = 8


def fan_out(tasks: Sequence[Callable[[], T]], *, max_workers: int = DEFAULT_MAX_WORKERS) -> List[T]:
    """
    Run ``tasks`` concurrently and wait for all of them.

    :param tasks: Zero-argument callables.
    :param max_workers: Upper bound on concurrent tasks.
    :return: Task results, in the order of ``tasks``.
    :raises Exception: the first exception raised by any task.
    """
    if not tasks:
        return []

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks)))) as pool:
        futures: List[Future] = [pool.submit(task) for task in tasks]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in futures:
            if future in done and future.exception() is not None:
                for other in pending:
                    other.cancel()
                raise future.exception()
    return [future.result() for future in futures]
