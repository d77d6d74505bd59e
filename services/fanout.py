"""
Structured fan-out over a thread pool.

Runs a set of named, independent callables concurrently and joins all of
them. A branch that raises or does not finish within the join timeout is
recorded as such; it never aborts its siblings.

Used by batch deletion (probes and deletes) and by notification batches.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8
DEFAULT_JOIN_TIMEOUT_SECONDS = 30.0

Task = Tuple[str, Callable[[], Any]]


@dataclass(frozen=True, slots=True)
class BranchOutcome:
    """
    Outcome of one branch.

    value: return value (None if the branch failed or timed out)
    error: exception raised by the branch, if any
    timed_out: True if the branch had not finished at the join timeout
    """
    name: str
    value: Any = None
    error: Optional[BaseException] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


@dataclass(frozen=True, slots=True)
class FanOutResult:
    outcomes: Tuple[BranchOutcome, ...]

    @property
    def succeeded(self) -> List[BranchOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> List[BranchOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def by_name(self) -> Dict[str, BranchOutcome]:
        return {o.name: o for o in self.outcomes}


def run_all(
    tasks: Sequence[Task],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    timeout: float = DEFAULT_JOIN_TIMEOUT_SECONDS,
) -> FanOutResult:
    """
    Run every task and join them all.

    Args:
        tasks: (name, zero-argument callable) pairs
        max_workers: pool size cap
        timeout: join timeout in seconds for the whole group

    Returns:
        FanOutResult with one BranchOutcome per task, in task order

    Example:
        result = run_all([("orders:clientEmail", probe_a), ("profiles:key", probe_b)])
        for outcome in result.failed:
            ...
    """

    if not tasks:
        return FanOutResult(outcomes=())

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks))))
    try:
        futures = [(name, executor.submit(fn)) for name, fn in tasks]
        done, _ = wait([f for _, f in futures], timeout=timeout)

        outcomes: List[BranchOutcome] = []
        for name, future in futures:
            if future not in done:
                future.cancel()
                logger.warning(
                    f"Fan-out branch '{name}' timed out after {timeout}s",
                    extra={"branch": name, "timeout_seconds": timeout},
                )
                outcomes.append(BranchOutcome(name=name, timed_out=True))
                continue

            error = future.exception()
            if error is not None:
                logger.warning(
                    f"Fan-out branch '{name}' failed: {error}",
                    extra={"branch": name, "error_type": type(error).__name__},
                )
                outcomes.append(BranchOutcome(name=name, error=error))
            else:
                outcomes.append(BranchOutcome(name=name, value=future.result()))
    finally:
        # Branches past the join timeout are abandoned, not awaited.
        executor.shutdown(wait=False, cancel_futures=True)

    return FanOutResult(outcomes=tuple(outcomes))


__all__ = ["BranchOutcome", "FanOutResult", "run_all", "DEFAULT_JOIN_TIMEOUT_SECONDS"]
