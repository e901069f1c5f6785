"""Bounded parallel execution of independent repository operations."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from .exceptions import OperationSkipped
from .models import BatchSummary, Operation, OperationResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class OperationCoordinator:
    """Runs batches of operations on a fixed-size worker pool.

    Every submitted operation produces exactly one result, whether it
    succeeds, raises, or is skipped because a dependency failed. Operations
    that share a repository path are serialised; all others may interleave.
    """

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS, *, sequential: bool = False):
        if max_workers <= 0:
            raise ValueError(f"max_workers must be a positive integer, got {max_workers}")
        self.max_workers = max_workers
        self.sequential = sequential
        self._locks_guard = threading.Lock()
        self._path_locks: dict[str, threading.Lock] = {}

    def execute_parallel(
        self,
        operations: Sequence[Operation],
        completed: Mapping[str, OperationResult] | None = None,
    ) -> list[OperationResult]:
        """Run a batch and return results in submission order."""

        completed = completed or {}
        if not operations:
            return []
        started = time.perf_counter()
        if self.sequential or len(operations) == 1:
            logger.debug("Executing %d operation(s) sequentially", len(operations))
            results = [self._run(operation, completed) for operation in operations]
        else:
            logger.debug(
                "Executing %d operations with up to %d workers", len(operations), self.max_workers
            )
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="git-op") as pool:
                futures = [pool.submit(self._run, operation, completed) for operation in operations]
                results = [future.result() for future in futures]
        elapsed = (time.perf_counter() - started) * 1000
        succeeded = sum(1 for result in results if result.ok)
        logger.debug(
            "Batch finished: %d succeeded, %d failed (%.0fms)",
            succeeded,
            len(results) - succeeded,
            elapsed,
        )
        return results

    def _run(self, operation: Operation, completed: Mapping[str, OperationResult]) -> OperationResult:
        reason = _unmet_dependency(operation, completed)
        if reason is not None:
            logger.debug("Skipping %s: %s", operation.label, reason)
            return OperationResult(
                id=operation.id,
                kind=operation.kind,
                repo_path=operation.repo_path,
                ok=False,
                duration_ms=0.0,
                error=OperationSkipped(operation.id, reason),
                skipped=True,
            )
        with self._lock_for(operation.repo_path):
            started = time.perf_counter()
            logger.debug("Starting: %s", operation.label)
            try:
                value = operation.execute()
            except Exception as exc:
                duration = (time.perf_counter() - started) * 1000
                logger.debug("Failed: %s (%.0fms): %s", operation.label, duration, exc)
                return OperationResult(
                    id=operation.id,
                    kind=operation.kind,
                    repo_path=operation.repo_path,
                    ok=False,
                    duration_ms=duration,
                    error=exc,
                )
            duration = (time.perf_counter() - started) * 1000
            logger.debug("Completed: %s (%.0fms)", operation.label, duration)
            return OperationResult(
                id=operation.id,
                kind=operation.kind,
                repo_path=operation.repo_path,
                ok=True,
                duration_ms=duration,
                value=value,
            )

    def _lock_for(self, repo_path: Path) -> threading.Lock:
        key = str(Path(repo_path).expanduser().absolute())
        with self._locks_guard:
            lock = self._path_locks.get(key)
            if lock is None:
                lock = self._path_locks[key] = threading.Lock()
            return lock


def _unmet_dependency(operation: Operation, completed: Mapping[str, OperationResult]) -> str | None:
    for dependency in sorted(operation.depends_on):
        result = completed.get(dependency)
        if result is None:
            return f"dependency {dependency} has not run"
        if not result.ok:
            return f"dependency {dependency} did not succeed"
    return None


def summarize(results: Iterable[OperationResult]) -> BatchSummary:
    results = list(results)
    if not results:
        return BatchSummary(0, 0, 0, 0, 0.0, 0.0, 0.0)
    total_duration = sum(result.duration_ms for result in results)
    succeeded = sum(1 for result in results if result.ok)
    skipped = sum(1 for result in results if result.skipped)
    return BatchSummary(
        total=len(results),
        succeeded=succeeded,
        failed=len(results) - succeeded,
        skipped=skipped,
        total_duration_ms=total_duration,
        average_duration_ms=round(total_duration / len(results), 2),
        success_rate=round(succeeded / len(results) * 100, 2),
    )
