"""In-memory registry of background generation jobs.

Every job gets a stable string ID, runs on a shared thread pool and moves
through ``pending -> succeeded | failed | cancelled``.  Pages only ever see
immutable :class:`JobSnapshot` copies; the registry owns the mutable records.

Cancelling a job sets its :class:`CancelToken`.  Work functions receive the
token and are expected to pass it down to anything that polls a remote
service (see ``src.fal_service``) so the upstream request is cancelled too.
A result that arrives after cancellation is discarded.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Hashable, Iterable, Optional

_logger = logging.getLogger(__name__)


class JobState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobCancelled(Exception):
    """Raised inside a job when its cancel token has been set."""


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelled()

    def sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds``; raise :class:`JobCancelled` if cancelled meanwhile."""
        if self._event.wait(seconds):
            raise JobCancelled()


ProgressFn = Callable[[str], None]
JobFn = Callable[[CancelToken, ProgressFn], Any]


@dataclass(frozen=True)
class JobSnapshot:
    id: str
    kind: str
    owner: Optional[Hashable]
    label: str
    state: JobState
    created_at: float
    result: Any = None
    error: Optional[str] = None
    progress: tuple[str, ...] = ()

    @property
    def finished(self) -> bool:
        return self.state is not JobState.PENDING


@dataclass
class _JobRecord:
    id: str
    kind: str
    owner: Optional[Hashable]
    label: str
    token: CancelToken
    created_at: float = field(default_factory=time.time)
    state: JobState = JobState.PENDING
    result: Any = None
    error: Optional[str] = None
    progress: list[str] = field(default_factory=list)

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            id=self.id,
            kind=self.kind,
            owner=self.owner,
            label=self.label,
            state=self.state,
            created_at=self.created_at,
            result=self.result,
            error=self.error,
            progress=tuple(self.progress),
        )


class JobRegistry:
    def __init__(self, max_workers: int = 4, executor: Optional[ThreadPoolExecutor] = None):
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="studio-job")
        self._lock = threading.Lock()
        self._jobs: dict[str, _JobRecord] = {}
        self._futures: dict[str, Future] = {}

    def submit(
        self,
        kind: str,
        fn: JobFn,
        *,
        owner: Optional[Hashable] = None,
        label: str = "",
        on_success: Optional[Callable[[Any], None]] = None,
        on_failure: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Start ``fn(token, progress)`` in the background and return the job ID.

        ``on_success`` runs in the worker thread before the job is marked
        succeeded; if it raises, the job fails with that error instead.
        """
        job_id = f"{kind}-{uuid.uuid4().hex[:12]}"
        record = _JobRecord(id=job_id, kind=kind, owner=owner, label=label, token=CancelToken())
        with self._lock:
            self._jobs[job_id] = record
        future = self._executor.submit(self._run, job_id, fn, record.token, on_success, on_failure)
        with self._lock:
            self._futures[job_id] = future
        return job_id

    def _append_progress(self, job_id: str, message: str) -> None:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is not None and record.state is JobState.PENDING:
                record.progress.append(message)

    def _finish(self, job_id: str, state: JobState, *, result: Any = None, error: Optional[str] = None) -> bool:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None or record.state is not JobState.PENDING:
                return False
            record.state = state
            record.result = result
            record.error = error
            return True

    def _run(self, job_id, fn, token, on_success, on_failure):
        try:
            result = fn(token, lambda message: self._append_progress(job_id, message))
            token.raise_if_cancelled()
            if on_success is not None:
                on_success(result)
        except JobCancelled:
            _logger.info("Job %s cancelled; result discarded", job_id)
            return None
        except Exception as exc:
            if token.cancelled:
                _logger.info("Job %s failed after cancellation: %s", job_id, exc)
                return None
            error = str(exc) or exc.__class__.__name__
            _logger.error("Job %s failed: %s", job_id, error)
            if self._finish(job_id, JobState.FAILED, error=error) and on_failure is not None:
                try:
                    on_failure(error)
                except Exception:
                    _logger.exception("Failure handler for job %s raised", job_id)
            return None
        self._finish(job_id, JobState.SUCCEEDED, result=result)
        return result

    def cancel(self, job_id: str) -> Optional[JobSnapshot]:
        """Cancel a pending job and drop its record.  Returns the final snapshot."""
        with self._lock:
            record = self._jobs.pop(job_id, None)
            future = self._futures.pop(job_id, None)
        if record is None:
            return None
        record.token.cancel()
        if future is not None:
            future.cancel()
        if record.state is JobState.PENDING:
            record.state = JobState.CANCELLED
        return record.snapshot()

    def dismiss(self, job_id: str) -> bool:
        """Forget a finished job.  Pending jobs must be cancelled instead."""
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None or record.state is JobState.PENDING:
                return False
            del self._jobs[job_id]
            self._futures.pop(job_id, None)
            return True

    def prune(self, state: JobState = JobState.SUCCEEDED) -> int:
        with self._lock:
            doomed = [job_id for job_id, r in self._jobs.items() if r.state is state]
            for job_id in doomed:
                del self._jobs[job_id]
                self._futures.pop(job_id, None)
        return len(doomed)

    def get(self, job_id: str) -> Optional[JobSnapshot]:
        with self._lock:
            record = self._jobs.get(job_id)
            return record.snapshot() if record is not None else None

    def snapshot(
        self,
        *,
        owner: Optional[Hashable] = None,
        kind: Optional[str] = None,
        states: Optional[Iterable[JobState]] = None,
    ) -> tuple[JobSnapshot, ...]:
        """Read-only view of the registry, oldest first, optionally filtered."""
        wanted = set(states) if states is not None else None
        with self._lock:
            records = list(self._jobs.values())
        result = []
        for record in sorted(records, key=lambda r: r.created_at):
            if owner is not None and record.owner != owner:
                continue
            if kind is not None and record.kind != kind:
                continue
            if wanted is not None and record.state not in wanted:
                continue
            result.append(record.snapshot())
        return tuple(result)

    def wait(self, job_ids: Iterable[str], timeout: Optional[float] = None) -> list[Optional[JobSnapshot]]:
        ids = list(job_ids)
        with self._lock:
            futures = [self._futures[i] for i in ids if i in self._futures]
        if futures:
            wait(futures, timeout=timeout)
        return [self.get(i) for i in ids]

    def shutdown(self, wait_for_jobs: bool = True) -> None:
        with self._lock:
            tokens = [r.token for r in self._jobs.values() if r.state is JobState.PENDING]
        if not wait_for_jobs:
            for token in tokens:
                token.cancel()
        self._executor.shutdown(wait=wait_for_jobs)
