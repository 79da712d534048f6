"""Job queue drained by a bounded worker pool."""

import logging
import threading
import time
import uuid
from collections import OrderedDict
from concurrent import futures
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

from .exceptions import JobCancelledError
from .progress import ProgressEvent

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


FINISHED_STATUSES = (JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.CANCELLED)


@dataclass
class Job:
    payload: Any
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.PENDING
    progress: Optional[ProgressEvent] = None
    result: Any = None
    error: Optional[str] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)
    future: Optional[futures.Future] = field(default=None, repr=False)


class JobQueue:
    """
    Owns every job's state and runs at most ``max_workers`` jobs at once.

    ``worker(job)`` does the work and returns the job result. Raising
    :class:`JobCancelledError` marks the job cancelled; any other exception
    marks it failed.
    """

    def __init__(self, worker: Callable[[Job], Any], max_workers: int = 2,
                 on_finished: Optional[Callable[[Job], None]] = None):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.worker = worker
        self.max_workers = max_workers
        self.on_finished = on_finished
        self._executor = futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="subtleai-job")
        self._jobs: "OrderedDict[str, Job]" = OrderedDict()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def add_jobs(self, payloads: Iterable[Any]) -> List[Job]:
        new_jobs = [Job(payload=p) for p in payloads]
        with self._lock:
            for job in new_jobs:
                self._jobs[job.id] = job
        for job in new_jobs:
            self._submit(job)
        logger.info(f"Queued {len(new_jobs)} job(s)")
        return new_jobs

    def _submit(self, job: Job) -> None:
        job.future = self._executor.submit(self._run, job.id)

    def _run(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status is not JobStatus.PENDING:
                return
            job.status = JobStatus.PROCESSING
            job.start_time = time.time()

        try:
            result = self.worker(job)
        except JobCancelledError:
            self._finish(job, JobStatus.CANCELLED)
            logger.info(f"Job {job.id} cancelled")
        except Exception as e:
            logger.error(f"Job {job.id} failed: {e}", exc_info=True)
            self._finish(job, JobStatus.ERROR, error=str(e))
        else:
            self._finish(job, JobStatus.COMPLETED, result=result)

    def _finish(self, job: Job, status: JobStatus, result: Any = None, error: Optional[str] = None) -> None:
        with self._lock:
            job.status = status
            job.result = result
            job.error = error
            job.end_time = time.time()
        if self.on_finished:
            self.on_finished(job)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------
    def update_progress(self, job_id: str, event: ProgressEvent) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None:
                job.progress = event

    def cancel(self, job_id: str) -> bool:
        """
        Cancels a job. Pending jobs never start; processing jobs have their
        cancel event set and stop at their next checkpoint.

        Returns:
            False if the job is unknown or already finished.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status in FINISHED_STATUSES:
                return False
            job.cancel_event.set()
            if job.status is JobStatus.PENDING:
                job.status = JobStatus.CANCELLED
                job.end_time = time.time()
                if job.future is not None:
                    job.future.cancel()
        return True

    def cancel_pending(self) -> int:
        """Cancels and removes every job that hasn't started."""
        pending = self.pending_jobs()
        for job in pending:
            self.cancel(job.id)
            self.remove(job.id)
        return len(pending)

    def retry(self, job_id: str) -> bool:
        """Re-queues a failed or cancelled job."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status not in (JobStatus.ERROR, JobStatus.CANCELLED):
                return False
            job.status = JobStatus.PENDING
            job.progress = job.result = job.error = None
            job.start_time = job.end_time = None
            job.cancel_event = threading.Event()
        self._submit(job)
        return True

    def remove(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is not None and job.status in (JobStatus.PENDING, JobStatus.PROCESSING):
            job.cancel_event.set()

    def clear_completed(self) -> None:
        with self._lock:
            for job_id in [j.id for j in self._jobs.values() if j.status in (JobStatus.COMPLETED, JobStatus.ERROR)]:
                del self._jobs[job_id]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    @property
    def jobs(self) -> List[Job]:
        with self._lock:
            return list(self._jobs.values())

    def processing_count(self) -> int:
        return sum(1 for j in self.jobs if j.status is JobStatus.PROCESSING)

    def pending_jobs(self) -> List[Job]:
        return [j for j in self.jobs if j.status is JobStatus.PENDING]

    def wait(self, timeout: Optional[float] = None) -> None:
        """Blocks until every queued job has finished (or ``timeout`` elapses)."""
        pending = [j.future for j in self.jobs if j.future is not None]
        futures.wait(pending, timeout=timeout)

    def shutdown(self, cancel_running: bool = False) -> None:
        if cancel_running:
            for job in self.jobs:
                self.cancel(job.id)
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "JobQueue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(cancel_running=exc_type is not None)
