"""
api/jobs.py

In-memory job store and the background task runner.

Design:
  - Every remote operation (create/read/update/delete/import) creates a Job
    and runs in a daemon thread so the HTTP response returns immediately
    (202 Accepted). The adapter call blocks until the remote operation is
    terminal, which may take minutes.
  - Each Job owns a Queue[str]. Lines reach it two ways: the `log=` callable
    injected into the job function, and every record the `azurerm` loggers
    emit on the job's thread.
  - The WebSocket endpoint drains that same queue in real time.
  - JobStore is a plain dict protected by a threading.Lock — no database
    needed because jobs are ephemeral (one server process).

Thread safety model:
  - All Job registrations go through JobStore methods (lock before write).
  - Readers (WebSocket drain, GET /jobs/{id}) read without a lock; stale
    reads are acceptable for a log streaming use-case.
  - The Queue itself is thread-safe (stdlib).
"""

import logging
import queue
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from api.schemas import JobStatus

logger = logging.getLogger(__name__)

# Records from this logger tree are copied into the running job's log
CAPTURED_LOGGER = "azurerm"


# ---------------------------------------------------------------------------
# Job data class
# ---------------------------------------------------------------------------

class Job:
    """
    Represents one async adapter operation.

    Attributes:
        job_id      : UUID string, stable for the lifetime of the operation.
        operation   : Human label — "create azurerm_mysql_server" etc.
        status      : Current JobStatus enum value.
        log_queue   : thread-safe Queue; job thread writes here, WS drains it.
        logs        : Accumulated list of all log lines (for GET /jobs/{id}).
        error       : Set on failure — the exception's str().
        result      : Set on success — the resulting state dict.
        created_at  : ISO-8601 UTC timestamp for ordering.
    """

    def __init__(self, operation: str, caller_ip: str = "unknown"):
        self.job_id:    str            = str(uuid.uuid4())
        self.operation: str            = operation
        self.status:    JobStatus      = JobStatus.PENDING
        self.log_queue: queue.Queue    = queue.Queue()
        self.logs:      List[str]      = []
        self.error:     Optional[str]  = None
        self.result:    Optional[dict] = None
        self.created_at: str           = datetime.now(timezone.utc).isoformat()
        self.caller_ip: str            = caller_ip

    def log(self, line: str) -> None:
        self.logs.append(line)
        self.log_queue.put(line)

    @property
    def message(self) -> str:
        status_messages = {
            JobStatus.PENDING:   f"{self.operation} job queued.",
            JobStatus.RUNNING:   f"{self.operation} is running…",
            JobStatus.SUCCEEDED: f"{self.operation} completed successfully.",
            JobStatus.FAILED:    f"{self.operation} failed: {self.error}",
        }
        return status_messages[self.status]


class _JobLogHandler(logging.Handler):
    """Copies records emitted on one thread into a job's log."""

    def __init__(self, job: Job, thread_id: int):
        super().__init__(level=logging.INFO)
        self.job = job
        self.thread_id = thread_id
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        if record.thread != self.thread_id:
            return
        try:
            self.job.log(self.format(record))
        except Exception:
            self.handleError(record)


# ---------------------------------------------------------------------------
# Job store
# ---------------------------------------------------------------------------

class JobStore:
    """
    Thread-safe in-memory store for all active/completed jobs.
    Singleton — imported as `job_store` at module level.
    """

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, operation: str, caller_ip: str = "unknown") -> Job:
        job = Job(operation, caller_ip=caller_ip)
        with self._lock:
            self._jobs[job.job_id] = job
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def all(self) -> List[Job]:
        """Return all jobs, newest first."""
        with self._lock:
            jobs = list(self._jobs.values())
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)


# Module-level singleton, imported everywhere in the API layer.
job_store = JobStore()


# ---------------------------------------------------------------------------
# Background task runner
# ---------------------------------------------------------------------------

def _run_job(job: Job, fn, *args, **kwargs) -> None:
    """
    Target function for background threads.

    1. Attaches a handler capturing this thread's `azurerm` log records.
    2. Marks job as RUNNING and calls fn(*args, log=job.log, **kwargs).
    3. On success: marks SUCCEEDED, stores the returned state.
    4. On failure: marks FAILED, stores the exception message.
    5. Always sends a sentinel None to log_queue so the WebSocket
       consumer knows the stream is finished.
    """
    captured = logging.getLogger(CAPTURED_LOGGER)
    handler = _JobLogHandler(job, threading.get_ident())
    captured.addHandler(handler)

    job.status = JobStatus.RUNNING
    try:
        job.result = fn(*args, log=job.log, **kwargs)
        job.status = JobStatus.SUCCEEDED
    except Exception as exc:
        logger.warning("Job %s (%s) failed: %s", job.job_id, job.operation, exc)
        job.error = str(exc)
        job.status = JobStatus.FAILED
    finally:
        captured.removeHandler(handler)
        # Sentinel value: WebSocket consumer stops when it receives None
        job.log_queue.put(None)


def launch_job(operation: str, fn, *args, caller_ip: str = "unknown", **kwargs) -> Job:
    """
    Create a Job and immediately start a daemon thread to execute fn.

    Args:
        operation : Label string, e.g. "create azurerm_mysql_server".
        fn        : Callable run on the job thread; receives log= as a kwarg.
        *args     : Positional args forwarded to fn.
        caller_ip : IP of the HTTP caller (recorded on the job).
        **kwargs  : Keyword args forwarded to fn (NOT including log=).

    Returns:
        The created Job (status=PENDING when returned, RUNNING moments later).
    """
    job = job_store.create(operation, caller_ip=caller_ip)
    thread = threading.Thread(
        target=_run_job,
        args=(job, fn, *args),
        kwargs=kwargs,
        daemon=True,
        name=f"job-{job.job_id[:8]}",
    )
    thread.start()
    return job
