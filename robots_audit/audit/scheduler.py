"""
Worker pool that audits a list of URLs concurrently.

Jobs flow through a bounded job queue to a fixed set of worker tasks; every
worker fetches the page, scans it for directives and puts exactly one Result
on the result queue. The result stream is closed only after every worker has
finished.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Dict, Hashable, Iterable, List, Optional

import psutil

from .detector import DirectiveDetector, Detection, Finding
from .fetcher import ErrorKind, FetchResult
from ..utils.logger import get_audit_logger


MIN_POOL_SIZE = 4

CLEAN_TEXT = "✅ No noindex / nofollow found"

# Marks the end of the job queue (one per worker) and of the result queue
_DONE = object()


class ResultStatus(Enum):
    """Verdict for one URL."""
    CLEAN = 'clean'
    EXCLUDED = 'excluded'
    FAILED = 'failed'


@dataclass(frozen=True)
class Job:
    """One URL to audit, tied to the row it came from."""
    row: Hashable
    url: str


@dataclass(frozen=True)
class Result:
    """Outcome of one Job."""
    row: Hashable
    url: str
    status: ResultStatus
    findings: tuple = ()
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    status_code: int = 0
    elapsed: float = 0.0

    def to_text(self) -> str:
        """Render the verdict for the result column."""
        if self.status is ResultStatus.FAILED:
            return f"❌ Error: {self.error}"
        if self.status is ResultStatus.EXCLUDED:
            return "\n".join(finding.to_text() for finding in self.findings)
        return CLEAN_TEXT


@dataclass
class AuditStats:
    """Statistics for one audit run."""
    start_time: float = field(default_factory=time.time)
    jobs_submitted: int = 0
    completed: Dict[ResultStatus, int] = field(
        default_factory=lambda: {status: 0 for status in ResultStatus}
    )
    total_fetch_time: float = 0.0

    @property
    def jobs_completed(self) -> int:
        return sum(self.completed.values())

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def average_fetch_time(self) -> float:
        return self.total_fetch_time / self.jobs_completed if self.jobs_completed else 0.0

    def record(self, result: Result):
        self.completed[result.status] += 1
        self.total_fetch_time += result.elapsed


def resolve_pool_size(requested: Optional[int] = None) -> int:
    """
    Decide how many workers to run.

    An explicit size wins; otherwise one worker per CPU, never fewer than
    MIN_POOL_SIZE.
    """
    if requested is not None:
        if requested < 1:
            raise ValueError("pool size must be at least 1")
        return requested
    return max(MIN_POOL_SIZE, psutil.cpu_count() or 1)


def build_result(job: Job, fetch_result: FetchResult, detection: Optional[Detection] = None) -> Result:
    """Combine the fetch outcome and the directive scan into a Result."""
    if not fetch_result.ok:
        return Result(
            row=job.row,
            url=job.url,
            status=ResultStatus.FAILED,
            error=fetch_result.error,
            error_kind=fetch_result.error_kind,
            elapsed=fetch_result.fetch_time
        )

    findings: List[Finding] = detection.findings if detection else []
    if findings:
        status = ResultStatus.EXCLUDED
        error, error_kind = None, None
    elif fetch_result.body_error is not None:
        status = ResultStatus.FAILED
        error = fetch_result.body_error
        error_kind = ErrorKind.TRANSPORT
    elif detection is None or detection.error:
        status = ResultStatus.FAILED
        error = detection.error if detection else "Page was not scanned"
        error_kind = ErrorKind.PARSE
    else:
        status = ResultStatus.CLEAN
        error, error_kind = None, None

    return Result(
        row=job.row,
        url=job.url,
        status=status,
        findings=tuple(findings),
        error=error,
        error_kind=error_kind,
        status_code=fetch_result.status_code,
        elapsed=fetch_result.fetch_time
    )


class AuditScheduler:
    """
    Fan-out / fan-in pool over one shared fetcher.

    The fetcher is any object with an ``async fetch(url) -> FetchResult``
    method; it is shared read-only by all workers. A scheduler runs once.
    """

    def __init__(self, fetcher, pool_size: Optional[int] = None,
                 detector: Optional[DirectiveDetector] = None, monitor=None):
        self.fetcher = fetcher
        self.pool_size = resolve_pool_size(pool_size)
        self.detector = detector or DirectiveDetector()
        self.monitor = monitor
        self.logger = logging.getLogger(__name__)

        self.stats = AuditStats()
        self._started = False

    async def run(self, jobs: Iterable[Job]) -> AsyncIterator[Result]:
        """
        Audit every job and yield Results as they complete.

        Results arrive in completion order, exactly one per job.
        """
        if self._started:
            raise RuntimeError("AuditScheduler.run() can only be called once")
        self._started = True
        self.stats = AuditStats()

        job_queue: asyncio.Queue = asyncio.Queue(maxsize=self.pool_size)
        result_queue: asyncio.Queue = asyncio.Queue(maxsize=self.pool_size)

        workers = [
            asyncio.create_task(self._worker(f"worker-{i}", job_queue, result_queue))
            for i in range(self.pool_size)
        ]
        feeder = asyncio.create_task(self._feed(jobs, job_queue))
        closer = asyncio.create_task(self._close_when_done(feeder, workers, result_queue))

        self.logger.info(f"Started audit with {self.pool_size} workers")

        try:
            while True:
                result = await result_queue.get()
                if result is _DONE:
                    break
                self.stats.record(result)
                yield result

            # Surface feeder errors such as a failing job source
            await closer
            self._log_final_stats()

        finally:
            pending = [task for task in (feeder, closer, *workers) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _feed(self, jobs: Iterable[Job], job_queue: asyncio.Queue):
        """Submit every job once, then one end marker per worker."""
        try:
            for job in jobs:
                await job_queue.put(job)
                self.stats.jobs_submitted += 1
        except Exception:
            self.logger.error(f"Job source failed after {self.stats.jobs_submitted} jobs", exc_info=True)
            await self._signal_exhausted(job_queue)
            raise

        await self._signal_exhausted(job_queue)
        self.logger.debug(f"All {self.stats.jobs_submitted} jobs submitted")

    async def _signal_exhausted(self, job_queue: asyncio.Queue):
        for _ in range(self.pool_size):
            await job_queue.put(_DONE)

    async def _close_when_done(self, feeder: asyncio.Task, workers: List[asyncio.Task],
                               result_queue: asyncio.Queue):
        """Close the result stream once every worker has finished."""
        outcomes = await asyncio.gather(*workers, return_exceptions=True)
        crashed = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
        for error in crashed:
            self.logger.error(f"Worker stopped unexpectedly: {error}")

        await result_queue.put(_DONE)

        if crashed and not feeder.done():
            # Nobody is left to take the remaining jobs
            feeder.cancel()
            raise RuntimeError(f"{len(crashed)} worker(s) stopped unexpectedly")
        await feeder

    async def _worker(self, worker_id: str, job_queue: asyncio.Queue, result_queue: asyncio.Queue):
        """Worker coroutine that processes jobs until the end marker."""
        log = get_audit_logger(__name__, worker=worker_id)
        log.debug(f"Worker {worker_id} started")

        while True:
            job = await job_queue.get()
            if job is _DONE:
                break

            if self.monitor:
                self.monitor.job_started()

            result = await self._process_job(job, log)

            if self.monitor:
                self.monitor.job_finished(
                    result.status.value,
                    result.elapsed,
                    result.error_kind.value if result.error_kind else None
                )

            await result_queue.put(result)

        log.debug(f"Worker {worker_id} finished")

    async def _process_job(self, job: Job, log) -> Result:
        """Fetch and classify one job; failures stay local to the job."""
        start_time = time.monotonic()
        try:
            fetch_result = await self.fetcher.fetch(job.url)
            if not fetch_result.ok:
                log.log_job_event(logging.WARNING, job, f"Failed to fetch {job.url}: {fetch_result.error}")
                return build_result(job, fetch_result)

            detection = self.detector.detect(fetch_result.header_values, fetch_result.body_stream())
            result = build_result(job, fetch_result, detection)
            log.log_job_event(logging.DEBUG, job, f"{job.url}: {result.status.value}")
            return result

        except Exception as e:
            log.log_job_event(logging.ERROR, job, f"Error processing {job.url}: {e}", exc_info=True)
            return Result(
                row=job.row,
                url=job.url,
                status=ResultStatus.FAILED,
                error=f"Unexpected error: {e}",
                error_kind=ErrorKind.UNEXPECTED,
                elapsed=time.monotonic() - start_time
            )

    def _log_final_stats(self):
        """Log final audit statistics."""
        self.logger.info("=== AUDIT COMPLETED ===")
        self.logger.info(f"Jobs submitted: {self.stats.jobs_submitted}")
        self.logger.info(f"Clean: {self.stats.completed[ResultStatus.CLEAN]}")
        self.logger.info(f"Excluded: {self.stats.completed[ResultStatus.EXCLUDED]}")
        self.logger.info(f"Failed: {self.stats.completed[ResultStatus.FAILED]}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average fetch time: {self.stats.average_fetch_time:.2f}s")

    def get_stats(self) -> Dict:
        """Get current audit statistics."""
        return {
            'jobs_submitted': self.stats.jobs_submitted,
            'jobs_completed': self.stats.jobs_completed,
            'clean': self.stats.completed[ResultStatus.CLEAN],
            'excluded': self.stats.completed[ResultStatus.EXCLUDED],
            'failed': self.stats.completed[ResultStatus.FAILED],
            'elapsed_time': self.stats.elapsed_time,
            'average_fetch_time': self.stats.average_fetch_time
        }
