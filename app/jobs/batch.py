"""
Batch Repair Job framework

Runs a fetch/apply pair over bounded batches, each in its own transaction,
with a fixed-backoff retry budget for transient store failures.

Jobs must be restartable from scratch: ``fetch_batch`` only selects rows that
still match the "not yet fixed" predicate (or advances a cursor it owns).
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import BatchJobAborted, TransientStoreFailure
from app.core.logging import get_logger
from app.db import SessionLocal, transaction
from app.metrics import record_batch, record_batch_job_finished, record_batch_retry

FetchBatch = Callable[[Session, int], Sequence[Any]]
ApplyBatch = Callable[[Session, Sequence[Any]], int]


@dataclass
class RetryPolicy:
    """Consecutive transient failures tolerated, and the wait between them."""
    max_attempts: int
    backoff_seconds: float

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.BATCH_MAX_ATTEMPTS,
            backoff_seconds=settings.BATCH_RETRY_BACKOFF_SECONDS,
        )


@dataclass
class BatchJobReport:
    job_name: str
    rows_affected: int = 0
    batches_run: int = 0
    retries: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'job_name': self.job_name,
            'rows_affected': self.rows_affected,
            'batches_run': self.batches_run,
            'retries': self.retries,
            'duration_seconds': round(self.duration_seconds, 2),
        }


class BatchRepairJob:
    """
    Bounded-batch executor.

    The loop stops on an empty batch, a batch shorter than ``batch_size``, or
    (with ``stop_on_no_change``) a batch whose apply step changed nothing,
    which means the fetch predicate did not shrink.

    Example:
        job = BatchRepairJob(
            "expire-file-versions",
            fetch_batch=lambda db, n: db.query(FileVersion)...limit(n).all(),
            apply_batch=expire,
        )
        report = job.run()
    """

    def __init__(
        self,
        name: str,
        fetch_batch: FetchBatch,
        apply_batch: ApplyBatch,
        batch_size: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        pause_seconds: Optional[float] = None,
        stop_on_no_change: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.name = name
        self.fetch_batch = fetch_batch
        self.apply_batch = apply_batch
        self.batch_size = batch_size or settings.BATCH_SIZE
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.session_factory = session_factory or SessionLocal
        self.pause_seconds = settings.BATCH_PAUSE_SECONDS if pause_seconds is None else pause_seconds
        self.stop_on_no_change = stop_on_no_change
        self.sleep = sleep

        self.logger = get_logger(__name__, with_context=True)
        self.logger.set_context(job=name)

    def _run_batch(self) -> Tuple[int, int]:
        db = self.session_factory()
        try:
            with transaction(db):
                batch = self.fetch_batch(db, self.batch_size)
                if not batch:
                    return 0, 0
                changed = self.apply_batch(db, batch)
            return len(batch), changed
        finally:
            db.close()

    def run(self) -> BatchJobReport:
        """
        Run batches until the work is exhausted.

        Raises:
            BatchJobAborted: After ``max_attempts`` consecutive transient
                failures; carries the partial report
        """
        report = BatchJobReport(job_name=self.name)
        start_time = time.time()
        attempts = 0

        self.logger.info(f"Batch job started (batch_size={self.batch_size})")

        while True:
            try:
                fetched, changed = self._run_batch()
            except (TransientStoreFailure, OperationalError) as e:
                attempts += 1
                if attempts >= self.retry_policy.max_attempts:
                    report.duration_seconds = time.time() - start_time
                    record_batch_job_finished(self.name, report.duration_seconds, aborted=True)
                    self.logger.error(
                        f"Batch job aborted after {attempts} consecutive failure(s): {e}"
                    )
                    raise BatchJobAborted(self.name, report=report, cause=e) from e

                report.retries += 1
                record_batch_retry(self.name)
                self.logger.warning(
                    f"Transient failure (attempt {attempts}/{self.retry_policy.max_attempts}), "
                    f"retrying in {self.retry_policy.backoff_seconds}s: {e}"
                )
                self.sleep(self.retry_policy.backoff_seconds)
                continue

            attempts = 0
            if fetched == 0:
                break

            report.batches_run += 1
            report.rows_affected += changed
            record_batch(self.name, changed)
            self.logger.debug(f"Batch {report.batches_run}: {fetched} fetched, {changed} changed")

            if fetched < self.batch_size:
                break
            if changed == 0 and self.stop_on_no_change:
                self.logger.warning("Batch changed no rows, stopping to avoid a livelock")
                break

            if self.pause_seconds:
                self.sleep(self.pause_seconds)

        report.duration_seconds = time.time() - start_time
        record_batch_job_finished(self.name, report.duration_seconds)
        self.logger.info(
            f"Batch job finished: {report.rows_affected} row(s) in {report.batches_run} batch(es), "
            f"{report.retries} retr{'y' if report.retries == 1 else 'ies'}"
        )
        return report
