"""
Usage Ledger

Per-user storage usage kept as signed delta rows. A daily job appends one row
per active user and day; the monthly and yearly jobs fold the lower
granularity into one row per user and period and delete what they consumed.
A user's drive usage is the sum of all of their rows.
"""
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import IncompleteRollupWindow
from app.db import SessionLocal, insert_ignore, transaction
from app.jobs.batch import BatchJobReport, BatchRepairJob, RetryPolicy
from app.metrics import record_rollup_rows
from app.models import Backup, File, RollupRun, Usage, UsageType, utcnow

logger = logging.getLogger(__name__)

# Row types folded into a monthly row and into a yearly row
MONTHLY_SOURCES = (UsageType.DAILY, UsageType.CHANGE)
YEARLY_SOURCES = (UsageType.MONTHLY, UsageType.DAILY, UsageType.CHANGE)


@dataclass
class UserUsage:
    user_id: str
    drive: int
    backup: int

    @property
    def total(self) -> int:
        return self.drive + self.backup

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'drive': self.drive,
            'backup': self.backup,
            'total': self.total,
        }


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """[start, end) of a UTC calendar day."""
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def previous_month(today: date) -> Tuple[date, date]:
    """First day of the month before ``today`` and first day of ``today``'s month."""
    end = today.replace(day=1)
    return (end - timedelta(days=1)).replace(day=1), end


def previous_year(today: date) -> Tuple[date, date]:
    return date(today.year - 1, 1, 1), date(today.year, 1, 1)


def _days(start: date, end: date) -> List[date]:
    return [start + timedelta(days=i) for i in range((end - start).days)]


def _months(start: date, end: date) -> List[date]:
    months = []
    current = start
    while current < end:
        months.append(current)
        current = (current + timedelta(days=32)).replace(day=1)
    return months


def _utc_date(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


class UsageLedger:
    """
    Rollup jobs and usage queries over the ``usages`` table.

    Every rollup runs through BatchRepairJob in batches of users, so it can be
    interrupted and re-run without double counting.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        batch_size: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
        pause_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory or SessionLocal
        self.batch_size = batch_size
        self.retry_policy = retry_policy
        self.pause_seconds = pause_seconds
        self.sleep = sleep

    def _job(self, name: str, fetch_batch, apply_batch) -> BatchRepairJob:
        return BatchRepairJob(
            name,
            fetch_batch=fetch_batch,
            apply_batch=apply_batch,
            batch_size=self.batch_size,
            retry_policy=self.retry_policy,
            session_factory=self.session_factory,
            pause_seconds=self.pause_seconds,
            sleep=self.sleep,
        )

    # ------------------------------------------------------------------
    # Daily
    # ------------------------------------------------------------------

    def run_daily_rollup(self, day: Optional[date] = None) -> BatchJobReport:
        """
        Append one daily row per user with file activity on ``day``.

        Files created and removed on the same day cancel out. Users that
        already hold a daily row for ``day`` are skipped, so a rerun is a no-op.
        Users whose baseline row is dated ``day`` or later are skipped too:
        their baseline already counts every file up to that date.

        Args:
            day: UTC day to roll up (default: yesterday)
        """
        day = day or (utcnow().date() - timedelta(days=1))
        start, end = day_bounds(day)

        created_on_day = and_(File.created_at >= start, File.created_at < end)
        removed_on_day = and_(File.removed_at >= start, File.removed_at < end)
        added = case(
            (and_(created_on_day, or_(File.removed_at.is_(None), File.removed_at >= end)), File.size),
            else_=0,
        )
        subtracted = case(
            (and_(removed_on_day, File.created_at < start), File.size),
            else_=0,
        )
        delta = (func.coalesce(func.sum(added), 0) - func.coalesce(func.sum(subtracted), 0)).label("delta")
        has_daily_row = (
            select(Usage.id)
            .where(
                Usage.user_id == File.user_id,
                Usage.period == day,
                Usage.type == UsageType.DAILY,
            )
            .exists()
        )
        covered_by_baseline = (
            select(Usage.id)
            .where(
                Usage.user_id == File.user_id,
                Usage.period >= day,
                Usage.type == UsageType.BASELINE,
            )
            .exists()
        )

        def fetch(db: Session, limit: int) -> Sequence[Tuple[str, int]]:
            return (
                db.query(File.user_id, delta)
                .filter(or_(created_on_day, removed_on_day))
                .filter(~has_daily_row, ~covered_by_baseline)
                .group_by(File.user_id)
                .having(delta != 0)
                .order_by(File.user_id)
                .limit(limit)
                .all()
            )

        def apply(db: Session, rows: Sequence[Tuple[str, int]]) -> int:
            written = 0
            for user_id, user_delta in rows:
                if insert_ignore(db, Usage, {
                    'user_id': user_id,
                    'delta': int(user_delta),
                    'period': day,
                    'type': UsageType.DAILY,
                }):
                    written += 1
            return written

        report = self._job("usage-daily-rollup", fetch, apply).run()
        self._record_run(UsageType.DAILY, day, report.rows_affected)
        return report

    # ------------------------------------------------------------------
    # Monthly / yearly
    # ------------------------------------------------------------------

    def run_monthly_rollup(self, today: Optional[date] = None, force: bool = False) -> BatchJobReport:
        """
        Fold the previous month's daily and change rows into monthly rows.

        Raises:
            IncompleteRollupWindow: A daily run of the month is missing
                (unless ``force``)
        """
        today = today or utcnow().date()
        period, period_end = previous_month(today)

        if settings.ROLLUP_REQUIRE_COMPLETE_WINDOW and not force:
            self._require_runs(UsageType.DAILY, _days(period, period_end), UsageType.MONTHLY, period)

        report = self._fold(
            "usage-monthly-rollup", MONTHLY_SOURCES, UsageType.MONTHLY, period, period_end
        )
        self._record_run(UsageType.MONTHLY, period, report.rows_affected)
        return report

    def run_yearly_rollup(self, today: Optional[date] = None, force: bool = False) -> BatchJobReport:
        """
        Fold the previous year's monthly rows (and any stray daily or change
        rows) into yearly rows.
        """
        today = today or utcnow().date()
        period, period_end = previous_year(today)

        if settings.ROLLUP_REQUIRE_COMPLETE_WINDOW and not force:
            self._require_runs(UsageType.MONTHLY, _months(period, period_end), UsageType.YEARLY, period)

        report = self._fold(
            "usage-yearly-rollup", YEARLY_SOURCES, UsageType.YEARLY, period, period_end
        )
        self._record_run(UsageType.YEARLY, period, report.rows_affected)
        return report

    def _fold(
        self,
        name: str,
        sources: Sequence[UsageType],
        target: UsageType,
        period: date,
        period_end: date,
    ) -> BatchJobReport:
        in_window = and_(
            Usage.type.in_(sources),
            Usage.period >= period,
            Usage.period < period_end,
        )

        def fetch(db: Session, limit: int) -> List[str]:
            rows = (
                db.query(Usage.user_id)
                .filter(in_window)
                .distinct()
                .order_by(Usage.user_id)
                .limit(limit)
                .all()
            )
            return [row[0] for row in rows]

        def apply(db: Session, user_ids: Sequence[str]) -> int:
            sums = (
                db.query(Usage.user_id, func.sum(Usage.delta))
                .filter(Usage.user_id.in_(user_ids), in_window)
                .group_by(Usage.user_id)
                .all()
            )
            now = utcnow()
            for user_id, total in sums:
                total = int(total or 0)
                existing = (
                    db.query(Usage)
                    .filter(
                        Usage.user_id == user_id,
                        Usage.period == period,
                        Usage.type == target,
                    )
                    .with_for_update()
                    .first()
                )
                if existing is not None:
                    # Late lower-granularity rows for an already folded period
                    existing.delta = existing.delta + total
                    existing.updated_at = now
                else:
                    db.add(Usage(user_id=user_id, delta=total, period=period, type=target))

            db.query(Usage).filter(
                Usage.user_id.in_(user_ids), in_window
            ).delete(synchronize_session=False)
            return len(sums)

        return self._job(name, fetch, apply).run()

    # ------------------------------------------------------------------
    # Completion barrier
    # ------------------------------------------------------------------

    def _require_runs(
        self,
        granularity: UsageType,
        expected: List[date],
        requested: UsageType,
        period: date,
    ) -> None:
        """
        Every expected lower-granularity period since the first recorded run
        of that granularity must have completed.
        """
        db = self.session_factory()
        try:
            first = (
                db.query(func.min(RollupRun.period))
                .filter(RollupRun.granularity == granularity)
                .scalar()
            )
            if first is None:
                return

            expected = [p for p in expected if p >= first]
            if not expected:
                return

            done = {
                row[0]
                for row in db.query(RollupRun.period).filter(
                    RollupRun.granularity == granularity,
                    RollupRun.period.in_(expected),
                )
            }
        finally:
            db.close()

        missing = [p for p in expected if p not in done]
        if missing:
            error = IncompleteRollupWindow(requested.value, period, missing)
            logger.error(str(error))
            raise error

    def _record_run(self, granularity: UsageType, period: date, rows_written: int) -> None:
        db = self.session_factory()
        try:
            with transaction(db):
                insert_ignore(db, RollupRun, {
                    'granularity': granularity,
                    'period': period,
                    'rows_written': rows_written,
                    'completed_at': utcnow(),
                })
        finally:
            db.close()

        record_rollup_rows(granularity.value, rows_written)
        logger.info(f"{granularity.value} usage rollup for {period} complete: {rows_written} row(s)")

    def list_runs(self, granularity: UsageType, limit: int = 100) -> List[RollupRun]:
        db = self.session_factory()
        try:
            return (
                db.query(RollupRun)
                .filter(RollupRun.granularity == UsageType(granularity))
                .order_by(RollupRun.period.desc())
                .limit(limit)
                .all()
            )
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Queries and incremental updates
    # ------------------------------------------------------------------

    @staticmethod
    def _has_ledger(db: Session, user_id: str) -> bool:
        return db.query(Usage.id).filter(Usage.user_id == user_id).first() is not None

    def seed_usage_baseline(self, user_id: str, today: Optional[date] = None) -> bool:
        """
        Give a user with no ledger rows a baseline row dated yesterday.

        The row holds the size of every file created before today and not
        removed before today. Daily jobs for yesterday or any earlier day,
        including late catch-up runs, skip the user, so nothing is counted
        twice. Baseline rows are never folded into monthly or yearly rows.

        Returns:
            True if a baseline row was written
        """
        today = today or utcnow().date()
        today_start, _ = day_bounds(today)

        db = self.session_factory()
        try:
            with transaction(db):
                if self._has_ledger(db, user_id):
                    return False

                baseline = (
                    db.query(func.coalesce(func.sum(File.size), 0))
                    .filter(
                        File.user_id == user_id,
                        File.created_at < today_start,
                        or_(File.removed_at.is_(None), File.removed_at >= today_start),
                    )
                    .scalar()
                )
                created = insert_ignore(db, Usage, {
                    'user_id': user_id,
                    'delta': int(baseline or 0),
                    'period': today - timedelta(days=1),
                    'type': UsageType.BASELINE,
                })
        finally:
            db.close()

        if created:
            logger.info(f"Seeded usage baseline for user {user_id}: {int(baseline or 0)} bytes")
        return created

    def record_size_change(
        self,
        user_id: str,
        old_size: int,
        new_size: int,
        created_at: datetime,
        today: Optional[date] = None,
    ) -> bool:
        """
        Record the size change of an overwritten file as a ``change`` row.

        Nothing is written for a zero delta, for files created today (the next
        daily job counts their current size) or for users without a ledger
        (their first read seeds the current size).

        Returns:
            True if a row was written
        """
        today = today or utcnow().date()
        delta = int(new_size) - int(old_size)
        if delta == 0 or _utc_date(created_at) == today:
            return False

        db = self.session_factory()
        try:
            with transaction(db):
                if not self._has_ledger(db, user_id):
                    return False
                db.add(Usage(user_id=user_id, delta=delta, period=today, type=UsageType.CHANGE))
        finally:
            db.close()

        logger.debug(f"Size change of {delta} bytes recorded for user {user_id}")
        return True

    def get_user_usage(self, user_id: str, today: Optional[date] = None) -> UserUsage:
        """
        Current usage of a user: ledger sum plus backups.

        A user read for the first time is seeded from their files.
        """
        self.seed_usage_baseline(user_id, today=today)

        db = self.session_factory()
        try:
            drive = (
                db.query(func.coalesce(func.sum(Usage.delta), 0))
                .filter(Usage.user_id == user_id)
                .scalar()
            )
            backup = (
                db.query(func.coalesce(func.sum(Backup.size), 0))
                .filter(Backup.user_id == user_id)
                .scalar()
            )
        finally:
            db.close()

        return UserUsage(user_id=user_id, drive=int(drive or 0), backup=int(backup or 0))
