"""
Unit tests for the usage ledger rollups and usage queries.
Tests app/usage/ledger.py
"""
import pytest
from datetime import date, datetime, timezone

from app.core.config import settings
from app.core.exceptions import IncompleteRollupWindow
from app.models import FileStatus, RollupRun, Usage, UsageType
from app.usage.ledger import day_bounds, previous_month, previous_year

USER_ID = "7c1e2f3a-0000-4000-8000-000000000001"
OTHER_USER = "7c1e2f3a-0000-4000-8000-000000000002"

DAY = date(2026, 3, 10)


def utc(year, month, day, hour=12, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def usage_rows(db, user_id=None, type=None):
    db.expire_all()
    query = db.query(Usage)
    if user_id is not None:
        query = query.filter(Usage.user_id == user_id)
    if type is not None:
        query = query.filter(Usage.type == type)
    return query.order_by(Usage.period).all()


@pytest.fixture
def add_usage(db):
    def _add_usage(delta, period, type=UsageType.DAILY, user_id=USER_ID):
        db.add(Usage(user_id=user_id, delta=delta, period=period, type=type))
        db.commit()

    return _add_usage


@pytest.fixture
def add_run(db):
    def _add_run(granularity, *periods):
        for period in periods:
            db.add(RollupRun(granularity=granularity, period=period))
        db.commit()

    return _add_run


@pytest.mark.unit
class TestPeriodHelpers:

    def test_day_bounds(self):
        start, end = day_bounds(DAY)
        assert start == utc(2026, 3, 10, 0)
        assert end == utc(2026, 3, 11, 0)

    def test_previous_month(self):
        assert previous_month(date(2026, 3, 1)) == (date(2026, 2, 1), date(2026, 3, 1))
        assert previous_month(date(2026, 1, 15)) == (date(2025, 12, 1), date(2026, 1, 1))

    def test_previous_year(self):
        assert previous_year(date(2026, 1, 1)) == (date(2025, 1, 1), date(2026, 1, 1))


@pytest.mark.unit
class TestDailyRollup:
    """Test UsageLedger.run_daily_rollup."""

    def test_daily_delta(self, ledger, make_file, db):
        # removed on DAY, created before: -300
        make_file(size=300, created_at=utc(2026, 3, 1), removed_at=utc(2026, 3, 10, 9),
                  status=FileStatus.DELETED)
        # created on DAY: +200
        make_file(size=200, created_at=utc(2026, 3, 10, 8))
        # created on DAY, removed later: +50
        make_file(size=50, created_at=utc(2026, 3, 10, 23, 59), removed_at=utc(2026, 3, 12),
                  status=FileStatus.DELETED)
        # created and removed on DAY: nothing
        make_file(size=1000, created_at=utc(2026, 3, 10, 1), removed_at=utc(2026, 3, 10, 2),
                  status=FileStatus.DELETED)
        # trashed files still count as used
        make_file(size=7, created_at=utc(2026, 3, 10, 3), status=FileStatus.TRASHED)

        report = ledger.run_daily_rollup(DAY)

        rows = usage_rows(db, USER_ID)
        assert len(rows) == 1
        assert rows[0].delta == 200 + 50 + 7 - 300
        assert rows[0].period == DAY
        assert rows[0].type == UsageType.DAILY
        assert report.rows_affected == 1

    def test_same_day_create_and_delete_gives_no_row(self, ledger, make_file, db):
        make_file(size=1000, created_at=utc(2026, 3, 10, 1), removed_at=utc(2026, 3, 10, 2),
                  status=FileStatus.DELETED)

        ledger.run_daily_rollup(DAY)

        assert usage_rows(db) == []

    def test_activity_on_other_days_ignored(self, ledger, make_file, db):
        make_file(size=10, created_at=utc(2026, 3, 9, 23, 59))
        make_file(size=10, created_at=utc(2026, 3, 11, 0, 0))

        ledger.run_daily_rollup(DAY)

        assert usage_rows(db) == []

    def test_rerun_is_a_no_op(self, ledger, make_file, db):
        make_file(size=200, created_at=utc(2026, 3, 10))

        first = ledger.run_daily_rollup(DAY)
        second = ledger.run_daily_rollup(DAY)

        assert first.rows_affected == 1
        assert second.rows_affected == 0
        assert [row.delta for row in usage_rows(db)] == [200]

    def test_users_processed_in_batches(self, ledger, make_file, db):
        users = [f"user-{i}" for i in range(5)]
        for i, user_id in enumerate(users):
            make_file(size=10 * (i + 1), user_id=user_id, created_at=utc(2026, 3, 10))

        report = ledger.run_daily_rollup(DAY)

        assert report.rows_affected == 5
        assert report.batches_run == 3
        assert {row.user_id: row.delta for row in usage_rows(db)} == {
            "user-0": 10, "user-1": 20, "user-2": 30, "user-3": 40, "user-4": 50,
        }

    def test_records_rollup_run(self, ledger, make_file, db):
        make_file(size=10, created_at=utc(2026, 3, 10))

        ledger.run_daily_rollup(DAY)

        runs = ledger.list_runs(UsageType.DAILY)
        assert [(run.period, run.rows_written) for run in runs] == [(DAY, 1)]


@pytest.mark.unit
class TestMonthlyRollup:
    """Test UsageLedger.run_monthly_rollup."""

    def test_conservation(self, ledger, add_usage, db):
        add_usage(100, date(2026, 2, 1))
        add_usage(-30, date(2026, 2, 14))
        add_usage(55, date(2026, 2, 28))
        add_usage(7, date(2026, 2, 3), user_id=OTHER_USER)
        add_usage(999, date(2026, 3, 1))

        ledger.run_monthly_rollup(today=date(2026, 3, 1), force=True)

        monthly = usage_rows(db, type=UsageType.MONTHLY)
        assert {(row.user_id, row.period, row.delta) for row in monthly} == {
            (USER_ID, date(2026, 2, 1), 125),
            (OTHER_USER, date(2026, 2, 1), 7),
        }
        daily = usage_rows(db, type=UsageType.DAILY)
        assert [(row.period, row.delta) for row in daily] == [(date(2026, 3, 1), 999)]

    def test_change_rows_are_folded(self, ledger, add_usage, db):
        add_usage(100, date(2026, 2, 5))
        add_usage(-40, date(2026, 2, 5), type=UsageType.CHANGE)
        add_usage(15, date(2026, 2, 5), type=UsageType.CHANGE)

        ledger.run_monthly_rollup(today=date(2026, 3, 1), force=True)

        assert [(row.type, row.delta) for row in usage_rows(db)] == [(UsageType.MONTHLY, 75)]

    def test_late_rows_increment_existing_monthly_row(self, ledger, add_usage, db):
        add_usage(100, date(2026, 2, 1), type=UsageType.MONTHLY)
        add_usage(20, date(2026, 2, 20))

        ledger.run_monthly_rollup(today=date(2026, 3, 5), force=True)

        rows = usage_rows(db)
        assert [(row.type, row.delta) for row in rows] == [(UsageType.MONTHLY, 120)]

    def test_total_is_preserved(self, ledger, add_usage, db):
        for day in range(1, 29):
            add_usage(day, date(2026, 2, day))
        before = sum(row.delta for row in usage_rows(db))

        ledger.run_monthly_rollup(today=date(2026, 3, 1), force=True)

        assert sum(row.delta for row in usage_rows(db)) == before

    def test_barrier_blocks_incomplete_month(self, ledger, add_usage, add_run, db):
        add_usage(100, date(2026, 2, 1))
        add_run(UsageType.DAILY, *[date(2026, 2, d) for d in range(1, 28)])

        with pytest.raises(IncompleteRollupWindow) as exc_info:
            ledger.run_monthly_rollup(today=date(2026, 3, 1))

        assert exc_info.value.missing == [date(2026, 2, 28)]
        assert [row.type for row in usage_rows(db)] == [UsageType.DAILY]

    def test_barrier_passes_complete_month(self, ledger, add_usage, add_run, db):
        add_usage(100, date(2026, 2, 1))
        add_run(UsageType.DAILY, *[date(2026, 2, d) for d in range(1, 29)])

        ledger.run_monthly_rollup(today=date(2026, 3, 1))

        assert [row.type for row in usage_rows(db)] == [UsageType.MONTHLY]
        assert [run.period for run in ledger.list_runs(UsageType.MONTHLY)] == [date(2026, 2, 1)]

    def test_barrier_starts_at_first_daily_run(self, ledger, add_usage, add_run, db):
        add_run(UsageType.DAILY, *[date(2026, 2, d) for d in range(15, 29)])

        ledger.run_monthly_rollup(today=date(2026, 3, 1))

    def test_force_skips_barrier(self, ledger, add_usage, add_run, db):
        add_usage(100, date(2026, 2, 1))
        add_run(UsageType.DAILY, date(2026, 2, 1))

        ledger.run_monthly_rollup(today=date(2026, 3, 1), force=True)

        assert [row.type for row in usage_rows(db)] == [UsageType.MONTHLY]

    def test_barrier_can_be_disabled(self, ledger, add_usage, add_run, monkeypatch):
        monkeypatch.setattr(settings, "ROLLUP_REQUIRE_COMPLETE_WINDOW", False)
        add_run(UsageType.DAILY, date(2026, 2, 1))

        ledger.run_monthly_rollup(today=date(2026, 3, 1))


@pytest.mark.unit
class TestYearlyRollup:
    """Test UsageLedger.run_yearly_rollup."""

    def test_folds_monthly_and_stray_daily_rows(self, ledger, add_usage, db):
        add_usage(1000, date(2025, 1, 1), type=UsageType.MONTHLY)
        add_usage(-200, date(2025, 11, 1), type=UsageType.MONTHLY)
        add_usage(30, date(2025, 12, 31))
        add_usage(5, date(2026, 1, 1))

        ledger.run_yearly_rollup(today=date(2026, 1, 1), force=True)

        rows = usage_rows(db)
        assert [(row.type, row.period, row.delta) for row in rows] == [
            (UsageType.YEARLY, date(2025, 1, 1), 830),
            (UsageType.DAILY, date(2026, 1, 1), 5),
        ]

    def test_barrier_needs_every_month(self, ledger, add_usage, add_run):
        add_run(UsageType.MONTHLY, *[date(2025, m, 1) for m in range(1, 12)])

        with pytest.raises(IncompleteRollupWindow) as exc_info:
            ledger.run_yearly_rollup(today=date(2026, 1, 1))

        assert exc_info.value.missing == [date(2025, 12, 1)]


@pytest.mark.unit
class TestUserUsage:
    """Test get_user_usage, seed_usage_baseline and record_size_change."""

    def test_usage_sums_ledger_and_backups(self, ledger, add_usage, make_backup):
        add_usage(500, date(2025, 1, 1), type=UsageType.YEARLY)
        add_usage(200, date(2026, 2, 1), type=UsageType.MONTHLY)
        add_usage(-50, date(2026, 3, 9))
        make_backup(1000)
        make_backup(24)
        make_backup(99, user_id=OTHER_USER)

        usage = ledger.get_user_usage(USER_ID)

        assert usage.drive == 650
        assert usage.backup == 1024
        assert usage.total == 1674

    def test_seed_baseline(self, ledger, make_file, db):
        today = DAY
        make_file(size=100, created_at=utc(2026, 1, 1))
        # removed before today: not counted
        make_file(size=40, created_at=utc(2026, 1, 1), removed_at=utc(2026, 3, 9),
                  status=FileStatus.DELETED)
        # removed today: still counted at the start of today
        make_file(size=20, created_at=utc(2026, 1, 1), removed_at=utc(2026, 3, 10, 1),
                  status=FileStatus.DELETED)
        # created today: left to the daily job
        make_file(size=8, created_at=utc(2026, 3, 10, 2))

        assert ledger.seed_usage_baseline(USER_ID, today=today) is True

        rows = usage_rows(db, USER_ID)
        assert [(row.period, row.type, row.delta) for row in rows] == [
            (date(2026, 3, 9), UsageType.BASELINE, 120),
        ]
        assert ledger.seed_usage_baseline(USER_ID, today=today) is False

    def test_seeded_day_is_not_counted_twice(self, ledger, make_file, db):
        make_file(size=100, created_at=utc(2026, 3, 9, 10))

        ledger.seed_usage_baseline(USER_ID, today=DAY)
        report = ledger.run_daily_rollup(date(2026, 3, 9))

        assert report.rows_affected == 0
        assert ledger.get_user_usage(USER_ID, today=DAY).drive == 100

    def test_catch_up_of_missed_day_after_seed(self, ledger, make_file, db):
        make_file(size=500, created_at=utc(2026, 3, 9, 10))

        # First read on the 11th seeds a baseline dated the 10th
        assert ledger.get_user_usage(USER_ID, today=date(2026, 3, 11)).drive == 500

        # The missed daily run for the 9th is replayed afterwards
        report = ledger.run_daily_rollup(date(2026, 3, 9))

        assert report.rows_affected == 0
        assert usage_rows(db, USER_ID, type=UsageType.DAILY) == []
        assert ledger.get_user_usage(USER_ID, today=date(2026, 3, 11)).drive == 500

    def test_catch_up_of_removal_before_seed(self, ledger, make_file, db):
        make_file(size=300, created_at=utc(2026, 1, 1))
        make_file(size=80, created_at=utc(2026, 1, 1), removed_at=utc(2026, 3, 8),
                  status=FileStatus.DELETED)
        ledger.seed_usage_baseline(USER_ID, today=DAY)

        ledger.run_daily_rollup(date(2026, 3, 8))

        assert ledger.get_user_usage(USER_ID, today=DAY).drive == 300

    def test_days_after_the_seed_are_counted(self, ledger, make_file, db):
        make_file(size=100, created_at=utc(2026, 1, 1))
        ledger.seed_usage_baseline(USER_ID, today=DAY)
        make_file(size=25, created_at=utc(2026, 3, 10, 9))

        report = ledger.run_daily_rollup(DAY)

        assert report.rows_affected == 1
        assert ledger.get_user_usage(USER_ID, today=DAY).drive == 125

    def test_rollups_keep_the_baseline_row(self, ledger, add_usage, db):
        add_usage(1000, date(2026, 2, 9), type=UsageType.BASELINE)
        add_usage(50, date(2026, 2, 20))

        ledger.run_monthly_rollup(today=date(2026, 3, 1), force=True)
        ledger.run_yearly_rollup(today=date(2027, 1, 1), force=True)

        rows = usage_rows(db, USER_ID)
        assert [(row.type, row.period, row.delta) for row in rows] == [
            (UsageType.YEARLY, date(2026, 1, 1), 50),
            (UsageType.BASELINE, date(2026, 2, 9), 1000),
        ]

    def test_first_read_seeds_ledger(self, ledger, make_file, db):
        make_file(size=64, created_at=utc(2026, 1, 1))

        usage = ledger.get_user_usage(USER_ID, today=DAY)

        assert usage.drive == 64
        assert len(usage_rows(db, USER_ID)) == 1

    def test_record_size_change(self, ledger, add_usage, db):
        add_usage(100, date(2026, 3, 1))

        written = ledger.record_size_change(
            USER_ID, old_size=100, new_size=160, created_at=utc(2026, 2, 1), today=DAY
        )

        assert written is True
        changes = usage_rows(db, USER_ID, type=UsageType.CHANGE)
        assert [(row.period, row.delta) for row in changes] == [(DAY, 60)]
        assert ledger.get_user_usage(USER_ID, today=DAY).drive == 160

    def test_several_size_changes_per_day(self, ledger, add_usage, db):
        add_usage(100, date(2026, 3, 1))

        ledger.record_size_change(USER_ID, 100, 160, utc(2026, 2, 1), today=DAY)
        ledger.record_size_change(USER_ID, 160, 10, utc(2026, 2, 1), today=DAY)

        assert [row.delta for row in usage_rows(db, USER_ID, type=UsageType.CHANGE)] == [60, -150]

    def test_size_change_skipped(self, ledger, add_usage, db):
        # no ledger yet
        assert ledger.record_size_change(USER_ID, 1, 2, utc(2026, 2, 1), today=DAY) is False

        add_usage(100, date(2026, 3, 1))
        # zero delta
        assert ledger.record_size_change(USER_ID, 5, 5, utc(2026, 2, 1), today=DAY) is False
        # created today
        assert ledger.record_size_change(USER_ID, 5, 9, utc(2026, 3, 10, 4), today=DAY) is False

        assert usage_rows(db, USER_ID, type=UsageType.CHANGE) == []
