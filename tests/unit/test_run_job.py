"""
Unit tests for the job runner CLI.
Tests app/scripts/run_job.py
"""
import json
import pytest
from datetime import date
from unittest.mock import patch

from app.core.exceptions import IncompleteRollupWindow
from app.jobs import BatchJobReport
from app.scripts import run_job


@pytest.mark.unit
class TestRunJob:

    def test_parses_rollup_arguments(self):
        args = run_job.build_parser().parse_args(["rollup", "monthly", "--today", "2026-11-01", "--force"])

        assert args.granularity == "monthly"
        assert args.today == date(2026, 11, 1)
        assert args.force is True

    def test_rejects_unknown_repair(self):
        with pytest.raises(SystemExit):
            run_job.build_parser().parse_args(["repair", "everything"])

    def test_daily_rollup_prints_report(self, capsys):
        with patch.object(run_job, "UsageLedger") as ledger_cls:
            ledger_cls.return_value.run_daily_rollup.return_value = BatchJobReport(
                job_name="usage-daily-rollup", rows_affected=3, batches_run=1
            )

            exit_code = run_job.main(["rollup", "daily", "--day", "2026-10-17"])

        assert exit_code == 0
        ledger_cls.return_value.run_daily_rollup.assert_called_once_with(date(2026, 10, 17))
        assert json.loads(capsys.readouterr().out)["rows_affected"] == 3

    def test_lifecycle_error_exits_non_zero(self, capsys):
        error = IncompleteRollupWindow("monthly", date(2026, 10, 1), [date(2026, 10, 31)])

        with patch.object(run_job, "UsageLedger") as ledger_cls:
            ledger_cls.return_value.run_monthly_rollup.side_effect = error

            exit_code = run_job.main(["rollup", "monthly"])

        assert exit_code == 1
        assert capsys.readouterr().out == ""

    def test_repair_backfill_kind(self):
        with patch.object(run_job, "backfill_reclamation_records") as backfill:
            backfill.return_value = BatchJobReport(job_name="backfill-reclamation-folder")

            assert run_job.main(["repair", "backfill", "--kind", "folder"]) == 0

        assert backfill.call_args.args[0].value == "folder"
