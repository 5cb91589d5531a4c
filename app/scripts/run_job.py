#!/usr/bin/env python3
"""
Command-line runner for the scheduled jobs.

Usage:
    python -m app.scripts.run_job init-db
    python -m app.scripts.run_job rollup daily [--day 2026-10-17]
    python -m app.scripts.run_job rollup monthly [--today 2026-11-01] [--force]
    python -m app.scripts.run_job reclaim [--kind file]
    python -m app.scripts.run_job repair orphans [--user-id UUID]
    python -m app.scripts.run_job repair backfill --kind folder
    python -m app.scripts.run_job repair expire-versions [--retention-days 30]
    python -m app.scripts.run_job repair dedupe-folders
"""
import argparse
import json
import logging
import sys
from datetime import date

from app.core.config import settings
from app.core.exceptions import LifecycleError
from app.core.logging import configure_logging
from app.db import SessionLocal, init_db
from app.jobs import (
    backfill_reclamation_records,
    clear_orphan_folders,
    dedupe_folder_names,
    expire_file_versions,
)
from app.models import ReclamationKind
from app.reclamation import ReclamationWorker
from app.usage import UsageLedger

logger = logging.getLogger("app.scripts.run_job")


def init_db_command(args):
    """Create all tables (development and test databases)"""
    init_db()
    return {"initialized": True}


def rollup_command(args):
    """Run one usage rollup"""
    ledger = UsageLedger()
    if args.granularity == "daily":
        report = ledger.run_daily_rollup(args.day)
    elif args.granularity == "monthly":
        report = ledger.run_monthly_rollup(args.today, force=args.force)
    else:
        report = ledger.run_yearly_rollup(args.today, force=args.force)
    return report.to_dict()


def reclaim_command(args):
    """Drain one batch per queue and delete the blobs"""
    db = SessionLocal()
    try:
        worker = ReclamationWorker.from_settings(db)
        if args.kind:
            results = [worker.run_once(ReclamationKind(args.kind))]
        else:
            results = worker.run_all()
        return [result.to_dict() for result in results]
    finally:
        db.close()


def repair_command(args):
    """Run one data repair"""
    if args.repair == "orphans":
        report = clear_orphan_folders(user_id=args.user_id)
    elif args.repair == "backfill":
        report = backfill_reclamation_records(ReclamationKind(args.kind))
    elif args.repair == "expire-versions":
        report = expire_file_versions(args.retention_days)
    else:
        report = dedupe_folder_names()
    return report.to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Drive lifecycle job runner")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=init_db_command)

    rollup_parser = subparsers.add_parser("rollup", help="Run a usage rollup")
    rollup_parser.add_argument("granularity", choices=["daily", "monthly", "yearly"])
    rollup_parser.add_argument("--day", type=date.fromisoformat, help="Day for the daily rollup")
    rollup_parser.add_argument("--today", type=date.fromisoformat, help="Anchor date for monthly/yearly")
    rollup_parser.add_argument("--force", action="store_true", help="Skip the completion barrier")
    rollup_parser.set_defaults(func=rollup_command)

    reclaim_parser = subparsers.add_parser("reclaim", help="Reclaim blobs of deleted entities")
    reclaim_parser.add_argument("--kind", choices=[kind.value for kind in ReclamationKind])
    reclaim_parser.set_defaults(func=reclaim_command)

    repair_parser = subparsers.add_parser("repair", help="Run a data repair job")
    repair_parser.add_argument(
        "repair",
        choices=["orphans", "backfill", "expire-versions", "dedupe-folders"],
    )
    repair_parser.add_argument("--user-id", help="Restrict orphan cleanup to one user")
    repair_parser.add_argument(
        "--kind",
        choices=[kind.value for kind in ReclamationKind],
        default=ReclamationKind.FILE.value,
        help="Queue to backfill",
    )
    repair_parser.add_argument(
        "--retention-days",
        type=int,
        default=settings.FILE_VERSION_RETENTION_DAYS,
    )
    repair_parser.set_defaults(func=repair_command)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    try:
        result = args.func(args)
    except LifecycleError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
