"""
Airflow DAG for lifecycle data repairs

Runs daily at 3 AM UTC:
- Remove folders whose parent is missing or removed
- Expire file versions past the retention window
- Rename duplicate sibling folders
- Write reclamation records that terminal entities are missing

Every repair only selects still-broken rows, so a failed run is retried from
scratch.
"""
from airflow import DAG
from airflow.providers.standard.operators.python import PythonOperator
from datetime import datetime, timedelta
import sys
import logging

# Add project root to Python path for imports
sys.path.insert(0, '/code')

from app.jobs import (
    backfill_reclamation_records,
    clear_orphan_folders,
    dedupe_folder_names,
    expire_file_versions,
)
from app.models import ReclamationKind

logger = logging.getLogger(__name__)


default_args = {
    'owner': 'drive-lifecycle',
    'depends_on_past': False,
    'email_on_failure': False,
    'email_on_retry': False,
    'retries': 2,
    'retry_delay': timedelta(minutes=15),
}


def clear_orphan_folders_task(**context):
    report = clear_orphan_folders()
    logger.info(f"Orphan cleanup removed {report.rows_affected} node(s)")
    context['task_instance'].xcom_push(key='orphans', value=report.to_dict())


def expire_file_versions_task(**context):
    report = expire_file_versions()
    logger.info(f"Expired {report.rows_affected} file version(s)")
    context['task_instance'].xcom_push(key='expired_versions', value=report.to_dict())


def dedupe_folder_names_task(**context):
    report = dedupe_folder_names()
    logger.info(f"Renamed {report.rows_affected} duplicate folder(s)")
    context['task_instance'].xcom_push(key='dedupe', value=report.to_dict())


def backfill_reclamation_task(**context):
    results = {}
    for kind in ReclamationKind:
        report = backfill_reclamation_records(kind)
        results[kind.value] = report.to_dict()
        logger.info(f"Backfilled {report.rows_affected} {kind.value} reclamation record(s)")
    context['task_instance'].xcom_push(key='backfill', value=results)


with DAG(
    'lifecycle_maintenance_pipeline',
    default_args=default_args,
    description='Batch repairs for the folder tree, file versions and the reclamation outbox',
    schedule='0 3 * * *',
    start_date=datetime(2026, 1, 1),
    catchup=False,
    tags=['lifecycle', 'maintenance'],
    max_active_runs=1,
) as dag:

    clear_orphans = PythonOperator(
        task_id='clear_orphan_folders',
        python_callable=clear_orphan_folders_task,
    )

    expire_versions = PythonOperator(
        task_id='expire_file_versions',
        python_callable=expire_file_versions_task,
    )

    dedupe_names = PythonOperator(
        task_id='dedupe_folder_names',
        python_callable=dedupe_folder_names_task,
    )

    backfill_reclamation = PythonOperator(
        task_id='backfill_reclamation_records',
        python_callable=backfill_reclamation_task,
    )

    # Backfill last so it covers entities the other repairs just made terminal
    [clear_orphans, expire_versions, dedupe_names] >> backfill_reclamation
