"""
Airflow DAG for the Reclamation Outbox

Runs every 15 minutes:
- Drain each reclamation queue and delete the blobs from MinIO
- Report the remaining backlog per queue

Records that fail to reclaim stay enqueued and unprocessed and are logged.
"""
from airflow import DAG
from airflow.providers.standard.operators.python import PythonOperator
from datetime import datetime, timedelta
import sys
import logging

# Add project root to Python path for imports
sys.path.insert(0, '/code')

from app.db import SessionLocal
from app.models import ReclamationKind
from app.reclamation import ReclamationOutbox, ReclamationWorker

logger = logging.getLogger(__name__)


# ============================================================================
# DAG CONFIGURATION
# ============================================================================

default_args = {
    'owner': 'drive-lifecycle',
    'depends_on_past': False,
    'email_on_failure': False,
    'email_on_retry': False,
    'retries': 1,
    'retry_delay': timedelta(minutes=2),
}


# ============================================================================
# TASK FUNCTIONS
# ============================================================================

def reclaim_task(kind: str, **context):
    """
    Drain one batch of a queue and reclaim it
    """
    db = SessionLocal()
    try:
        result = ReclamationWorker.from_settings(db).run_once(ReclamationKind(kind))
    finally:
        db.close()

    if result.failed:
        logger.warning(f"{result.failed} {kind} record(s) could not be reclaimed")

    context['task_instance'].xcom_push(key='reclamation_result', value=result.to_dict())


def report_backlog_task(**context):
    """
    Log the unprocessed backlog of every queue
    """
    db = SessionLocal()
    try:
        counts = ReclamationOutbox(db).pending_counts()
    finally:
        db.close()

    for kind, count in counts.items():
        logger.info(f"Reclamation backlog {kind}: {count}")

    context['task_instance'].xcom_push(key='reclamation_backlog', value=counts)


with DAG(
    'reclamation_pipeline',
    default_args=default_args,
    description='Physical blob cleanup for logically deleted entities',
    schedule='*/15 * * * *',
    start_date=datetime(2026, 1, 1),
    catchup=False,
    tags=['reclamation', 'storage'],
    max_active_runs=1,
) as dag:

    reclaim_tasks = [
        PythonOperator(
            task_id=f"reclaim_{kind.value.replace('-', '_')}",
            python_callable=reclaim_task,
            op_kwargs={'kind': kind.value},
        )
        for kind in ReclamationKind
    ]

    report_backlog = PythonOperator(
        task_id='report_backlog',
        python_callable=report_backlog_task,
    )

    # Queues are independent and drain in parallel
    reclaim_tasks >> report_backlog
