"""
Airflow DAG for the Usage Ledger rollups

Runs daily shortly after midnight UTC:
- Daily rollup for yesterday
- Monthly rollup of the previous month, on the first day of a month
- Yearly rollup of the previous year, on the first day of a year

The monthly and yearly tasks refuse to run while a lower-granularity run of
their window is missing; the failure is visible in the task log.
"""
from airflow import DAG
from airflow.providers.standard.operators.python import PythonOperator, ShortCircuitOperator
from datetime import datetime, timedelta, timezone
import sys
import logging

# Add project root to Python path for imports
sys.path.insert(0, '/code')

from app.usage import UsageLedger

logger = logging.getLogger(__name__)


# ============================================================================
# DAG CONFIGURATION
# ============================================================================

default_args = {
    'owner': 'drive-lifecycle',
    'depends_on_past': True,
    'email_on_failure': False,
    'email_on_retry': False,
    'retries': 2,
    'retry_delay': timedelta(minutes=10),
}


# ============================================================================
# TASK FUNCTIONS
# ============================================================================

def daily_rollup_task(**context):
    """
    Task 1: Append yesterday's daily usage rows
    """
    report = UsageLedger().run_daily_rollup()
    logger.info(f"Daily rollup: {report.rows_affected} row(s) in {report.batches_run} batch(es)")
    context['task_instance'].xcom_push(key='daily_rollup', value=report.to_dict())


def is_first_day_of_month(**context) -> bool:
    return datetime.now(timezone.utc).day == 1


def monthly_rollup_task(**context):
    """
    Task 2: Fold last month's daily rows into monthly rows
    """
    report = UsageLedger().run_monthly_rollup()
    logger.info(f"Monthly rollup: {report.rows_affected} user(s) folded")
    context['task_instance'].xcom_push(key='monthly_rollup', value=report.to_dict())


def is_first_day_of_year(**context) -> bool:
    today = datetime.now(timezone.utc)
    return today.month == 1 and today.day == 1


def yearly_rollup_task(**context):
    """
    Task 3: Fold last year's monthly rows into yearly rows
    """
    report = UsageLedger().run_yearly_rollup()
    logger.info(f"Yearly rollup: {report.rows_affected} user(s) folded")
    context['task_instance'].xcom_push(key='yearly_rollup', value=report.to_dict())


with DAG(
    'usage_rollup_pipeline',
    default_args=default_args,
    description='Daily, monthly and yearly usage ledger rollups',
    schedule='30 0 * * *',  # 00:30 UTC, after the day is closed
    start_date=datetime(2026, 1, 1),
    catchup=False,
    tags=['usage', 'ledger'],
    max_active_runs=1,
) as dag:

    daily_rollup = PythonOperator(
        task_id='daily_rollup',
        python_callable=daily_rollup_task,
    )

    first_of_month = ShortCircuitOperator(
        task_id='first_of_month',
        python_callable=is_first_day_of_month,
    )

    monthly_rollup = PythonOperator(
        task_id='monthly_rollup',
        python_callable=monthly_rollup_task,
    )

    first_of_year = ShortCircuitOperator(
        task_id='first_of_year',
        python_callable=is_first_day_of_year,
    )

    yearly_rollup = PythonOperator(
        task_id='yearly_rollup',
        python_callable=yearly_rollup_task,
    )

    # Monthly needs the month's last daily run; yearly needs December's monthly run
    daily_rollup >> first_of_month >> monthly_rollup >> first_of_year >> yearly_rollup
