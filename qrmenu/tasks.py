"""
Celery Tasks
Background work that should not block a request: workbook exports.
"""

import time
from datetime import datetime, timezone

from celery.utils.log import get_task_logger

from qrmenu.celery_worker import celery_app
from qrmenu.services.exporter import OrderExporter

logger = get_task_logger(__name__)


class ExportLockTimeout(Exception):
    """The workbook stayed locked for longer than the configured timeout."""


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(ExportLockTimeout,),
    retry_backoff=True
)
def export_orders_to_excel(self, rows: list, restaurant_id: str) -> dict:
    """
    Append exported order rows to the Excel workbook.

    Args:
        rows: Flat order rows as built by ``OrderExporter.rows``
        restaurant_id: Restaurant the rows belong to

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    logger.info(f"Task {task_id}: exporting {len(rows)} orders of restaurant {restaurant_id}")
    start_time = time.time()

    result = OrderExporter().append_to_workbook(rows, restaurant_id)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if not result['success']:
        logger.warning(f"Task {task_id}: export failed after {elapsed}s - {result['message']}")
        raise ExportLockTimeout(result['message'])

    logger.info(f"Task {task_id}: {len(rows)} orders exported in {elapsed}s")
    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now(timezone.utc).isoformat()
    }
