"""
Celery Tasks
Background tasks for work that must not hold up an API request.
"""

import logging
import time
from datetime import datetime

from servesoft.celery_worker import celery_app
from servesoft.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_order_to_excel(self, order_data: dict) -> dict:
    """
    Append a placed order to the Excel export.

    Args:
        order_data: Flat order payload built by the ordering service

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    order_code = order_data.get('order_code', 'unknown')

    logger.info(f"📋 Task {task_id}: exporting order {order_code}")
    start_time = time.time()

    result = ExcelManager.export_order(order_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"✅ Task {task_id}: order {order_code} exported in {elapsed}s")
    else:
        logger.warning(f"⚠️ Task {task_id}: order {order_code} not exported - {result['message']}")

    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }


@celery_app.task
def clear_excel_export() -> dict:
    """
    Remove the Excel export (for testing/reset purposes).
    """
    success = ExcelManager.clear_all()
    return {
        'success': success,
        'message': 'Excel export cleared' if success else 'Failed to clear Excel export',
        'timestamp': datetime.now().isoformat()
    }
