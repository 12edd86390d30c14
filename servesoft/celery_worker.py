"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend.

Run a worker with:
    celery -A servesoft.celery_worker worker --loglevel=info
"""

from celery import Celery

from servesoft.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    'servesoft_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['servesoft.tasks']
)

celery_app.conf.update(
    # Task settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Inline execution for local runs and tests
    task_always_eager=settings.celery_task_always_eager,
    task_eager_propagates=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Result settings
    result_expires=3600,

    # Task execution settings
    task_acks_late=True,  # Acknowledge task after completion
    task_reject_on_worker_lost=True,  # Requeue task if worker dies

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
