from celery import Celery
from inventory_ledger.core.config import settings
import sys

# Create Celery app
celery_app = Celery(
    "inventory_ledger",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "inventory_ledger.workers.celery_tasks.ledger_tasks",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
)

# Windows-specific configuration
if sys.platform == 'win32':
    celery_app.conf.update(
        worker_pool='threads',
        worker_concurrency=4
    )

celery_app.conf.beat_schedule = {
    # Retry side effects that were not delivered right after commit
    'dispatch-outbox-events': {
        'task': 'inventory_ledger.workers.celery_tasks.ledger_tasks.dispatch_outbox_events',
        'schedule': 60.0,  # Every minute
    },
    'check-ledger-consistency': {
        'task': 'inventory_ledger.workers.celery_tasks.ledger_tasks.check_ledger_consistency',
        'schedule': 86400.0,  # Daily
    },
}
