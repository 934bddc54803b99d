from celery import Celery
from app.config import settings

celery_app = Celery(
    "console",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.broker_connection_retry_on_startup = True

celery_app.conf.task_routes = {
    "app.tasks.*": {"queue": "celery"}
}

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

# DNS convergence is polled; each run handles one batch of pending deployments
celery_app.conf.beat_schedule = {
    "verify-pending-deployments": {
        "task": "app.tasks.verification_tasks.verify_pending_deployments_task",
        "schedule": float(settings.VERIFICATION_POLL_INTERVAL_SECONDS),
    },
}

celery_app.autodiscover_tasks(['app.tasks'])

# Explicitly import tasks to ensure they are registered
import app.tasks.verification_tasks  # noqa: F401, E402
