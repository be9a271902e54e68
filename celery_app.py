from celery import Celery
from core.config import settings

# Producer side only. Push delivery runs in the notifications worker and is
# addressed by task name.
celery_app = Celery(
    settings.APP_NAME,
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    task_routes={
        settings.PUSH_NOTIFICATION_TASK: {"queue": settings.CELERY_NOTIFICATION_QUEUE},
    },
)

celery_app.conf.task_annotations = {
    settings.PUSH_NOTIFICATION_TASK: {"max_retries": 3, "default_retry_delay": 5}
}
