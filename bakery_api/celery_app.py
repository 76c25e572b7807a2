from celery import Celery

from .config import load_config

# the worker runs in its own process and builds its own Config there;
# the API process keeps the one on app.state
cfg = load_config()

celery_app = Celery(
    "tasks",
    broker=cfg.CELERY_BROKER_URL,
    backend=cfg.CELERY_RESULT_BACKEND or cfg.CELERY_BROKER_URL,
    include=["bakery_api.tasks"],
)


celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    task_always_eager=cfg.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    beat_schedule={
        "purge-expired-sessions": {
            "task": "tasks.purge_expired_sessions",
            "schedule": cfg.SESSION_PURGE_INTERVAL_SECONDS,
        },
    },
)
