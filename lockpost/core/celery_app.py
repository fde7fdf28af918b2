"""
Celery application: broker and result backend from settings.
Tasks are in lockpost.workers.tasks (ingestion, verification, replies, mentions).
Каждая очередь обслуживается отдельным воркером со своим concurrency (lockpost.workers.run).
"""
from celery import Celery
from kombu import Queue

from lockpost.core.config import settings

celery_app = Celery(
    "lockpost",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "lockpost.workers.tasks.ingestion",
        "lockpost.workers.tasks.verification",
        "lockpost.workers.tasks.replies",
        "lockpost.workers.tasks.mentions",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    # Воркер упал посреди задачи -> сообщение возвращается в очередь
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    # JSON-логи настраивает lockpost.workers.run
    worker_hijack_root_logger=False,
    task_track_started=True,
    task_time_limit=120,
    result_expires=86400,
    broker_transport_options={"visibility_timeout": settings.job_stall_seconds},
    task_queues=(
        Queue("ingestion"),
        Queue("verification"),
        Queue("replies"),
        Queue("maintenance"),
    ),
    task_default_queue="maintenance",
    beat_schedule={
        "poll-mentions": {
            "task": "lockpost.workers.tasks.mentions.poll_mentions",
            "schedule": float(settings.mention_poll_interval_seconds),
        },
    },
)

celery_app.conf.task_routes = {
    "lockpost.workers.tasks.ingestion.*": {"queue": "ingestion"},
    "lockpost.workers.tasks.verification.*": {"queue": "verification"},
    "lockpost.workers.tasks.replies.*": {"queue": "replies"},
    "lockpost.workers.tasks.mentions.*": {"queue": "maintenance"},
}
