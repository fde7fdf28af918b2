"""
Retry policies per queue and the Celery base task that applies them.

Handlers register with @policy_task(POLICY, name=...); the decorator retries any
unexpected exception with exponential backoff (base * 2**retries, capped) and,
after the last attempt, parks the job in dead_letter_jobs.
Jobs are enqueued with submit(task, **payload).
"""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable

from celery import Task
from celery.exceptions import Ignore, Reject, Retry
from kombu.exceptions import OperationalError

from lockpost.core.celery_app import celery_app
from lockpost.core.config import settings
from lockpost.db.session import SessionLocal
from lockpost.errors import TransientInfrastructureFailure
from lockpost.models.dead_letter import DeadLetterJob
from lockpost.services.social.errors import RateLimitedError
from lockpost.utils.metrics import dead_letter_jobs_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    queue: str
    max_attempts: int
    backoff_seconds: float
    concurrency: int
    rate_limit: str | None = None
    time_limit: int = 60

    def countdown(self, retries: int) -> float:
        """Delay before attempt retries+2 (retries = attempts already retried)."""
        return min(self.backoff_seconds * 2 ** retries, settings.retry_backoff_max_seconds)


INGESTION_POLICY = RetryPolicy(
    queue="ingestion",
    max_attempts=settings.ingestion_max_attempts,
    backoff_seconds=settings.ingestion_backoff_seconds,
    concurrency=settings.ingestion_concurrency,
    rate_limit=settings.ingestion_rate_limit,
)
VERIFICATION_POLICY = RetryPolicy(
    queue="verification",
    max_attempts=settings.verification_max_attempts,
    backoff_seconds=settings.verification_backoff_seconds,
    concurrency=settings.verification_concurrency,
    rate_limit=settings.verification_rate_limit,
)
REPLY_POLICY = RetryPolicy(
    queue="replies",
    max_attempts=settings.reply_max_attempts,
    backoff_seconds=settings.reply_backoff_seconds,
    concurrency=settings.reply_concurrency,
    rate_limit=settings.reply_rate_limit,
)
# DM идут через ту же очередь replies, но с бОльшим бюджетом попыток
DM_POLICY = RetryPolicy(
    queue="replies",
    max_attempts=settings.dm_max_attempts,
    backoff_seconds=settings.reply_backoff_seconds,
    concurrency=settings.reply_concurrency,
    rate_limit=settings.reply_rate_limit,
)
MAINTENANCE_POLICY = RetryPolicy(
    queue="maintenance",
    max_attempts=1,
    backoff_seconds=0,
    concurrency=1,
)

QUEUE_POLICIES: dict[str, RetryPolicy] = {
    "ingestion": INGESTION_POLICY,
    "verification": VERIFICATION_POLICY,
    "replies": REPLY_POLICY,
    "maintenance": MAINTENANCE_POLICY,
}

# Control-flow exceptions of Celery itself, never retried by us
_PASSTHROUGH = (Retry, Ignore, Reject)


class PolicyTask(Task):
    policy: RetryPolicy = MAINTENANCE_POLICY

    def retry_with_policy(self, exc: Exception) -> None:
        retries = self.request.retries or 0
        countdown = self.policy.countdown(retries)
        if isinstance(exc, RateLimitedError) and exc.retry_after:
            countdown = max(countdown, exc.retry_after)
        logger.warning(
            "job_retry_scheduled",
            extra={
                "task_id": self.request.id,
                "task_name": self.name,
                "queue": self.policy.queue,
                "attempt": retries + 1,
                "countdown": countdown,
                "error": str(exc),
            },
        )
        # После max_retries Celery пробрасывает exc -> on_failure
        raise self.retry(exc=exc, countdown=countdown, max_retries=self.policy.max_attempts - 1)

    def on_failure(self, exc, task_id, args, kwargs, einfo) -> None:
        attempts = (self.request.retries or 0) + 1
        logger.error(
            "job_dead_lettered",
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "queue": self.policy.queue,
                "attempt": attempts,
                "error": str(exc),
            },
        )
        dead_letter_jobs_total.labels(task=self.name).inc()
        db = SessionLocal()
        try:
            db.add(
                DeadLetterJob(
                    task_name=self.name,
                    task_id=task_id,
                    queue=self.policy.queue,
                    payload={"args": list(args or []), "kwargs": dict(kwargs or {})},
                    error=f"{type(exc).__name__}: {exc}",
                    attempts=attempts,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("dead_letter_write_failed", extra={"task_id": task_id})
        finally:
            db.close()


def policy_task(policy: RetryPolicy, name: str, **options: Any) -> Callable:
    """Register a bound Celery task on policy.queue with the policy's retry/rate semantics."""

    def decorator(fn: Callable) -> Task:
        @functools.wraps(fn)
        def run(self: PolicyTask, *args: Any, **kwargs: Any) -> Any:
            try:
                return fn(self, *args, **kwargs)
            except _PASSTHROUGH:
                raise
            except Exception as exc:
                self.retry_with_policy(exc)

        return celery_app.task(
            bind=True,
            base=PolicyTask,
            name=name,
            policy=policy,
            queue=policy.queue,
            rate_limit=policy.rate_limit,
            time_limit=policy.time_limit,
            soft_time_limit=max(policy.time_limit - 5, 1),
            max_retries=policy.max_attempts - 1,
            **options,
        )(run)

    return decorator


def submit(task: Task, **payload: Any) -> str:
    """Enqueue a job on the task's queue. Broker outage -> TransientInfrastructureFailure."""
    queue = getattr(getattr(task, "policy", None), "queue", None)
    try:
        result = task.apply_async(kwargs=payload, queue=queue)
    except OperationalError as e:
        logger.error("job_enqueue_failed", extra={"task_name": task.name, "queue": queue, "error": str(e)})
        raise TransientInfrastructureFailure(f"enqueue {task.name} failed: {e}") from e
    logger.info("job_enqueued", extra={"task_id": result.id, "task_name": task.name, "queue": queue})
    return result.id
