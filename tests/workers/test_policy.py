"""RetryPolicy и регистрация задач по очередям."""
from unittest.mock import MagicMock, patch

import pytest
from celery.exceptions import Retry
from kombu.exceptions import OperationalError

from lockpost.errors import TransientInfrastructureFailure
from lockpost.models.dead_letter import DeadLetterJob
from lockpost.services.social.errors import RateLimitedError
from lockpost.workers.policy import QUEUE_POLICIES, RetryPolicy, policy_task, submit
from lockpost.workers.tasks.ingestion import ingest_content
from lockpost.workers.tasks.mentions import poll_mentions
from lockpost.workers.tasks.replies import send_direct_message, send_reply
from lockpost.workers.tasks.verification import verify_mention

FLAKY_POLICY = RetryPolicy(queue="verification", max_attempts=3, backoff_seconds=2.0, concurrency=1)
attempts = []


@policy_task(FLAKY_POLICY, name="tests.workers.flaky")
def flaky(self, job: str) -> dict:
    attempts.append(self.request.retries)
    raise TransientInfrastructureFailure(f"{job}: db down")


class TestRetryPolicy:
    def test_exponential_backoff(self):
        policy = RetryPolicy(queue="q", max_attempts=3, backoff_seconds=2.0, concurrency=1)
        assert [policy.countdown(n) for n in range(3)] == [2.0, 4.0, 8.0]

    def test_backoff_is_capped(self):
        policy = RetryPolicy(queue="q", max_attempts=30, backoff_seconds=2.0, concurrency=1)
        assert policy.countdown(20) == 600.0

    def test_queue_table(self):
        assert QUEUE_POLICIES["ingestion"].concurrency == 5
        assert QUEUE_POLICIES["ingestion"].rate_limit == "10/s"
        assert QUEUE_POLICIES["verification"].concurrency == 3
        assert QUEUE_POLICIES["verification"].rate_limit == "5/s"
        assert QUEUE_POLICIES["replies"].concurrency == 1
        assert QUEUE_POLICIES["replies"].rate_limit == "10/m"


@pytest.mark.parametrize(
    "task,queue,max_retries",
    [
        (ingest_content, "ingestion", 2),
        (verify_mention, "verification", 2),
        (send_reply, "replies", 2),
        (send_direct_message, "replies", 4),
        (poll_mentions, "maintenance", 0),
    ],
)
def test_task_registration(task, queue, max_retries):
    assert task.queue == queue
    assert task.policy.queue == queue
    assert task.max_retries == max_retries


class TestSubmit:
    def test_submit_uses_task_queue(self):
        task = MagicMock()
        task.policy = QUEUE_POLICIES["verification"]
        task.apply_async.return_value.id = "job-1"
        assert submit(task, post_id="p1") == "job-1"
        task.apply_async.assert_called_once_with(kwargs={"post_id": "p1"}, queue="verification")

    def test_broker_outage_is_transient(self):
        task = MagicMock()
        task.policy = QUEUE_POLICIES["ingestion"]
        task.apply_async.side_effect = OperationalError("broker down")
        with pytest.raises(TransientInfrastructureFailure):
            submit(task, owner_id="o")


class TestDeadLetter:
    def test_final_failure_is_parked(self, db, session_factory):
        with patch("lockpost.workers.policy.SessionLocal", session_factory):
            ingest_content.on_failure(
                TransientInfrastructureFailure("db down"),
                "task-123",
                (),
                {"owner_id": "o1", "source_message_id": "m1"},
                None,
            )
        row = db.query(DeadLetterJob).one()
        assert row.task_name == "lockpost.workers.tasks.ingestion.ingest_content"
        assert row.queue == "ingestion"
        assert row.payload["kwargs"]["source_message_id"] == "m1"
        assert "db down" in row.error


class TestRetryWithPolicy:
    def _countdown(self, exc):
        task = flaky._get_current_object()
        with patch.object(task, "retry", return_value=Retry("scheduled")) as retry:
            with pytest.raises(Retry):
                task.retry_with_policy(exc)
        assert retry.call_args.kwargs["max_retries"] == 2
        return retry.call_args.kwargs["countdown"]

    def test_transient_error_uses_backoff(self):
        assert self._countdown(TransientInfrastructureFailure("down")) == 2.0

    def test_retry_after_raises_countdown(self):
        assert self._countdown(RateLimitedError("slow down", retry_after=120)) == 120

    def test_short_retry_after_keeps_backoff(self):
        assert self._countdown(RateLimitedError("slow down", retry_after=1)) == 2.0

    def test_exhausted_attempts_reach_dead_letter(self, db, session_factory):
        attempts.clear()
        with patch("lockpost.workers.policy.SessionLocal", session_factory):
            result = flaky.apply(kwargs={"job": "j1"})

        assert attempts == [0, 1, 2]
        assert result.failed()
        row = db.query(DeadLetterJob).one()
        assert row.task_name == "tests.workers.flaky"
        assert row.attempts == 3
        assert row.payload["kwargs"] == {"job": "j1"}
        assert "j1: db down" in row.error


def test_worker_argv_uses_queue_concurrency():
    from lockpost.workers.run import worker_argv

    argv = worker_argv("replies")
    assert argv[argv.index("-Q") + 1] == "replies"
    assert argv[argv.index("-c") + 1] == "1"
    assert worker_argv("ingestion")[worker_argv("ingestion").index("-c") + 1] == "5"
