"""
Start a worker for one queue with its configured concurrency:

    python -m lockpost.workers.run ingestion
    python -m lockpost.workers.run beat
"""
import sys

from lockpost.core.celery_app import celery_app
from lockpost.core.logging import configure_logging
from lockpost.workers.policy import QUEUE_POLICIES


def worker_argv(queue: str) -> list[str]:
    policy = QUEUE_POLICIES[queue]
    return [
        "worker",
        "-Q",
        queue,
        "-c",
        str(policy.concurrency),
        "-n",
        f"{queue}@%h",
        "--loglevel=INFO",
    ]


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1 or (args[0] not in QUEUE_POLICIES and args[0] != "beat"):
        choices = ", ".join([*QUEUE_POLICIES, "beat"])
        raise SystemExit(f"usage: python -m lockpost.workers.run <{choices}>")
    configure_logging()
    if args[0] == "beat":
        celery_app.start(["beat", "--loglevel=INFO"])
    else:
        celery_app.worker_main(worker_argv(args[0]))


if __name__ == "__main__":
    main()
