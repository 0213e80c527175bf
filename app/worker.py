"""
Queue worker entry point.

Run:
    python -m app.worker                      # all queues
    python -m app.worker jd-matching          # selected queues

Queues are listened to in the order given (default order = ALL_QUEUES).
The scheduler is enabled so delayed retries (exponential backoff) fire.
"""

import logging
import sys

from rq import Worker

from app.core.config import get_settings
from app.core.logging_config import setup_logging
from app.db.redis_client import get_redis
from app.queues.queue_types import ALL_QUEUES

logger = logging.getLogger(__name__)


def run_worker(queue_names=None) -> None:
    settings = get_settings()
    setup_logging(settings.log_level)

    queue_names = list(queue_names or ALL_QUEUES)
    unknown = [name for name in queue_names if name not in ALL_QUEUES]
    if unknown:
        raise SystemExit(f"Unknown queue(s): {', '.join(unknown)}")

    logger.info("Starting worker for queues: %s", ", ".join(queue_names))
    worker = Worker(queue_names, connection=get_redis())
    worker.work(with_scheduler=True)


if __name__ == "__main__":
    run_worker(sys.argv[1:])
