"""
Background job pipeline - RQ queues on Redis.

Producers (API services) enqueue through QueueService; workers started
with `python -m app.worker` run the handlers in app.queues.processors.
"""
from app.queues.queue_types import QueueNames, ALL_QUEUES
from app.queues.queue_service import QueueService, get_queue_service

__all__ = ["QueueNames", "ALL_QUEUES", "QueueService", "get_queue_service"]
