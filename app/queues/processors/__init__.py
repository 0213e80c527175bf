"""
Queue processors - one module per queue.

Each module exposes a processor class (dependencies injectable for tests)
and a module-level handle_* function that RQ calls with the job payload.
"""

from rq import get_current_job


def report_progress(progress: int) -> None:
    """Store progress (0-100) on the running RQ job; no-op outside a worker."""
    job = get_current_job()
    if job is None:
        return
    job.meta["progress"] = progress
    job.save_meta()
