"""
Data retention worker (queue: data-retention, job: cleanup-data).

Policies:
- resume_versions: keep the 10 newest versions of every resume
- temporary_files: remove files under uploads/temp older than retention_days

dry_run only counts what would be removed.
"""

import logging
import os
import time

from app.queues.processors import report_progress
from app.services.resume_versions_service import get_resume_versions_service
from app.utils.file_upload import ensure_upload_directory

logger = logging.getLogger(__name__)

POLICIES = ("resume_versions", "temporary_files")


class DataRetentionProcessor:

    def __init__(self, versions_service=None, upload_directory=None):
        self._versions_service = versions_service
        self.upload_directory = upload_directory

    @property
    def versions_service(self):
        if self._versions_service is None:
            self._versions_service = get_resume_versions_service()
        return self._versions_service

    def _cleanup_temporary_files(self, retention_days: int, dry_run: bool) -> int:
        temp_dir = os.path.join(self.upload_directory or ensure_upload_directory(), "temp")
        if not os.path.isdir(temp_dir):
            return 0

        cutoff = time.time() - retention_days * 86400
        removed = 0
        for name in os.listdir(temp_dir):
            path = os.path.join(temp_dir, name)
            if os.path.isfile(path) and os.path.getmtime(path) <= cutoff:
                if not dry_run:
                    os.remove(path)
                removed += 1
        return removed

    def process(self, data: dict) -> dict:
        policy = data.get("policy", "resume_versions")
        retention_days = data.get("retention_days", 0)
        dry_run = data.get("dry_run", False)

        if policy not in POLICIES:
            raise ValueError(f"Unknown retention policy: {policy}")

        logger.info("Running %s retention (days=%d, dry_run=%s)", policy, retention_days, dry_run)
        report_progress(10)

        if policy == "resume_versions":
            outcome = self.versions_service.enforce_retention_policy(
                retention_days=retention_days, dry_run=dry_run
            )
            affected = outcome["eligible_versions"]
        else:
            affected = self._cleanup_temporary_files(retention_days, dry_run)

        report_progress(100)
        logger.info("%s retention %s %d items", policy, "would remove" if dry_run else "removed", affected)

        return {
            "policy": policy,
            "dry_run": dry_run,
            "affected": affected,
            "deleted": 0 if dry_run else affected,
            "status": "completed",
        }


def handle_data_retention(payload: dict) -> dict:
    """RQ entry point."""
    return DataRetentionProcessor().process(payload)
