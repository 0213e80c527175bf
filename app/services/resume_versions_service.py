"""
Resume Versions Service - version history per resume.

RULES:
- At most MAX_VERSIONS (10) per resume; creating one more drops the oldest
- version_number increases monotonically per resume (never reused)
- The last remaining version cannot be deleted
- Restoring a version creates a NEW version tagged "Restored from vN"
  and copies its content/score back onto the resume
"""

import logging
import math
import uuid
from datetime import datetime
from typing import Optional, List

from sqlalchemy import text

from app.core.exceptions import NotFoundError, InvalidRequestError
from app.db.postgres import get_db_session, execute_raw_sql
from app.services.file_parser import get_file_type
from app.services.mongo_service import VersionDocumentService
from app.services.resume_service import ResumeService, get_resume_service

logger = logging.getLogger(__name__)

MAX_VERSIONS = 10
SORT_FIELDS = {"created_at", "version_number", "file_name", "ats_score"}

VERSION_COLUMNS = """
    version_id, resume_id, file_name, file_size, file_type, content,
    ats_score, tag, notes, version_number, created_at
"""


def _row_to_version(row: dict) -> dict:
    version = dict(row)
    if version.get("ats_score") is not None:
        version["ats_score"] = float(version["ats_score"])
    return version


class ResumeVersionsService:

    def __init__(self, resume_service: ResumeService = None, documents: VersionDocumentService = None):
        self.resume_service = resume_service or get_resume_service()
        self.documents = documents or VersionDocumentService()

    def _verify_resume_access(self, user_id: str, resume_id: str) -> dict:
        resume = self.resume_service.get_resume(resume_id, user_id)
        if not resume:
            raise NotFoundError("Resume not found")
        return resume

    def _fetch_version(self, resume_id: str, version_id: str) -> dict:
        rows = execute_raw_sql(
            f"SELECT {VERSION_COLUMNS} FROM resume_versions "
            "WHERE version_id = :version_id AND resume_id = :resume_id",
            {"version_id": version_id, "resume_id": resume_id}
        )
        if not rows:
            raise NotFoundError("Resume version not found")
        return _row_to_version(rows[0])

    def _list_all(self, resume_id: str) -> List[dict]:
        rows = execute_raw_sql(
            f"SELECT {VERSION_COLUMNS} FROM resume_versions "
            "WHERE resume_id = :resume_id ORDER BY version_number ASC",
            {"resume_id": resume_id}
        )
        return [_row_to_version(r) for r in rows]

    def _delete_versions(self, version_ids: List[str]) -> int:
        if not version_ids:
            return 0
        with get_db_session() as db:
            for version_id in version_ids:
                db.execute(
                    text("DELETE FROM resume_versions WHERE version_id = :version_id"),
                    {"version_id": version_id}
                )
        self.documents.delete_many(version_ids)
        return len(version_ids)

    # ============================================================
    # CRUD
    # ============================================================

    def create_version(
        self,
        user_id: str,
        resume_id: str,
        file_name: str,
        content: str,
        tag: Optional[str] = None,
        notes: Optional[str] = None,
        ats_score: Optional[float] = None,
        parsed_content: Optional[dict] = None,
        file_size: Optional[int] = None,
    ) -> dict:
        self._verify_resume_access(user_id, resume_id)

        existing = self._list_all(resume_id)
        if len(existing) >= MAX_VERSIONS:
            oldest = existing[0]
            logger.info("Resume %s at %d versions, removing v%d", resume_id, MAX_VERSIONS, oldest["version_number"])
            self._delete_versions([oldest["version_id"]])

        next_number = (existing[-1]["version_number"] if existing else 0) + 1
        version_id = str(uuid.uuid4())
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO resume_versions (version_id, resume_id, file_name, file_size, file_type,
                                                 content, ats_score, tag, notes, version_number)
                    VALUES (:version_id, :resume_id, :file_name, :file_size, :file_type,
                            :content, :ats_score, :tag, :notes, :version_number)
                """),
                {
                    "version_id": version_id,
                    "resume_id": resume_id,
                    "file_name": file_name,
                    "file_size": file_size if file_size is not None else len(content.encode("utf-8")),
                    "file_type": get_file_type(file_name),
                    "content": content,
                    "ats_score": ats_score,
                    "tag": tag,
                    "notes": notes,
                    "version_number": next_number,
                }
            )
        self.documents.insert(version_id, resume_id, parsed_content or {})
        return self._fetch_version(resume_id, version_id)

    def get_versions(
        self,
        user_id: str,
        resume_id: str,
        page: int = 1,
        limit: int = 10,
        tag: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "DESC",
    ) -> dict:
        self._verify_resume_access(user_id, resume_id)

        where = "WHERE resume_id = :resume_id"
        params = {"resume_id": resume_id}
        if tag:
            where += " AND tag ILIKE :tag"
            params["tag"] = f"%{tag}%"

        # sort column/direction are whitelisted, never taken from input verbatim
        if sort_by not in SORT_FIELDS:
            sort_by, sort_order = "created_at", "DESC"
        direction = "ASC" if str(sort_order).upper() == "ASC" else "DESC"

        rows = execute_raw_sql(
            f"SELECT {VERSION_COLUMNS} FROM resume_versions {where} "
            f"ORDER BY {sort_by} {direction} LIMIT :limit OFFSET :offset",
            {**params, "limit": limit, "offset": (page - 1) * limit}
        )
        total = execute_raw_sql(f"SELECT COUNT(*) AS total FROM resume_versions {where}", params)[0]["total"]

        return {
            "data": [_row_to_version(r) for r in rows],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    def get_version(self, user_id: str, resume_id: str, version_id: str) -> dict:
        self._verify_resume_access(user_id, resume_id)
        version = self._fetch_version(resume_id, version_id)
        document = self.documents.get(version_id)
        version["parsed_content"] = document.get("parsed_content") if document else None
        return version

    def update_version(
        self,
        user_id: str,
        resume_id: str,
        version_id: str,
        tag: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        """Only tag and notes are editable."""
        self._verify_resume_access(user_id, resume_id)
        self._fetch_version(resume_id, version_id)

        updates = []
        params = {"version_id": version_id}
        for field, value in (("tag", tag), ("notes", notes)):
            if value is not None:
                updates.append(f"{field} = :{field}")
                params[field] = value

        if updates:
            with get_db_session() as db:
                db.execute(
                    text(f"UPDATE resume_versions SET {', '.join(updates)} WHERE version_id = :version_id"),
                    params
                )
        return self._fetch_version(resume_id, version_id)

    def delete_version(self, user_id: str, resume_id: str, version_id: str) -> None:
        self._verify_resume_access(user_id, resume_id)

        count = execute_raw_sql(
            "SELECT COUNT(*) AS total FROM resume_versions WHERE resume_id = :resume_id",
            {"resume_id": resume_id}
        )[0]["total"]
        if count <= 1:
            raise InvalidRequestError("Cannot delete the last remaining version")

        self._fetch_version(resume_id, version_id)
        self._delete_versions([version_id])

    # ============================================================
    # COMPARE / RESTORE / STATS
    # ============================================================

    def compare_versions(self, user_id: str, resume_id: str, version1_id: str, version2_id: str) -> dict:
        self._verify_resume_access(user_id, resume_id)
        try:
            version1 = self._fetch_version(resume_id, version1_id)
            version2 = self._fetch_version(resume_id, version2_id)
        except NotFoundError:
            raise NotFoundError("One or both versions not found") from None

        score1 = version1["ats_score"] or 0
        score2 = version2["ats_score"] or 0
        return {
            "version1": version1,
            "version2": version2,
            "differences": {
                "ats_score_diff": score2 - score1,
                "file_size_diff": version2["file_size"] - version1["file_size"],
                "content_length_diff": len(version2["content"]) - len(version1["content"]),
                "version_number_diff": version2["version_number"] - version1["version_number"],
            },
            "summary": {
                "improved": score2 > score1,
                "score_change": abs(score2 - score1),
                "newer_version": "version2" if version2["version_number"] > version1["version_number"] else "version1",
            },
        }

    def restore_version(self, user_id: str, resume_id: str, version_id: str) -> dict:
        self._verify_resume_access(user_id, resume_id)
        version = self._fetch_version(resume_id, version_id)
        document = self.documents.get(version_id)

        restored = self.create_version(
            user_id,
            resume_id,
            file_name=version["file_name"],
            content=version["content"],
            tag=f"Restored from v{version['version_number']}",
            notes=f"Restored from version {version['version_number']} on {datetime.utcnow().isoformat()}",
            ats_score=version["ats_score"],
            parsed_content=document.get("parsed_content") if document else None,
            file_size=version["file_size"],
        )
        self.resume_service.update_content(resume_id, version["content"], version["ats_score"])
        logger.info("Restored resume %s to v%d", resume_id, version["version_number"])
        return restored

    def get_version_stats(self, user_id: str, resume_id: str) -> dict:
        self._verify_resume_access(user_id, resume_id)
        versions = self._list_all(resume_id)

        if not versions:
            return {
                "total_versions": 0,
                "average_score": 0,
                "score_improvement": 0,
                "best_version": None,
                "recent_versions": [],
            }

        scores = [v["ats_score"] for v in versions if v["ats_score"] is not None]
        average = sum(scores) / len(scores) if scores else 0
        improvement = (versions[-1]["ats_score"] or 0) - (versions[0]["ats_score"] or 0)
        best = max(
            (v for v in versions if v["ats_score"] is not None),
            key=lambda v: v["ats_score"],
            default=None,
        )

        return {
            "total_versions": len(versions),
            "average_score": round(average, 2),
            "score_improvement": round(improvement, 2),
            "best_version": best,
            "recent_versions": versions[-5:],
        }

    # ============================================================
    # RETENTION
    # ============================================================

    def find_excess_versions(self, resume_id: str, retention_days: int = 0) -> List[str]:
        """
        Versions beyond the newest MAX_VERSIONS. With retention_days > 0
        only those older than that many days are returned.
        """
        versions = self._list_all(resume_id)
        excess = versions[:-MAX_VERSIONS] if len(versions) > MAX_VERSIONS else []
        if retention_days > 0:
            now = datetime.utcnow()
            excess = [v for v in excess if (now - v["created_at"]).days >= retention_days]
        return [v["version_id"] for v in excess]

    def enforce_retention_policy(
        self,
        user_id: Optional[str] = None,
        retention_days: int = 0,
        dry_run: bool = False,
    ) -> dict:
        """Keep the newest MAX_VERSIONS per resume (one user, or everyone)."""
        total = 0
        for resume_id in self.resume_service.list_resume_ids(user_id):
            excess = self.find_excess_versions(resume_id, retention_days)
            if not dry_run:
                self._delete_versions(excess)
            total += len(excess)
        return {"deleted_versions": 0 if dry_run else total, "eligible_versions": total, "dry_run": dry_run}


# Singleton instance
_versions_service: Optional[ResumeVersionsService] = None


def get_resume_versions_service() -> ResumeVersionsService:
    global _versions_service
    if _versions_service is None:
        _versions_service = ResumeVersionsService()
    return _versions_service
