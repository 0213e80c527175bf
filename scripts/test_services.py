#!/usr/bin/env python3
"""
Service Layer Test Script

Tests the API-side services with fakes for storage and fakeredis for RQ:
1. Upload pipeline (single + bulk)
2. JD matching requests, suggestion limits, comparisons
3. Resume version rules (cap, numbering, restore, sorting whitelist,
   last-version guard, retention)

SQL helpers are patched, so no PostgreSQL/MongoDB is needed.

Run: python scripts/test_services.py
"""
import sys
sys.path.insert(0, '.')

from contextlib import contextmanager
from datetime import datetime, timedelta
from unittest.mock import patch

import fakeredis

from app.core.exceptions import FileParseError, InvalidRequestError, NotFoundError
from app.queues import QueueNames, QueueService
from app.queues.processors.suggestion_generation import SuggestionGenerationProcessor
from app.services.file_parser import MIME_DOC, MIME_TXT
from app.services.jd_matching_service import (
    ERROR_TEXT_LIMIT, MAX_SUGGESTION_GENERATIONS, STORED_TEXT_LIMIT, JDMatchingService
)
from app.services.resume_analysis_service import ResumeAnalysisService
from app.services.resume_versions_service import MAX_VERSIONS, ResumeVersionsService


NOW = datetime.utcnow()


# ============================================================
# FAKES
# ============================================================

class FakeResumeService:

    def __init__(self, resumes=None):
        self.resumes = resumes or {}
        self.created = []

    def get_resume(self, resume_id, user_id):
        resume = self.resumes.get(resume_id)
        return resume if resume and resume["user_id"] == user_id else None

    def create_resume(self, user_id, file_name, file_size, file_type, content, parsed_content=None, batch_id=None):
        resume_id = f"resume-{len(self.created) + 1}"
        self.created.append({"resume_id": resume_id, "content": content, "parsed_content": parsed_content})
        return resume_id

    def list_resume_ids(self, user_id=None):
        return list(self.resumes)

    def update_content(self, resume_id, content, ats_score=None):
        self.updated = (resume_id, content, ats_score)


class FakeVersionsService:

    def __init__(self):
        self.versions = []

    def create_version(self, user_id, resume_id, file_name, content, **kwargs):
        self.versions.append({"resume_id": resume_id, "file_name": file_name, **kwargs})


class FakeDetails:
    """In-memory jd_match_details; reserve_generation mirrors the conditional $inc."""

    def __init__(self, docs=None, appended=True):
        self.docs = docs or {}
        self.appended = appended
        self.upserts = []

    def get(self, analysis_id):
        return self.docs.get(analysis_id)

    def list_for_user(self, user_id):
        return list(self.docs.values())

    def upsert(self, analysis_id, user_id, details):
        self.upserts.append((analysis_id, details))
        return True

    def reserve_generation(self, analysis_id, limit):
        doc = self.docs.get(analysis_id)
        if doc is None or doc.get("generations_used", 0) >= limit:
            return None
        doc["generations_used"] = doc.get("generations_used", 0) + 1
        return doc["generations_used"]

    def release_generation(self, analysis_id):
        self.docs[analysis_id]["generations_used"] -= 1

    def append_suggestions(self, analysis_id, suggestions):
        if self.appended and analysis_id in self.docs:
            self.docs[analysis_id].setdefault("suggestions", []).extend(suggestions)
        return self.appended


class FakeSuggestionAI:

    def generate_suggestions(self, resume_text, job_description=None, options=None):
        return ["Add a Kubernetes deployment to the projects section"]


class FakeVersionDocuments:

    def __init__(self):
        self.deleted = []
        self.docs = {}

    def insert(self, version_id, resume_id, parsed_content):
        self.docs[version_id] = {"version_id": version_id, "parsed_content": parsed_content}
        return version_id

    def get(self, version_id):
        return self.docs.get(version_id)

    def delete_many(self, version_ids):
        self.deleted.extend(version_ids)


class FakeSession:
    """Records statements executed inside get_db_session()."""

    def __init__(self):
        self.statements = []

    def execute(self, statement, params=None):
        self.statements.append((str(statement), params))

    def factory(self):
        @contextmanager
        def session():
            yield self
        return session


def _resumes(is_processed=True):
    return FakeResumeService({
        "r1": {"resume_id": "r1", "user_id": "u1", "file_name": "cv.txt",
               "content": "Python developer", "is_processed": is_processed}
    })


def _queue_service():
    return QueueService(connection=fakeredis.FakeRedis())


# ============================================================
# UPLOAD PIPELINE
# ============================================================

def _analysis_service(queue_service):
    return ResumeAnalysisService(
        resume_service=FakeResumeService(),
        versions_service=FakeVersionsService(),
        queue_service=queue_service,
        default_provider="gemini",
    )


def test_process_upload():
    print("\n[1] Upload pipeline")
    queues = _queue_service()
    service = _analysis_service(queues)
    content = b"Priya Sharma\npriya@acme.io\n\n\n\nPython   developer"

    with patch("app.services.resume_analysis_service.store_original_file") as store:
        result = service.process_upload("u1", "cv.txt", content, MIME_TXT)
    print(f"    {result}")

    assert result["resume_id"] == "resume-1"
    assert result["status"] == "processing"
    store.assert_called_once_with(content, "cv.txt", "u1")

    created = service.resume_service.created[0]
    assert created["content"] == "Priya Sharma\npriya@acme.io Python developer"
    assert created["parsed_content"]["extracted_info"]["email"] == "priya@acme.io"
    assert service.versions_service.versions[0]["resume_id"] == "resume-1"

    status = queues.get_job_status(QueueNames.RESUME_ANALYSIS, result["job_id"])
    assert status["status"] == "queued"
    job = queues.get_queue(QueueNames.RESUME_ANALYSIS).jobs[0]
    assert job.args[0] == {"resume_id": "resume-1", "user_id": "u1", "provider": "gemini"}


def test_process_upload_unparseable():
    service = _analysis_service(_queue_service())
    try:
        service.process_upload("u1", "cv.doc", b"\xd0\xcf\x11\xe0", MIME_DOC)
    except FileParseError:
        pass
    else:
        raise AssertionError("expected FileParseError")
    assert service.resume_service.created == []


def test_process_bulk_upload():
    queues = _queue_service()
    service = _analysis_service(queues)
    result = service.process_bulk_upload("u1", [
        ("a.txt", b"first resume text", MIME_TXT),
        ("b.exe", b"MZ\x90\x00", None),
    ])
    print(f"    {result}")
    assert result["batch_id"].startswith("bulk_")
    assert result["batch_id"].endswith("_u1")
    assert result["total_files"] == 1
    assert result["skipped_files"][0]["file_name"] == "b.exe"
    assert result["status"] == "queued"

    job = queues.get_queue(QueueNames.BULK_ANALYSIS).jobs[0]
    assert job.id == result["batch_id"]
    assert [f["file_name"] for f in job.args[0]["resume_files"]] == ["a.txt"]


def test_process_bulk_upload_rejects_empty_batches():
    service = _analysis_service(_queue_service())
    for files in ([], [("b.exe", b"MZ\x90\x00", None)]):
        try:
            service.process_bulk_upload("u1", files)
        except InvalidRequestError:
            pass
        else:
            raise AssertionError("expected InvalidRequestError")


def test_get_analysis_not_found():
    service = ResumeAnalysisService(
        resume_service=_resumes(), versions_service=FakeVersionsService(),
        queue_service=_queue_service(), default_provider="gemini",
    )
    try:
        service.get_analysis("r1", "someone-else")
    except NotFoundError as e:
        assert str(e) == "Resume analysis not found"
    else:
        raise AssertionError("expected NotFoundError")


# ============================================================
# JD MATCHING
# ============================================================

def _matching_row(analysis_id="a-1"):
    return {"analysis_id": analysis_id, "user_id": "u1", "resume_id": "r1", "resume_content": "Python developer",
            "job_description": "Python and Kubernetes required", "overall_score": 60, "keyword_score": 50,
            "semantic_score": 70, "error": None, "created_at": NOW}


def test_create_matching():
    print("\n[2] JD matching")
    queues = _queue_service()
    service = JDMatchingService(resume_service=_resumes(), queue_service=queues, details=FakeDetails())
    queued = service.create_matching("u1", "r1", "Python and Kubernetes required", use_semantic_matching=False)

    job = queues.get_queue(QueueNames.JD_MATCHING).jobs[0]
    assert job.id == queued["analysis_id"]
    assert job.args[0]["resume_content"] == "Python developer"
    assert job.args[0]["use_semantic_matching"] is False


def test_create_matching_checks_resume():
    missing = JDMatchingService(resume_service=_resumes(), queue_service=_queue_service(), details=FakeDetails())
    try:
        missing.create_matching("u2", "r1", "jd")
    except NotFoundError:
        pass
    else:
        raise AssertionError("expected NotFoundError")

    pending = JDMatchingService(
        resume_service=_resumes(is_processed=False), queue_service=_queue_service(), details=FakeDetails()
    )
    try:
        pending.create_matching("u1", "r1", "jd")
    except InvalidRequestError as e:
        assert "must be processed" in str(e)
    else:
        raise AssertionError("expected InvalidRequestError")


def test_matching_result_status():
    details = FakeDetails({"a-1": {"missing_keywords": ["kubernetes"], "suggestions": [{"title": "x"}]}})
    service = JDMatchingService(resume_service=_resumes(), queue_service=_queue_service(), details=details)
    errored = dict(_matching_row(), error="boom")
    with patch("app.services.jd_matching_service.execute_raw_sql", return_value=[errored]):
        result = service.get_matching_result("u1", "a-1")
    assert result["status"] == "error"
    assert result["overall_score"] == 60.0
    assert result["missing_keywords"] == ["kubernetes"]
    assert result["matched_keywords"] == []

    with patch("app.services.jd_matching_service.execute_raw_sql", return_value=[]):
        try:
            service.get_matching_result("u1", "a-404")
        except NotFoundError:
            pass
        else:
            raise AssertionError("expected NotFoundError")


def test_request_suggestions():
    queues = _queue_service()
    details = FakeDetails({"a-1": {"missing_keywords": ["kubernetes"], "generations_used": 1}})
    service = JDMatchingService(resume_service=_resumes(), queue_service=queues, details=details)

    with patch("app.services.jd_matching_service.execute_raw_sql", return_value=[_matching_row()]):
        queued = service.request_suggestions("u1", "a-1")
    assert queued["remaining_generations"] == 1

    job = queues.get_queue(QueueNames.SUGGESTION_GENERATION).jobs[0]
    assert job.args[0]["missed_skills"] == ["kubernetes"]
    assert job.args[0]["remaining_generations"] == 2
    assert job.args[0]["context"] == "Python and Kubernetes required"


def test_request_suggestions_limit():
    details = FakeDetails({"a-1": {"generations_used": 3}})
    service = JDMatchingService(resume_service=_resumes(), queue_service=_queue_service(), details=details)
    with patch("app.services.jd_matching_service.execute_raw_sql", return_value=[_matching_row()]):
        try:
            service.request_suggestions("u1", "a-1")
        except InvalidRequestError:
            pass
        else:
            raise AssertionError("expected InvalidRequestError")


def test_repeated_requests_respect_generation_limit():
    queues = _queue_service()
    details = FakeDetails({"a-1": {"missing_keywords": ["kubernetes"], "generations_used": 0}})
    service = JDMatchingService(resume_service=_resumes(), queue_service=queues, details=details)

    accepted, rejected = 0, 0
    with patch("app.services.jd_matching_service.execute_raw_sql", return_value=[_matching_row()]):
        # every request lands before any worker runs
        for _ in range(5):
            try:
                service.request_suggestions("u1", "a-1")
                accepted += 1
            except InvalidRequestError:
                rejected += 1

        processor = SuggestionGenerationProcessor(ai_service=FakeSuggestionAI(), matching_service=service)
        results = [processor.process(job.args[0]) for job in queues.get_queue(QueueNames.SUGGESTION_GENERATION).jobs]

    print(f"    accepted={accepted} rejected={rejected}")
    assert accepted == MAX_SUGGESTION_GENERATIONS
    assert rejected == 5 - MAX_SUGGESTION_GENERATIONS
    assert [r["status"] for r in results] == ["completed"] * MAX_SUGGESTION_GENERATIONS
    assert [r["remaining_generations"] for r in results] == [2, 1, 0]
    assert details.docs["a-1"]["generations_used"] == MAX_SUGGESTION_GENERATIONS
    assert len(details.docs["a-1"]["suggestions"]) == MAX_SUGGESTION_GENERATIONS


def test_suggestions_refused_for_failed_matching():
    details = FakeDetails({"a-1": {"generations_used": 0}})
    service = JDMatchingService(resume_service=_resumes(), queue_service=_queue_service(), details=details)
    with patch("app.services.jd_matching_service.execute_raw_sql", return_value=[dict(_matching_row(), error="boom")]):
        try:
            service.request_suggestions("u1", "a-1")
        except InvalidRequestError:
            pass
        else:
            raise AssertionError("expected InvalidRequestError")
    assert details.docs["a-1"]["generations_used"] == 0


def test_enqueue_failure_releases_generation():
    queues = _queue_service()
    details = FakeDetails({"a-1": {"generations_used": 1}})
    service = JDMatchingService(resume_service=_resumes(), queue_service=queues, details=details)
    with patch("app.services.jd_matching_service.execute_raw_sql", return_value=[_matching_row()]), \
            patch.object(queues, "add_suggestion_job", side_effect=ConnectionError("redis unavailable")):
        try:
            service.request_suggestions("u1", "a-1")
        except ConnectionError:
            pass
        else:
            raise AssertionError("expected ConnectionError")
    assert details.docs["a-1"]["generations_used"] == 1


def test_compare_and_keywords():
    details = FakeDetails({
        "a-1": {"matched_keywords": ["python", "docker"], "missing_keywords": ["kubernetes"]},
        "a-2": {"matched_keywords": ["python"], "missing_keywords": ["kubernetes", "redis"]},
    })
    service = JDMatchingService(resume_service=_resumes(), queue_service=_queue_service(), details=details)

    try:
        service.compare_matchings("u1", [f"a-{i}" for i in range(6)])
    except InvalidRequestError:
        pass
    else:
        raise AssertionError("expected InvalidRequestError")

    rows = {"a-1": [_matching_row("a-1")], "a-2": [_matching_row("a-2")]}
    with patch(
        "app.services.jd_matching_service.execute_raw_sql",
        side_effect=lambda sql, params: rows.get(params["analysis_id"], []),
    ):
        compared = service.compare_matchings("u1", ["a-2", "a-404"])
    assert [c["analysis_id"] for c in compared["comparisons"]] == ["a-2"]

    keywords = service.get_top_keywords("u1", limit=1)
    assert keywords["most_matched"] == [{"keyword": "python", "frequency": 2}]
    assert keywords["most_missing"] == [{"keyword": "kubernetes", "frequency": 2}]


def test_append_suggestions_missing_details():
    service = JDMatchingService(
        resume_service=_resumes(), queue_service=_queue_service(), details=FakeDetails(appended=False)
    )
    try:
        service.append_suggestions("a-1", [{"title": "x"}])
    except NotFoundError:
        pass
    else:
        raise AssertionError("expected NotFoundError")


def test_matching_stats_empty():
    service = JDMatchingService(resume_service=_resumes(), queue_service=_queue_service(), details=FakeDetails())
    with patch("app.services.jd_matching_service.execute_raw_sql",
               return_value=[{"total": 0, "average": 0, "high_score": 0}]):
        stats = service.get_matching_stats("u1")
    assert stats == {"total_matchings": 0, "average_score": 0, "high_score_matchings": 0, "recent_matchings": []}


def test_saved_texts_are_truncated():
    session = FakeSession()
    details = FakeDetails()
    service = JDMatchingService(resume_service=_resumes(), queue_service=_queue_service(), details=details)
    keyword = {"score": 40, "matched_keywords": ["python"], "missing_keywords": ["redis"]}

    with patch("app.services.jd_matching_service.get_db_session", session.factory()):
        service.save_result("a-1", "u1", "r1", "r" * 6000, "j" * 7000, 45, keyword, {"score": 50}, [])
        service.save_error("a-2", "u1", "r1", "r" * 6000, "j" * 7000, "AI provider unavailable")

    result_params = session.statements[0][1]
    assert len(result_params["resume_content"]) == STORED_TEXT_LIMIT == 5000
    assert len(result_params["job_description"]) == STORED_TEXT_LIMIT
    assert result_params["keyword_score"] == 40
    assert result_params["semantic_score"] == 50
    assert details.upserts[0][1]["missing_keywords"] == ["redis"]

    error_params = session.statements[1][1]
    assert len(error_params["resume_content"]) == ERROR_TEXT_LIMIT == 1000
    assert len(error_params["job_description"]) == ERROR_TEXT_LIMIT
    assert error_params["error"] == "AI provider unavailable"


# ============================================================
# VERSIONS
# ============================================================

def _version_row(number, created_at=None, ats_score=None):
    return {"version_id": f"v{number}", "resume_id": "r1", "file_name": "cv.txt", "file_size": 100 + number,
            "file_type": MIME_TXT, "content": "x" * number, "ats_score": ats_score, "tag": None, "notes": None,
            "version_number": number, "created_at": created_at or NOW}


class SQLRecorder:
    """Stands in for execute_raw_sql; answers COUNT queries with `total`."""

    def __init__(self, rows=None, total=0):
        self.rows = rows or []
        self.total = total
        self.queries = []

    def __call__(self, sql, params=None):
        self.queries.append((sql, params))
        if "COUNT(*)" in sql:
            return [{"total": self.total}]
        if params and "version_id" in params:
            return [r for r in self.rows if r["version_id"] == params["version_id"]]
        return list(self.rows)


def _versions_service():
    return ResumeVersionsService(resume_service=_resumes(), documents=FakeVersionDocuments())


def test_version_sort_whitelist():
    print("\n[3] Versions")
    sql = SQLRecorder()
    with patch("app.services.resume_versions_service.execute_raw_sql", sql):
        result = _versions_service().get_versions("u1", "r1", sort_by="content; DROP TABLE users", sort_order="ASC")
        _versions_service().get_versions("u1", "r1", sort_by="ats_score", sort_order="asc", tag="final")
    assert "ORDER BY created_at DESC" in sql.queries[0][0]
    assert "ORDER BY ats_score ASC" in sql.queries[2][0]
    assert sql.queries[2][1]["tag"] == "%final%"
    assert result["pagination"] == {"total": 0, "page": 1, "limit": 10, "total_pages": 0}


def test_version_access_checked():
    try:
        _versions_service().get_versions("intruder", "r1")
    except NotFoundError:
        pass
    else:
        raise AssertionError("expected NotFoundError")


def test_cannot_delete_last_version():
    with patch("app.services.resume_versions_service.execute_raw_sql", SQLRecorder(total=1)):
        try:
            _versions_service().delete_version("u1", "r1", "v1")
        except InvalidRequestError:
            pass
        else:
            raise AssertionError("expected InvalidRequestError")


def test_compare_versions():
    rows = [_version_row(1, ats_score=60), _version_row(3, ats_score=75)]
    with patch("app.services.resume_versions_service.execute_raw_sql", SQLRecorder(rows)):
        comparison = _versions_service().compare_versions("u1", "r1", "v1", "v3")
        try:
            _versions_service().compare_versions("u1", "r1", "v1", "v9")
        except NotFoundError as e:
            assert str(e) == "One or both versions not found"
        else:
            raise AssertionError("expected NotFoundError")
    print(f"    {comparison['differences']}")
    assert comparison["differences"] == {
        "ats_score_diff": 15, "file_size_diff": 2, "content_length_diff": 2, "version_number_diff": 2
    }
    assert comparison["summary"] == {"improved": True, "score_change": 15, "newer_version": "version2"}


def test_find_excess_versions():
    old = NOW - timedelta(days=40)
    rows = [_version_row(n, created_at=old if n <= 2 else NOW) for n in range(1, MAX_VERSIONS + 3)]
    with patch("app.services.resume_versions_service.execute_raw_sql", SQLRecorder(rows)):
        service = _versions_service()
        assert service.find_excess_versions("r1") == ["v1", "v2"]
        assert service.find_excess_versions("r1", retention_days=30) == ["v1", "v2"]
        assert service.find_excess_versions("r1", retention_days=60) == []

        outcome = service.enforce_retention_policy(dry_run=True)
    assert outcome == {"deleted_versions": 0, "eligible_versions": 2, "dry_run": True}
    assert service.documents.deleted == []


class VersionTable:
    """resume_versions stand-in for both execute_raw_sql and get_db_session."""

    def __init__(self, rows):
        self.rows = list(rows)

    def __call__(self, sql, params=None):
        params = params or {}
        if "COUNT(*)" in sql:
            return [{"total": len(self.rows)}]
        rows = sorted(self.rows, key=lambda r: r["version_number"])
        if "version_id" in params:
            rows = [r for r in rows if r["version_id"] == params["version_id"]]
        return [dict(r) for r in rows]

    def execute(self, statement, params=None):
        sql = str(statement)
        if "INSERT INTO resume_versions" in sql:
            self.rows.append(dict(params, created_at=NOW))
        elif "DELETE FROM resume_versions" in sql:
            self.rows = [r for r in self.rows if r["version_id"] != params["version_id"]]

    @contextmanager
    def session(self):
        yield self


def _patch_version_table(table):
    return (
        patch("app.services.resume_versions_service.execute_raw_sql", table),
        patch("app.services.resume_versions_service.get_db_session", table.session),
    )


def test_create_version_at_cap_drops_oldest():
    table = VersionTable([_version_row(n) for n in range(1, MAX_VERSIONS + 1)])
    service = _versions_service()
    sql_patch, session_patch = _patch_version_table(table)
    with sql_patch, session_patch:
        created = service.create_version("u1", "r1", file_name="cv.txt", content="new content")

    assert created["version_number"] == MAX_VERSIONS + 1
    assert created["file_size"] == len("new content")
    assert created["file_type"] == MIME_TXT
    assert service.documents.deleted == ["v1"]
    assert created["version_id"] in service.documents.docs
    assert sorted(r["version_number"] for r in table.rows) == list(range(2, MAX_VERSIONS + 2))


def test_version_numbers_never_reused():
    table = VersionTable([_version_row(1), _version_row(5)])
    sql_patch, session_patch = _patch_version_table(table)
    with sql_patch, session_patch:
        created = _versions_service().create_version("u1", "r1", file_name="cv.txt", content="edited")
    assert created["version_number"] == 6


def test_restore_version():
    table = VersionTable([_version_row(1, ats_score=60), _version_row(2, ats_score=75)])
    service = _versions_service()
    service.documents.insert("v1", "r1", {"skills": ["Python"]})
    sql_patch, session_patch = _patch_version_table(table)
    with sql_patch, session_patch:
        restored = service.restore_version("u1", "r1", "v1")

    print(f"    restored as v{restored['version_number']} ({restored['tag']})")
    assert restored["version_number"] == 3
    assert restored["tag"] == "Restored from v1"
    assert restored["notes"].startswith("Restored from version 1 on ")
    assert restored["content"] == "x"
    assert restored["ats_score"] == 60.0
    assert service.resume_service.updated == ("r1", "x", 60.0)
    assert service.documents.docs[restored["version_id"]]["parsed_content"] == {"skills": ["Python"]}
    assert len(table.rows) == 3


def main():
    print("=" * 60)
    print("SERVICE LAYER TEST")
    print("=" * 60)
    test_process_upload()
    test_process_upload_unparseable()
    test_process_bulk_upload()
    test_process_bulk_upload_rejects_empty_batches()
    test_get_analysis_not_found()
    test_create_matching()
    test_create_matching_checks_resume()
    test_matching_result_status()
    test_request_suggestions()
    test_request_suggestions_limit()
    test_repeated_requests_respect_generation_limit()
    test_suggestions_refused_for_failed_matching()
    test_enqueue_failure_releases_generation()
    test_compare_and_keywords()
    test_append_suggestions_missing_details()
    test_matching_stats_empty()
    test_saved_texts_are_truncated()
    test_version_sort_whitelist()
    test_version_access_checked()
    test_cannot_delete_last_version()
    test_compare_versions()
    test_find_excess_versions()
    test_create_version_at_cap_drops_oldest()
    test_version_numbers_never_reused()
    test_restore_version()
    print("\n✅ All service tests passed")


if __name__ == "__main__":
    main()
