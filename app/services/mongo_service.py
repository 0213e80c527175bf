"""
MongoDB Service - CRUD operations for document collections.

Collections in this database:
1. resume_documents  - parsed content, extracted info, AI analysis, error state
2. version_documents - parsed content snapshot per resume version
3. jd_match_details  - keyword/semantic matching payloads and suggestions

PostgreSQL keeps the scalar columns (ids, scores, flags) used for listing
and sorting; these collections keep the JSON that varies per provider.
All documents are keyed by the PostgreSQL id (resume_id / version_id /
analysis_id), never by ObjectId.
"""

from datetime import datetime
from typing import Optional, List

from pymongo import ReturnDocument
from pymongo.collection import Collection

from app.db.mongodb import get_collection, COLLECTIONS


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


# ============================================================
# RESUME DOCUMENTS COLLECTION
# ============================================================

class ResumeDocumentService:
    """
    One document per resume:
    {
        "resume_id": "...",
        "user_id": "...",
        "parsed_content": {"metadata": {...}, "extracted_info": {...}, "batch_id": ...},
        "analysis_results": {...},     # set by the analysis worker
        "suggestions": [...],          # top suggestions
        "error": {"message", "timestamp", "provider"} | None
    }
    """

    def __init__(self, collection: Collection = None):
        self.collection: Collection = collection if collection is not None else get_collection(
            COLLECTIONS["resume_documents"]
        )

    def insert(self, resume_id: str, user_id: str, parsed_content: dict) -> str:
        doc = {
            "resume_id": resume_id,
            "user_id": user_id,
            "parsed_content": parsed_content,
            "analysis_results": None,
            "suggestions": [],
            "error": None,
            "created_at": datetime.utcnow(),
        }
        self.collection.insert_one(doc)
        return resume_id

    def get(self, resume_id: str) -> Optional[dict]:
        return serialize_doc(self.collection.find_one({"resume_id": resume_id}))

    def save_analysis(self, resume_id: str, analysis_results: dict, suggestions: List[dict]) -> bool:
        """Store analysis output and clear any previous error."""
        result = self.collection.update_one(
            {"resume_id": resume_id},
            {
                "$set": {
                    "analysis_results": analysis_results,
                    "suggestions": suggestions,
                    "error": None,
                    "analyzed_at": datetime.utcnow(),
                }
            },
            upsert=True,
        )
        return result.acknowledged

    def save_error(self, resume_id: str, message: str, provider: Optional[str] = None) -> bool:
        result = self.collection.update_one(
            {"resume_id": resume_id},
            {
                "$set": {
                    "error": {
                        "message": message,
                        "timestamp": datetime.utcnow().isoformat(),
                        "provider": provider,
                    }
                }
            },
            upsert=True,
        )
        return result.acknowledged

    def delete(self, resume_id: str) -> bool:
        return self.collection.delete_one({"resume_id": resume_id}).deleted_count > 0


# ============================================================
# VERSION DOCUMENTS COLLECTION
# ============================================================

class VersionDocumentService:
    """Parsed-content snapshot per resume version."""

    def __init__(self, collection: Collection = None):
        self.collection: Collection = collection if collection is not None else get_collection(
            COLLECTIONS["version_documents"]
        )

    def insert(self, version_id: str, resume_id: str, parsed_content: dict) -> str:
        self.collection.insert_one({
            "version_id": version_id,
            "resume_id": resume_id,
            "parsed_content": parsed_content,
            "created_at": datetime.utcnow(),
        })
        return version_id

    def get(self, version_id: str) -> Optional[dict]:
        return serialize_doc(self.collection.find_one({"version_id": version_id}))

    def delete(self, version_id: str) -> bool:
        return self.collection.delete_one({"version_id": version_id}).deleted_count > 0

    def delete_many(self, version_ids: List[str]) -> int:
        if not version_ids:
            return 0
        return self.collection.delete_many({"version_id": {"$in": version_ids}}).deleted_count


# ============================================================
# JD MATCH DETAILS COLLECTION
# ============================================================

class MatchDetailService:
    """
    Matching payloads per analysis:
    {
        "analysis_id": "...",
        "user_id": "...",
        "keyword_matching": {...},
        "semantic_matching": {...} | None,
        "suggestions": [...],
        "matched_keywords": [...],
        "missing_keywords": [...],
        "generations_used": 0..3
    }
    """

    def __init__(self, collection: Collection = None):
        self.collection: Collection = collection if collection is not None else get_collection(
            COLLECTIONS["jd_match_details"]
        )

    def upsert(self, analysis_id: str, user_id: str, details: dict) -> bool:
        doc = {"analysis_id": analysis_id, "user_id": user_id, "updated_at": datetime.utcnow()}
        doc.update(details)
        result = self.collection.update_one({"analysis_id": analysis_id}, {"$set": doc}, upsert=True)
        return result.acknowledged

    def get(self, analysis_id: str) -> Optional[dict]:
        return serialize_doc(self.collection.find_one({"analysis_id": analysis_id}))

    def reserve_generation(self, analysis_id: str, limit: int) -> Optional[int]:
        """
        Count one suggestion generation against `limit` in a single update.

        Returns the new generations_used, or None when the limit is reached
        or the document does not exist.
        """
        doc = self.collection.find_one_and_update(
            {"analysis_id": analysis_id, "generations_used": {"$not": {"$gte": limit}}},
            {"$inc": {"generations_used": 1}},
            projection={"generations_used": 1},
            return_document=ReturnDocument.AFTER,
        )
        return doc["generations_used"] if doc else None

    def release_generation(self, analysis_id: str) -> None:
        self.collection.update_one(
            {"analysis_id": analysis_id, "generations_used": {"$gt": 0}},
            {"$inc": {"generations_used": -1}},
        )

    def append_suggestions(self, analysis_id: str, suggestions: List[dict]) -> bool:
        result = self.collection.update_one(
            {"analysis_id": analysis_id},
            {"$push": {"suggestions": {"$each": suggestions}}},
        )
        return result.matched_count > 0

    def list_for_user(self, user_id: str) -> List[dict]:
        cursor = self.collection.find(
            {"user_id": user_id},
            {"matched_keywords": 1, "missing_keywords": 1, "analysis_id": 1},
        )
        return [serialize_doc(doc) for doc in cursor]

    def delete(self, analysis_id: str) -> bool:
        return self.collection.delete_one({"analysis_id": analysis_id}).deleted_count > 0
