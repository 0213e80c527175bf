"""
MongoDB Connection Utility

PostgreSQL keeps ids, scores and flags; MongoDB keeps the payloads whose
shape depends on the AI provider that produced them:
- resume_documents: parsed content, analysis results, suggestions, error
- version_documents: parsed content per resume version
- jd_match_details: keyword/semantic matching payloads and suggestions
"""
import logging

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

COLLECTIONS = {
    "resume_documents": "resume_documents",
    "version_documents": "version_documents",
    "jd_match_details": "jd_match_details",
}

# (collection, field, unique)
INDEXES = [
    ("resume_documents", "resume_id", True),
    ("resume_documents", "user_id", False),
    ("version_documents", "version_id", True),
    ("version_documents", "resume_id", False),
    ("jd_match_details", "analysis_id", True),
    ("jd_match_details", "user_id", False),
]

# pymongo pools connections per client
_client: MongoClient = None


def get_mongo_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=5000)
    return _client


def get_mongo_db() -> Database:
    return get_mongo_client()[settings.mongodb_db]


def get_collection(name: str) -> Collection:
    return get_mongo_db()[name]


def test_mongo_connection() -> bool:
    """True when the server answers a ping."""
    try:
        get_mongo_client().admin.command("ping")
        return True
    except Exception as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


def init_mongo_indexes():
    """Idempotent; run at API startup."""
    db = get_mongo_db()
    for collection, field, unique in INDEXES:
        db[COLLECTIONS[collection]].create_index([(field, ASCENDING)], unique=unique)
    logger.info("MongoDB indexes ready (%d)", len(INDEXES))
