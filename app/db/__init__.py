"""
Database module - PostgreSQL, MongoDB and Redis connections.
"""
from app.db.postgres import get_db_session, test_postgres_connection
from app.db.mongodb import get_mongo_db, test_mongo_connection
from app.db.redis_client import get_redis, test_redis_connection

__all__ = [
    "get_db_session",
    "test_postgres_connection",
    "get_mongo_db",
    "test_mongo_connection",
    "get_redis",
    "test_redis_connection",
]
