import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# TIMESTAMP columns hold UTC wall time, same as datetime.utcnow()
CONNECT_ARGS = {"options": "-c timezone=UTC"}

# pool_size=5: maintain 5 connections ready
# max_overflow=10: allow 10 extra connections under load
engine = create_engine(
    settings.postgres_url,
    connect_args=CONNECT_ARGS,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
    echo=settings.debug  # Log SQL queries in debug mode
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Relational schema. JSON-shaped AI output lives in MongoDB (see app.db.mongodb).
SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id VARCHAR(36) PRIMARY KEY,
        email VARCHAR(255) NOT NULL UNIQUE,
        password_hash VARCHAR(255) NOT NULL,
        full_name VARCHAR(200),
        role VARCHAR(20) NOT NULL DEFAULT 'user',
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS resumes (
        resume_id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(36) NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
        file_name VARCHAR(255) NOT NULL,
        file_size INTEGER NOT NULL,
        file_type VARCHAR(120) NOT NULL,
        content TEXT NOT NULL,
        ats_score NUMERIC(5, 2),
        is_processed BOOLEAN NOT NULL DEFAULT FALSE,
        batch_id VARCHAR(120),
        uploaded_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_resumes_user_uploaded ON resumes (user_id, uploaded_at)",
    """
    CREATE TABLE IF NOT EXISTS resume_versions (
        version_id VARCHAR(36) PRIMARY KEY,
        resume_id VARCHAR(36) NOT NULL REFERENCES resumes(resume_id) ON DELETE CASCADE,
        file_name VARCHAR(255) NOT NULL,
        file_size INTEGER NOT NULL,
        file_type VARCHAR(120) NOT NULL,
        content TEXT NOT NULL,
        ats_score NUMERIC(5, 2),
        tag VARCHAR(100),
        notes TEXT,
        version_number INTEGER NOT NULL,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (resume_id, version_number)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_versions_resume_created ON resume_versions (resume_id, created_at)",
    """
    CREATE TABLE IF NOT EXISTS jd_matching_results (
        analysis_id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(36) NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
        resume_id VARCHAR(36),
        resume_content TEXT NOT NULL,
        job_description TEXT NOT NULL,
        overall_score NUMERIC(5, 2) NOT NULL DEFAULT 0,
        keyword_score NUMERIC(5, 2),
        semantic_score NUMERIC(5, 2),
        error TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_matching_user_created ON jd_matching_results (user_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_matching_score ON jd_matching_results (overall_score)",
]


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.
    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT * FROM users"))
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_postgres_schema():
    """Create tables and indexes if they do not exist yet."""
    with get_db_session() as db:
        for statement in SCHEMA_STATEMENTS:
            db.execute(text(statement))
    logger.info("PostgreSQL schema ready (%d statements)", len(SCHEMA_STATEMENTS))


def test_postgres_connection() -> bool:
    """
    Test if PostgreSQL is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            result = db.execute(text("SELECT 1 as test"))
            row = result.fetchone()
            return row[0] == 1
    except Exception as e:
        logger.warning("PostgreSQL connection failed: %s", e)
        return False


def execute_raw_sql(sql: str, params: dict = None) -> list:
    """
    Execute raw SQL and return results as list of dicts.
    This is useful for complex queries and aggregates.
    """
    with get_db_session() as db:
        result = db.execute(text(sql), params or {})
        # Convert rows to dicts
        columns = result.keys()
        return [dict(zip(columns, row)) for row in result.fetchall()]
