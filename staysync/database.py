import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


def normalize_database_url(database_url: str) -> str:
    """Hosted PostgreSQL often hands out postgres://, SQLAlchemy needs postgresql://"""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


database_url = normalize_database_url(settings.database_url)

# Handle SQLite special case for check_same_thread
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    database_url,
    connect_args=connect_args,
    echo=False,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all tables in the database"""
    from . import models  # noqa: F401  registers every table on Base.metadata

    Base.metadata.create_all(bind=engine)
    logger.info(f"🗄️  Tables ready on {database_url.split('://')[0]}")
