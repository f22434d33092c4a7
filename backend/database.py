from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.config import settings


def _connect_args(url: str) -> dict:
    # Review calls may run on a worker thread when a timeout is set
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url,
    echo=settings.log_level == "DEBUG",
    connect_args=_connect_args(settings.database_url),
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def init_db(bind=None) -> None:
    """Create all tables"""
    # Register models on Base.metadata
    import backend.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables initialized")


def reset_db(bind=None) -> None:
    """Drop and recreate all tables"""
    import backend.models  # noqa: F401

    target = bind or engine
    Base.metadata.drop_all(bind=target)
    Base.metadata.create_all(bind=target)
    logger.warning("Database reset, all review data deleted")

