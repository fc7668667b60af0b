"""Database engine and session management."""
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from memberhub.core.logging import get_logger

logger = get_logger(__name__)


def create_db_engine(url: str, echo: bool = False, **kwargs) -> Engine:
    """Create the process-wide SQLAlchemy engine."""
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,  # Log SQL queries in debug mode
        **kwargs,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency function to get database session.
    Yields a session from the factory built at startup and ensures it's closed after use.
    """
    db = request.app.state.services.session_factory()
    try:
        yield db
    finally:
        db.close()


def check_db_connection(engine: Engine) -> bool:
    """Check if database connection is available."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
