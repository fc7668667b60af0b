"""Database base classes and models."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# Import models so Alembic can autogenerate migrations
import memberhub.db.models.user  # noqa: E402,F401
import memberhub.db.models.community  # noqa: E402,F401
import memberhub.db.models.subscription  # noqa: E402,F401
