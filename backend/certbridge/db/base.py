"""SQLAlchemy Declarative Base - shared base class and metadata for ORM models.

Invariants:
    - All models inherit from Base
    - Constraint names follow NAMING_CONVENTION so migrations stay reproducible

Design Decisions:
    - Separate file for Base: models and alembic import it without importing each other
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all certbridge ORM models."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
