"""ORM Models - SQLAlchemy declarative models for persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - HolderRecord is the only aggregate; artifacts live in the object store

Design Decisions:
    - All models imported here so metadata is complete before create_all or autogenerate
"""

from certbridge.models.holder_record import HolderRecord  # noqa: F401
