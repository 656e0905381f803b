"""HolderRecord ORM - one registrant's attendance entry and its issued certificate.

Invariants:
    - id is UUID primary key, never exposed outside this service
    - (holder_id, event_id, email) is unique: re-imports update in place
    - external_reference is unique and set only by issuance
    - external_reference and artifact_location are both NULL or both set (CHECK)

Design Decisions:
    - Derived fields on the record instead of a separate issuance table: the
      gateway resolves a reference with one indexed lookup
    - event_date is a DATE: the locker only ever shows YYYY-MM-DD
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    CheckConstraint, Date, DateTime, String, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from certbridge.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HolderRecord(Base):
    """Holder record - identity fields from import, derived fields from issuance."""
    __tablename__ = "holder_records"
    __table_args__ = (
        UniqueConstraint(
            "holder_id", "event_id", "email", name="uq_holder_records_identity",
        ),
        CheckConstraint(
            "(external_reference IS NULL) = (artifact_location IS NULL)",
            name="derived_pair",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    full_name: Mapped[str] = mapped_column(String(300), nullable=False)
    holder_id: Mapped[str] = mapped_column(
        String(200), nullable=False, index=True,
    )
    event_id: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)

    external_reference: Mapped[str | None] = mapped_column(
        String(200), nullable=True, unique=True,
    )
    artifact_location: Mapped[str | None] = mapped_column(
        String(1000), nullable=True,
    )
    issued_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
        onupdate=_utcnow,
    )

    @property
    def is_issued(self) -> bool:
        return bool(self.external_reference and self.artifact_location)
