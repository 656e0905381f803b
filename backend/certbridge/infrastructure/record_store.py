"""SQL Record Store - the narrow holder-record surface used by issuance and the gateway.

Invariants:
    - save_issuance writes external_reference and artifact_location in ONE UPDATE
    - That UPDATE only matches when the stored reference is NULL or already equal
      (compare-and-swap); zero matched rows raises ConcurrencyError
    - list_by_holder returns newest first (created_at desc)
    - upsert_rows never creates a second record for an existing identity triple

Design Decisions:
    - Store wraps one AsyncSession; callers own the session lifetime
    - Re-import that changes a rendered field clears BOTH derived fields, so the
      pipeline re-issues; the reference it regenerates is identical
"""

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from certbridge.core.column_aliases import ImportedRow
from certbridge.core.errors import ConcurrencyError, DatabaseError, ErrorContext
from certbridge.infrastructure.database import DatabasePool
from certbridge.models.holder_record import HolderRecord

logger = logging.getLogger(__name__)


class SqlRecordStore:
    """RecordStore implementation over SQLAlchemy async sessions."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def list_by_holder(self, holder_id: str) -> list[HolderRecord]:
        result = await self._db.execute(
            select(HolderRecord)
            .where(HolderRecord.holder_id == holder_id)
            .order_by(HolderRecord.created_at.desc(), HolderRecord.id),
        )
        return list(result.scalars().all())

    async def get_by_reference(self, reference: str) -> HolderRecord | None:
        result = await self._db.execute(
            select(HolderRecord).where(
                HolderRecord.external_reference == reference,
            ),
        )
        return result.scalar_one_or_none()

    async def list_pending(self, limit: int | None = None) -> list[HolderRecord]:
        """Records still missing either derived field, oldest first."""
        query = (
            select(HolderRecord)
            .where(or_(
                HolderRecord.external_reference.is_(None),
                HolderRecord.artifact_location.is_(None),
            ))
            .order_by(HolderRecord.created_at, HolderRecord.id)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def save_issuance(
        self, record: HolderRecord, reference: str, location: str,
    ) -> HolderRecord:
        """Persist both derived fields together, guarded by compare-and-swap."""
        issued_at = datetime.now(timezone.utc)
        stmt = (
            update(HolderRecord)
            .where(
                HolderRecord.id == record.id,
                or_(
                    HolderRecord.external_reference.is_(None),
                    HolderRecord.external_reference == reference,
                ),
            )
            .values(
                external_reference=reference,
                artifact_location=location,
                issued_at=issued_at,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._db.execute(stmt)
            if result.rowcount != 1:
                raise ConcurrencyError(
                    "Record holds a different external reference",
                    ErrorContext(record_id=str(record.id)),
                )
            await self._db.commit()
        except SQLAlchemyError as e:
            record_id = record.__dict__.get("id")
            await self._rollback_and_reload()
            logger.error(
                f"Failed to save issuance: {e}",
                extra={"record_id": str(record_id)},
            )
            raise DatabaseError("Could not persist issuance", "update")

        set_committed_value(record, "external_reference", reference)
        set_committed_value(record, "artifact_location", location)
        set_committed_value(record, "issued_at", issued_at)
        return record

    async def _rollback_and_reload(self) -> None:
        """Roll back, then reload every instance the rollback expired.

        Expired instances cannot lazy-load under asyncio, so a batch holding
        sibling records would fail on its next attribute read.
        """
        loaded = list(self._db.identity_map.values())
        await self._db.rollback()
        for instance in loaded:
            try:
                await self._db.refresh(instance)
            except SQLAlchemyError as e:
                logger.warning(f"Could not reload record after rollback: {e}")
                return

    async def upsert_rows(self, rows: Iterable[ImportedRow]) -> list[HolderRecord]:
        """Create or update records by identity triple; later rows win."""
        latest: dict[tuple[str, str, str], ImportedRow] = {}
        for row in rows:
            latest[row.identity] = row
        if not latest:
            return []

        holder_ids = sorted({holder_id for holder_id, _, _ in latest})
        result = await self._db.execute(
            select(HolderRecord).where(HolderRecord.holder_id.in_(holder_ids)),
        )
        existing = {
            (r.holder_id, r.event_id, r.email): r for r in result.scalars().all()
        }

        records: list[HolderRecord] = []
        for identity, row in latest.items():
            record = existing.get(identity)
            if record is None:
                record = HolderRecord(
                    full_name=row.full_name,
                    holder_id=row.holder_id,
                    event_id=row.event_id,
                    email=row.email,
                    event_date=row.event_date,
                )
                self._db.add(record)
            elif (record.full_name, record.event_date) != (row.full_name, row.event_date):
                record.full_name = row.full_name
                record.event_date = row.event_date
                record.external_reference = None
                record.artifact_location = None
                record.issued_at = None
            records.append(record)

        try:
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error(f"Failed to upsert imported rows: {e}")
            raise DatabaseError("Could not save imported records", "commit")
        return records


@asynccontextmanager
async def open_record_store(pool: DatabasePool) -> AsyncIterator[SqlRecordStore]:
    """Record store bound to a fresh session from the shared pool."""
    async with pool.session() as session:
        yield SqlRecordStore(session)
