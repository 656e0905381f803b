"""Issuance Pipeline - reference, render, store, and record each certificate exactly once.

Invariants:
    - A record with both derived fields set is returned untouched (no render, no put)
    - save_issuance is the only mutation point and writes both derived fields at once,
      so any failure before it leaves the record as it was
    - Same record always maps to the same object key: re-issuance overwrites
    - In a batch, one record's failure is recorded and the loop moves on
    - A failed partner push is logged and counted; it never un-issues a record

Design Decisions:
    - Rendering runs in a worker thread: reportlab is CPU-bound and a batch of
      hundreds would otherwise starve the event loop
    - Records processed sequentially: derived-field writes for one holder never
      interleave within a run, and the CAS in the store covers overlapping runs
"""

import asyncio
import logging
from dataclasses import dataclass, field

from certbridge.config import Settings
from certbridge.core.errors import (
    CertBridgeError, IdentityFieldMissingError, PartnerAPIError,
)
from certbridge.core.reference import artifact_key, generate_reference
from certbridge.core.render_certificate import render_certificate
from certbridge.core.repository_protocols import (
    CertificatePublisher, HolderRecordLike, ObjectStore, RecordBatch, RecordStore,
)

logger = logging.getLogger(__name__)

ARTIFACT_CONTENT_TYPE = "application/pdf"
IDENTITY_FIELDS = ("holder_id", "event_id", "email")


@dataclass(frozen=True)
class RecordIdentity:
    """Attributes of a record captured before any write touches it."""
    record_id: str
    holder_id: str
    event_id: str
    issued: bool

    @classmethod
    def of(cls, record: HolderRecordLike) -> "RecordIdentity":
        return cls(
            record_id=str(record.id),
            holder_id=record.holder_id,
            event_id=record.event_id,
            issued=bool(record.external_reference and record.artifact_location),
        )


@dataclass
class IssuanceFailure:
    record: RecordIdentity
    error: Exception

    @property
    def error_code(self) -> str:
        if isinstance(self.error, CertBridgeError):
            return self.error.code
        return "INTERNAL_ERROR"


@dataclass
class BatchSummary:
    succeeded: int = 0
    failed: int = 0
    failures: list[IssuanceFailure] = field(default_factory=list)
    pushed: int = 0
    push_failed: int = 0


class IssuancePipeline:
    """Turns imported holder records into issued certificates."""

    def __init__(
        self,
        record_store: RecordStore,
        object_store: ObjectStore,
        settings: Settings,
        publisher: CertificatePublisher | None = None,
    ):
        self._records = record_store
        self._objects = object_store
        self._settings = settings
        self._publisher = publisher

    def render(self, record: HolderRecordLike) -> bytes:
        return render_certificate(
            record,
            issuer_name=self._settings.issuer_name,
            program_noun=self._settings.certificate_program_noun,
            footer=self._settings.certificate_footer,
        )

    async def issue(self, record: HolderRecordLike) -> HolderRecordLike:
        """Issue one record; no-op when it is already issued."""
        if record.external_reference and record.artifact_location:
            return record

        for name in IDENTITY_FIELDS:
            if not (getattr(record, name, None) or "").strip():
                raise IdentityFieldMissingError(name)

        reference = generate_reference(
            record.holder_id, record.event_id, record.email,
            prefix=self._settings.reference_prefix,
        )
        data = await asyncio.to_thread(self.render, record)
        location = await self._objects.put(
            artifact_key(
                record.holder_id, record.event_id,
                prefix=self._settings.s3_key_prefix,
            ),
            data,
            ARTIFACT_CONTENT_TYPE,
        )
        issued = await self._records.save_issuance(record, reference, location)
        logger.info(
            "Certificate issued",
            extra={"record_id": str(record.id), "holder_id": record.holder_id},
        )
        return issued

    async def issue_batch(self, records: RecordBatch) -> BatchSummary:
        """Issue every record independently and report the outcome."""
        summary = BatchSummary()
        # Identities are read up front: a failed write may leave later
        # records unreadable until the store reloads them
        identities = [RecordIdentity.of(record) for record in records]
        for record, identity in zip(records, identities):
            try:
                issued = await self.issue(record)
            except CertBridgeError as e:
                self._record_failure(summary, identity, e)
                logger.warning(
                    f"Issuance failed: {e.message}",
                    extra={"record_id": identity.record_id, "error_code": e.code},
                )
                continue
            except Exception as e:
                self._record_failure(summary, identity, e)
                logger.error(
                    f"Unexpected issuance failure: {e}",
                    extra={"record_id": identity.record_id},
                    exc_info=True,
                )
                continue

            summary.succeeded += 1
            if not identity.issued:
                await self._publish(issued, identity, summary)

        logger.info(
            "Issuance batch finished",
            extra={"succeeded": summary.succeeded, "failed": summary.failed},
        )
        return summary

    async def issue_pending(self, limit: int | None = None) -> BatchSummary:
        pending = await self._records.list_pending(
            limit or self._settings.issuance_batch_limit,
        )
        return await self.issue_batch(pending)

    @staticmethod
    def _record_failure(
        summary: BatchSummary, identity: RecordIdentity, error: Exception,
    ) -> None:
        summary.failed += 1
        summary.failures.append(IssuanceFailure(record=identity, error=error))

    async def _publish(
        self, record: HolderRecordLike, identity: RecordIdentity, summary: BatchSummary,
    ) -> None:
        if self._publisher is None:
            return
        try:
            await self._publisher.issue_certificate(record)
            summary.pushed += 1
        except PartnerAPIError as e:
            summary.push_failed += 1
            logger.warning(
                f"Partner push failed: {e.message}",
                extra={"record_id": identity.record_id, "error_code": e.code},
            )
