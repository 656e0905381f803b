"""Issuance Schemas - JSON responses for the import and issuance routes.

Invariants:
    - Failures carry the record's identity fields, never its internal id alone
    - Internal exception text is replaced by a generic message for non-domain errors

Design Decisions:
    - from_summary() converts the service dataclasses here, keeping services free
      of Pydantic
"""

from uuid import UUID

from pydantic import BaseModel

from certbridge.core.errors import CertBridgeError
from certbridge.services.issuance import BatchSummary, IssuanceFailure
from certbridge.services.record_import import SkippedRow


class IssuanceFailureOut(BaseModel):
    record_id: UUID
    holder_id: str
    event_id: str
    error_code: str
    message: str

    @classmethod
    def from_failure(cls, failure: IssuanceFailure) -> "IssuanceFailureOut":
        error = failure.error
        message = (
            error.message if isinstance(error, CertBridgeError)
            else "Unexpected issuance failure"
        )
        return cls(
            record_id=failure.record.record_id,
            holder_id=failure.record.holder_id,
            event_id=failure.record.event_id,
            error_code=failure.error_code,
            message=message,
        )


class IssuanceSummaryResponse(BaseModel):
    succeeded: int
    failed: int
    failures: list[IssuanceFailureOut]
    pushed: int = 0
    push_failed: int = 0

    @classmethod
    def from_summary(cls, summary: BatchSummary) -> "IssuanceSummaryResponse":
        return cls(
            succeeded=summary.succeeded,
            failed=summary.failed,
            failures=[IssuanceFailureOut.from_failure(f) for f in summary.failures],
            pushed=summary.pushed,
            push_failed=summary.push_failed,
        )


class SkippedRowOut(BaseModel):
    row_number: int
    reason: str

    @classmethod
    def from_row(cls, row: SkippedRow) -> "SkippedRowOut":
        return cls(row_number=row.row_number, reason=row.reason)


class ImportResponse(BaseModel):
    imported: int
    skipped: list[SkippedRowOut]
    issuance: IssuanceSummaryResponse
