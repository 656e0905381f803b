"""Issuance Pipeline - verifies reference, render, store, and record steps.

Invariants:
    - Issued record has both derived fields; re-issuing does no work
    - Any failure before save_issuance leaves the record untouched
    - A batch keeps going past failing records and reports each one
    - Only newly issued records are pushed to the partner
"""

import httpx
import pytest
from sqlalchemy import Update, select
from sqlalchemy.exc import OperationalError

from certbridge.core.errors import (
    ConcurrencyError, IdentityFieldMissingError, PartnerAPIError,
    StoreUnavailableError,
)
from certbridge.core.reference import generate_reference
from certbridge.infrastructure.partner_client import PartnerIssuerClient
from certbridge.infrastructure.record_store import SqlRecordStore
from certbridge.models.holder_record import HolderRecord
from certbridge.services.issuance import IssuancePipeline

from tests.fakes import FakeRecord


class _FakePublisher:
    def __init__(self, error: Exception | None = None):
        self.issued: list[str] = []
        self.error = error

    async def issue_certificate(self, record) -> dict:
        if self.error is not None:
            raise self.error
        self.issued.append(record.external_reference)
        return {"status": "ok"}


@pytest.fixture
def pipeline(test_db, object_store, settings):
    return IssuancePipeline(SqlRecordStore(test_db), object_store, settings)


async def test_issue_sets_both_derived_fields(pipeline, make_record, object_store):
    record = await make_record()

    issued = await pipeline.issue(record)

    assert issued.external_reference == generate_reference(
        "DL-1001", "CONF-24", "asha@example.org",
    )
    assert issued.artifact_location == (
        "s3://test-bucket/certificates/DL-1001_CONF-24.pdf"
    )
    assert issued.issued_at is not None
    assert object_store.puts == [
        ("certificates/DL-1001_CONF-24.pdf", "application/pdf"),
    ]
    assert object_store.objects["certificates/DL-1001_CONF-24.pdf"].startswith(b"%PDF")


async def test_issue_is_persisted(pipeline, make_record, test_session_factory):
    record = await make_record()
    await pipeline.issue(record)

    async with test_session_factory() as other:
        stored = (await other.execute(
            select(HolderRecord).where(HolderRecord.id == record.id),
        )).scalar_one()
    assert stored.external_reference == record.external_reference
    assert stored.artifact_location == record.artifact_location


async def test_issue_twice_does_no_work(pipeline, make_record, object_store):
    record = await make_record()
    first = await pipeline.issue(record)
    reference = first.external_reference

    second = await pipeline.issue(record)

    assert second.external_reference == reference
    assert len(object_store.puts) == 1


async def test_missing_identity_field_raises_before_any_put(pipeline, object_store):
    record = FakeRecord(email="  ")
    with pytest.raises(IdentityFieldMissingError) as exc:
        await pipeline.issue(record)
    assert exc.value.field == "email"
    assert object_store.puts == []


async def test_storage_failure_leaves_record_untouched(
    pipeline, make_record, object_store, test_db,
):
    record = await make_record()
    object_store.put_error = StoreUnavailableError("boom", "put")

    with pytest.raises(StoreUnavailableError):
        await pipeline.issue(record)

    await test_db.refresh(record)
    assert record.external_reference is None
    assert record.artifact_location is None


async def test_conflicting_reference_is_rejected(make_record, test_db, test_session_factory):
    record = await make_record()
    async with test_session_factory() as other:
        stored = (await other.execute(
            select(HolderRecord).where(HolderRecord.id == record.id),
        )).scalar_one()
        stored.external_reference = "locker://elsewhere/1"
        stored.artifact_location = "s3://test-bucket/other.pdf"
        await other.commit()

    store = SqlRecordStore(test_db)
    with pytest.raises(ConcurrencyError):
        await store.save_issuance(record, "locker://certbridge/mine", "s3://x/y.pdf")


async def test_batch_continues_past_failures(pipeline, make_record):
    await make_record(holder_id="DL-1")
    await make_record(holder_id="DL-2", full_name="")
    await make_record(holder_id="DL-3")

    summary = await pipeline.issue_pending()

    assert summary.succeeded == 2
    assert summary.failed == 1
    assert summary.failures[0].record.holder_id == "DL-2"
    assert summary.failures[0].error_code == "RENDER_ERROR"


async def test_unexpected_error_is_reported_as_internal(pipeline, make_record, object_store):
    await make_record()
    object_store.put_error = RuntimeError("disk on fire")

    summary = await pipeline.issue_pending()

    assert summary.failed == 1
    assert summary.failures[0].error_code == "INTERNAL_ERROR"


async def test_issue_pending_skips_issued_records(pipeline, make_record, object_store):
    await make_record(holder_id="DL-1")
    await make_record(holder_id="DL-2")

    first = await pipeline.issue_pending()
    second = await pipeline.issue_pending()

    assert first.succeeded == 2
    assert second.succeeded == 0
    assert len(object_store.puts) == 2


async def test_issue_pending_respects_limit(pipeline, make_record):
    for n in range(3):
        await make_record(holder_id=f"DL-{n}")

    summary = await pipeline.issue_pending(limit=2)

    assert summary.succeeded == 2


async def test_newly_issued_records_are_pushed(test_db, object_store, settings, make_record):
    publisher = _FakePublisher()
    pipeline = IssuancePipeline(SqlRecordStore(test_db), object_store, settings, publisher)
    issued = await pipeline.issue(await make_record(holder_id="DL-1"))
    fresh = await make_record(holder_id="DL-2")

    summary = await pipeline.issue_batch([issued, fresh])

    assert summary.succeeded == 2
    assert summary.pushed == 1
    assert publisher.issued == [fresh.external_reference]


async def test_failed_push_keeps_record_issued(test_db, object_store, settings, make_record):
    publisher = _FakePublisher(PartnerAPIError("down", "server_error"))
    pipeline = IssuancePipeline(SqlRecordStore(test_db), object_store, settings, publisher)
    record = await make_record()

    summary = await pipeline.issue_batch([record])

    assert summary.succeeded == 1
    assert summary.push_failed == 1
    assert record.external_reference is not None


async def test_database_failure_on_one_record_does_not_stop_batch(
    pipeline, make_record, test_db, monkeypatch,
):
    records = [await make_record(holder_id=f"DL-{n}") for n in range(3)]
    execute = test_db.execute
    failed = []

    async def flaky_execute(statement, *args, **kwargs):
        if isinstance(statement, Update) and not failed:
            failed.append(statement)
            raise OperationalError("UPDATE holder_records", {}, Exception("connection reset"))
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(test_db, "execute", flaky_execute)

    summary = await pipeline.issue_batch(records)

    assert (summary.succeeded, summary.failed) == (2, 1)
    assert summary.failures[0].error_code == "DATABASE_ERROR"
    assert summary.failures[0].record.holder_id == "DL-0"
    assert records[1].external_reference is not None
    assert records[2].external_reference is not None


async def test_undecodable_partner_reply_counts_as_failed_push(
    test_db, object_store, settings, make_record,
):
    def handler(request):
        raise httpx.DecodingError("malformed gzip body", request=request)

    publisher = PartnerIssuerClient.from_settings(settings, httpx.MockTransport(handler))
    pipeline = IssuancePipeline(SqlRecordStore(test_db), object_store, settings, publisher)
    records = [await make_record(holder_id=f"DL-{n}") for n in range(2)]

    summary = await pipeline.issue_batch(records)
    await publisher.aclose()

    assert (summary.succeeded, summary.failed) == (2, 0)
    assert summary.push_failed == 2
