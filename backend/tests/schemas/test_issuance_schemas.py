"""Issuance Schemas - verifies conversion of service results into API responses."""

from certbridge.core.errors import RenderError
from certbridge.schemas.issuance import IssuanceSummaryResponse
from certbridge.services.issuance import (
    BatchSummary, IssuanceFailure, RecordIdentity,
)

from tests.fakes import FakeRecord


def test_summary_carries_failure_identity():
    record = FakeRecord(full_name="")
    summary = BatchSummary(
        succeeded=3, failed=1,
        failures=[IssuanceFailure(RecordIdentity.of(record), RenderError("full_name"))],
    )

    response = IssuanceSummaryResponse.from_summary(summary)

    assert response.succeeded == 3
    failure = response.failures[0]
    assert failure.record_id == record.id
    assert failure.holder_id == "DL-1001"
    assert failure.error_code == "RENDER_ERROR"
    assert "full_name" in failure.message


def test_unexpected_error_text_is_not_exposed():
    summary = BatchSummary(
        failed=1,
        failures=[IssuanceFailure(
            RecordIdentity.of(FakeRecord()), RuntimeError("secret dsn"),
        )],
    )

    failure = IssuanceSummaryResponse.from_summary(summary).failures[0]

    assert failure.error_code == "INTERNAL_ERROR"
    assert "secret" not in failure.message
