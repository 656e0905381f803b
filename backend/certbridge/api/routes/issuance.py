"""Issuance Routes - bulk record import and batch certificate issuance.

Invariants:
    - POST /imports takes the raw .xlsx body; rows are upserted before any issuance
    - Skipped rows are reported, never fatal; an unreadable workbook is a 400
    - Per-record issuance failures come back in the summary with a 200

Design Decisions:
    - Raw body over multipart: the admin tool posts the file bytes directly and
      this avoids a python-multipart dependency
    - Issuance after import covers only the records that import touched
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Request

from certbridge.api.dependencies import get_issuance_pipeline, get_record_store
from certbridge.infrastructure.record_store import SqlRecordStore
from certbridge.schemas.issuance import (
    ImportResponse, IssuanceSummaryResponse, SkippedRowOut,
)
from certbridge.services.issuance import IssuancePipeline
from certbridge.services.record_import import parse_workbook

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["issuance"])


@router.post("/imports", response_model=ImportResponse)
async def import_records(
    request: Request,
    record_store: SqlRecordStore = Depends(get_record_store),
    pipeline: IssuancePipeline = Depends(get_issuance_pipeline),
):
    """Import a registration workbook, then issue certificates for its rows."""
    # openpyxl is CPU-bound; large sheets would stall locker requests
    parsed = await asyncio.to_thread(parse_workbook, await request.body())
    records = await record_store.upsert_rows(parsed.rows)
    summary = await pipeline.issue_batch(records)
    return ImportResponse(
        imported=len(records),
        skipped=[SkippedRowOut.from_row(row) for row in parsed.skipped],
        issuance=IssuanceSummaryResponse.from_summary(summary),
    )


@router.post("/issuance/run", response_model=IssuanceSummaryResponse)
async def run_issuance(
    limit: int | None = Query(default=None, ge=1),
    pipeline: IssuancePipeline = Depends(get_issuance_pipeline),
):
    """Issue every record still missing its reference or artifact."""
    summary = await pipeline.issue_pending(limit)
    return IssuanceSummaryResponse.from_summary(summary)
