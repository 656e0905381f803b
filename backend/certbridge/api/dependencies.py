"""API Dependencies - collaborators injected into routes from app.state.

Invariants:
    - Long-lived collaborators (db pool, object store, partner client) are created
      once in the lifespan and read from app.state, never constructed per request
    - Gateway and pipeline are cheap per-request wrappers around them
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from certbridge.config import Settings, get_settings
from certbridge.core.repository_protocols import ObjectStore
from certbridge.infrastructure.database import DatabasePool, get_db
from certbridge.infrastructure.record_store import SqlRecordStore, open_record_store
from certbridge.services.issuance import IssuancePipeline
from certbridge.services.protocol_gateway import ProtocolGateway


def get_db_pool(request: Request) -> DatabasePool:
    return request.app.state.db_pool


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_gateway(
    pool: DatabasePool = Depends(get_db_pool),
    object_store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
) -> ProtocolGateway:
    return ProtocolGateway(lambda: open_record_store(pool), object_store, settings)


def get_record_store(db: AsyncSession = Depends(get_db)) -> SqlRecordStore:
    return SqlRecordStore(db)


def get_issuance_pipeline(
    request: Request,
    record_store: SqlRecordStore = Depends(get_record_store),
    object_store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
) -> IssuancePipeline:
    publisher = getattr(request.app.state, "partner_client", None)
    return IssuancePipeline(record_store, object_store, settings, publisher)
