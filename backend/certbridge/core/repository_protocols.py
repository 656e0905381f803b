"""Boundary Protocols - contracts between core and shell.

Invariants:
    - Core NEVER imports from shell: dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, fakes in tests need no inheritance
    - Async in Protocol: boundary methods are async because implementations do IO,
      but the pure functions that consume their results are never async
"""

from collections.abc import Sequence
from datetime import date
from typing import Protocol
from uuid import UUID


class HolderRecordLike(Protocol):
    """Structural contract for holder records passed to core and services.

    Avoids coupling renderers and envelope builders to the ORM model while
    giving mypy real type information (unlike Any).
    """
    id: UUID
    full_name: str
    holder_id: str
    event_id: str
    email: str
    event_date: date
    external_reference: str | None
    artifact_location: str | None


class RecordStore(Protocol):
    """Narrow record store surface used by issuance and the gateway."""
    async def list_by_holder(self, holder_id: str) -> list[HolderRecordLike]: ...
    async def get_by_reference(self, reference: str) -> HolderRecordLike | None: ...
    async def list_pending(self, limit: int | None = None) -> list[HolderRecordLike]: ...
    async def save_issuance(
        self, record: HolderRecordLike, reference: str, location: str,
    ) -> HolderRecordLike: ...


class ObjectStore(Protocol):
    """Durable blob storage for rendered artifacts."""
    async def put(self, key: str, data: bytes, content_type: str) -> str: ...
    async def get(self, key: str) -> bytes: ...
    def key_from_location(self, location: str) -> str: ...


class CertificatePublisher(Protocol):
    """Optional push of issued certificates to the partner ecosystem."""
    async def issue_certificate(self, record: HolderRecordLike) -> dict: ...


RecordBatch = Sequence[HolderRecordLike]
