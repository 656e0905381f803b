"""Test doubles shared by core and service tests."""

import uuid
from dataclasses import dataclass, field
from datetime import date

from certbridge.core.errors import ArtifactNotFoundError, StoreUnavailableError


@dataclass
class FakeRecord:
    """Plain stand-in satisfying HolderRecordLike."""
    full_name: str = "Asha Verma"
    holder_id: str = "DL-1001"
    event_id: str = "CONF-24"
    email: str = "asha@example.org"
    event_date: date = date(2024, 3, 15)
    external_reference: str | None = None
    artifact_location: str | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class FakeObjectStore:
    """In-memory ObjectStore recording every put."""

    def __init__(self, bucket: str = "test-bucket"):
        self.bucket = bucket
        self.objects: dict[str, bytes] = {}
        self.puts: list[tuple[str, str]] = []
        self.get_error: Exception | None = None
        self.put_error: Exception | None = None

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        if self.put_error is not None:
            raise self.put_error
        self.puts.append((key, content_type))
        self.objects[key] = data
        return f"s3://{self.bucket}/{key}"

    async def get(self, key: str) -> bytes:
        if self.get_error is not None:
            raise self.get_error
        if key not in self.objects:
            raise ArtifactNotFoundError(key)
        return self.objects[key]

    def key_from_location(self, location: str) -> str:
        prefix = f"s3://{self.bucket}/"
        if not location.startswith(prefix):
            raise StoreUnavailableError("foreign location", "resolve")
        return location[len(prefix):]
