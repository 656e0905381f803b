"""External Reference - deterministic, opaque identifiers for holder records.

Invariants:
    - Same (holder_id, event_id, email) yields the same reference on every call and process
    - Internal primary keys never feed the digest
    - No validation here: callers reject empty inputs before calling

Design Decisions:
    - SHA-256 truncated to 32 hex chars (128 bits): collision-resistant at any
      realistic registry size, short enough for the locker's URI field
    - Object keys derive from holder + program only, so re-issuance overwrites
"""

import hashlib

from certbridge.core.domain_types import (
    EventId, ExternalReference, HolderId, ObjectKey,
)

DEFAULT_REFERENCE_PREFIX = "locker://certbridge/"
DEFAULT_KEY_PREFIX = "certificates/"
REFERENCE_DIGEST_LENGTH = 32


def generate_reference(
    holder_id: HolderId,
    event_id: EventId,
    email: str,
    prefix: str = DEFAULT_REFERENCE_PREFIX,
) -> ExternalReference:
    """Content-derived reference for one holder/program/email triple."""
    material = f"{holder_id}:{event_id}:{email}".encode("utf-8")
    digest = hashlib.sha256(material).hexdigest()[:REFERENCE_DIGEST_LENGTH]
    return ExternalReference(f"{prefix}{digest}")


def artifact_key(
    holder_id: HolderId, event_id: EventId, prefix: str = DEFAULT_KEY_PREFIX,
) -> ObjectKey:
    """Object store key for a holder's certificate in one program."""
    return ObjectKey(f"{prefix}{holder_id}_{event_id}.pdf")
