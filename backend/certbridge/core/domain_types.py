"""Domain Types - rich types that replace bare primitives across the codebase.

Invariants:
    - HolderId, EventId, ExternalReference wrap str: never mix them in signatures
    - All valid protocol states encoded as Enums, no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: values are the literal tokens used in config and on the wire
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

HolderId = NewType("HolderId", str)
EventId = NewType("EventId", str)
ExternalReference = NewType("ExternalReference", str)
ObjectKey = NewType("ObjectKey", str)


# ─── Enums ───────────────────────────────────────────────────────

class MessageType(str, Enum):
    """Locker pull protocol messages. Value is the request root element."""
    PULL_URI = "PullURIRequest"
    PULL_DOC = "PullDocRequest"

    @property
    def response_root(self) -> str:
        return self.value.replace("Request", "Response")


class SignatureEncoding(str, Enum):
    """Text encoding of the HMAC digest carried in the signature header."""
    HEX = "hex"
    BASE64 = "base64"


class GatewayStage(str, Enum):
    """Protocol gateway states. REJECTED is absorbing."""
    RECEIVED = "received"
    AUTHENTICATED = "authenticated"
    PARSED = "parsed"
    RESOLVED = "resolved"
    RESPONDED = "responded"
    REJECTED = "rejected"


class ResponseStatus(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
