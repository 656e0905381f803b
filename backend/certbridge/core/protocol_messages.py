"""Protocol Messages - parse locker pull requests from raw XML bytes.

Invariants:
    - Root element decides the message type; a mismatch is MalformedRequest
    - The one required field must be present and non-blank after stripping
    - External entities, DTD loading and network access are disabled in the parser

Design Decisions:
    - lxml over xml.etree: explicit control of entity resolution and huge-tree limits
    - Parse functions are pure: no store access, so a malformed body is rejected
      before the gateway opens a record store session
"""

from dataclasses import dataclass

from lxml import etree

from certbridge.core.domain_types import (
    ExternalReference, HolderId, MessageType,
)
from certbridge.core.errors import MalformedRequest

# Required child element per message type
REQUIRED_FIELD = {
    MessageType.PULL_URI: "digilockerid",
    MessageType.PULL_DOC: "URI",
}


@dataclass(frozen=True)
class PullURIRequest:
    """List documents for holder."""
    holder_id: HolderId


@dataclass(frozen=True)
class PullDocRequest:
    """Fetch one document by reference."""
    reference: ExternalReference


def _safe_parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        huge_tree=False,
        remove_blank_text=True,
    )


def _parse_root(body: bytes) -> etree._Element:
    if not body or not body.strip():
        raise MalformedRequest("Invalid request format")
    try:
        return etree.fromstring(body, parser=_safe_parser())
    except etree.XMLSyntaxError:
        raise MalformedRequest("Invalid request format")


def _required_text(root: etree._Element, tag: str) -> str:
    child = root.find(f"{{*}}{tag}")
    text = (child.text or "").strip() if child is not None else ""
    if not text:
        raise MalformedRequest(f"{tag} is required")
    return text


def parse_request(
    message_type: MessageType, body: bytes,
) -> PullURIRequest | PullDocRequest:
    """Parse and validate a request body for the given message type."""
    root = _parse_root(body)
    if etree.QName(root).localname != message_type.value:
        raise MalformedRequest("Invalid request format")
    value = _required_text(root, REQUIRED_FIELD[message_type])
    if message_type is MessageType.PULL_URI:
        return PullURIRequest(holder_id=HolderId(value))
    return PullDocRequest(reference=ExternalReference(value))
