"""Envelopes - success and error XML responses for the locker pull protocol.

Invariants:
    - Every envelope starts with the same XML declaration the locker expects
    - Error envelopes share the root element of the message type's success response
    - All text goes through lxml, so hostile input cannot break well-formedness
    - Success: Status=SUCCESS, ErrorCode=0; error: Status=ERROR, ErrorCode=<kind code>

Design Decisions:
    - Declaration written by hand: lxml emits single-quoted attributes, and the
      partner compares the declaration literally
    - Descriptors are plain dataclasses built from records, so envelope code never
      touches the ORM
"""

import base64
from dataclasses import dataclass
from datetime import date

from lxml import etree

from certbridge.core.domain_types import MessageType, ResponseStatus
from certbridge.core.errors import ProtocolErrorKind
from certbridge.core.repository_protocols import HolderRecordLike

XML_DECLARATION = b'<?xml version="1.0" encoding="UTF-8"?>'
CONTENT_TYPE = "application/xml; charset=utf-8"


@dataclass(frozen=True)
class DocumentDescriptor:
    """Metadata the locker shows for one certificate."""
    reference: str
    doc_type: str
    document_name: str
    program_id: str
    program_label: str
    holder_name: str
    issued_on: date


def descriptor_for(
    record: HolderRecordLike, doc_type: str, program_label: str,
) -> DocumentDescriptor:
    return DocumentDescriptor(
        reference=record.external_reference or "",
        doc_type=doc_type,
        document_name=f"Certificate for {record.full_name}",
        program_id=record.event_id,
        program_label=program_label,
        holder_name=record.full_name,
        issued_on=record.event_date,
    )


# ─── Builders ─────────────────────────────────────────────────────

def _serialize(root: etree._Element) -> bytes:
    return XML_DECLARATION + etree.tostring(
        root, encoding="UTF-8", xml_declaration=False,
    )


def _text(parent: etree._Element, tag: str, value: str) -> etree._Element:
    child = etree.SubElement(parent, tag)
    child.text = value
    return child


def _status(
    root: etree._Element, status: ResponseStatus, code: str,
    message: str | None = None,
) -> None:
    block = etree.SubElement(root, "ResponseStatus")
    _text(block, "Status", status.value)
    _text(block, "ErrorCode", code)
    if message is not None:
        _text(block, "ErrorMessage", message)


def _data(parent: etree._Element, descriptor: DocumentDescriptor) -> None:
    data = etree.SubElement(parent, "Data")
    _text(data, "DocumentName", descriptor.document_name)
    _text(data, "DocumentID", descriptor.program_id)
    _text(data, "Conference", descriptor.program_label)
    _text(data, "Recipient", descriptor.holder_name)
    _text(data, "Date", descriptor.issued_on.isoformat())


def build_pull_uri_response(descriptors: list[DocumentDescriptor]) -> bytes:
    """List success: one Document element per descriptor, in the given order."""
    root = etree.Element(MessageType.PULL_URI.response_root)
    _status(root, ResponseStatus.SUCCESS, "0")
    details = etree.SubElement(root, "DocDetails")
    for descriptor in descriptors:
        document = etree.SubElement(details, "Document")
        _text(document, "URI", descriptor.reference)
        _text(document, "DocType", descriptor.doc_type)
        _data(document, descriptor)
    return _serialize(root)


def build_pull_doc_response(
    descriptor: DocumentDescriptor, artifact: bytes,
) -> bytes:
    """Fetch success: metadata plus the artifact as base64 text."""
    root = etree.Element(MessageType.PULL_DOC.response_root)
    _status(root, ResponseStatus.SUCCESS, "0")
    details = etree.SubElement(root, "DocDetails")
    _data(details, descriptor)
    _text(details, "PDF", base64.b64encode(artifact).decode("ascii"))
    return _serialize(root)


def build_error(
    message_type: MessageType, kind: ProtocolErrorKind, message: str,
) -> bytes:
    """Error envelope for any rejected request."""
    root = etree.Element(message_type.response_root)
    _status(root, ResponseStatus.ERROR, kind.value, message)
    return _serialize(root)
