"""Protocol Messages - verifies request parsing and rejection of malformed bodies."""

import pytest

from certbridge.core.domain_types import MessageType
from certbridge.core.errors import MalformedRequest, ProtocolErrorKind
from certbridge.core.protocol_messages import (
    PullDocRequest, PullURIRequest, parse_request,
)


def test_parses_pull_uri_request():
    body = b"<PullURIRequest><digilockerid> DL-1001 </digilockerid></PullURIRequest>"
    request = parse_request(MessageType.PULL_URI, body)
    assert request == PullURIRequest(holder_id="DL-1001")


def test_parses_pull_doc_request():
    body = (
        b'<?xml version="1.0" encoding="UTF-8"?>'
        b"<PullDocRequest><URI>locker://certbridge/abc</URI></PullDocRequest>"
    )
    request = parse_request(MessageType.PULL_DOC, body)
    assert request == PullDocRequest(reference="locker://certbridge/abc")


def test_namespaced_request_is_accepted():
    body = (
        b'<ns:PullURIRequest xmlns:ns="urn:locker">'
        b"<ns:digilockerid>DL-9</ns:digilockerid></ns:PullURIRequest>"
    )
    assert parse_request(MessageType.PULL_URI, body).holder_id == "DL-9"


@pytest.mark.parametrize("body", [
    b"",
    b"   ",
    b"not xml at all",
    b"<PullURIRequest><digilockerid>DL-1</PullURIRequest>",
])
def test_unparseable_body_is_malformed(body):
    with pytest.raises(MalformedRequest) as exc:
        parse_request(MessageType.PULL_URI, body)
    assert exc.value.kind is ProtocolErrorKind.MALFORMED_REQUEST
    assert exc.value.message == "Invalid request format"


def test_wrong_root_element_is_malformed():
    body = b"<PullDocRequest><URI>x</URI></PullDocRequest>"
    with pytest.raises(MalformedRequest):
        parse_request(MessageType.PULL_URI, body)


def test_missing_required_field_is_malformed():
    with pytest.raises(MalformedRequest) as exc:
        parse_request(MessageType.PULL_DOC, b"<PullDocRequest/>")
    assert exc.value.message == "URI is required"


def test_blank_required_field_is_malformed():
    body = b"<PullURIRequest><digilockerid>   </digilockerid></PullURIRequest>"
    with pytest.raises(MalformedRequest) as exc:
        parse_request(MessageType.PULL_URI, body)
    assert exc.value.message == "digilockerid is required"


def test_external_entities_are_not_expanded():
    body = (
        b'<?xml version="1.0"?>'
        b'<!DOCTYPE r [<!ENTITY xxe SYSTEM "file:///etc/passwd">]>'
        b"<PullURIRequest><digilockerid>&xxe;</digilockerid></PullURIRequest>"
    )
    try:
        request = parse_request(MessageType.PULL_URI, body)
    except MalformedRequest:
        return
    assert "root:" not in request.holder_id
