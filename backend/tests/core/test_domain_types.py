"""Domain Types - verifies enum values used on the wire and in config."""

from certbridge.core.domain_types import (
    GatewayStage, MessageType, ResponseStatus, SignatureEncoding,
)
from certbridge.core.errors import ProtocolErrorKind


def test_message_type_roots():
    assert MessageType.PULL_URI.value == "PullURIRequest"
    assert MessageType.PULL_DOC.value == "PullDocRequest"
    assert MessageType.PULL_URI.response_root == "PullURIResponse"
    assert MessageType.PULL_DOC.response_root == "PullDocResponse"


def test_signature_encodings():
    assert SignatureEncoding("hex") is SignatureEncoding.HEX
    assert SignatureEncoding("base64") is SignatureEncoding.BASE64


def test_gateway_stages():
    assert [s.value for s in GatewayStage] == [
        "received", "authenticated", "parsed", "resolved", "responded", "rejected",
    ]


def test_response_status_tokens():
    assert ResponseStatus.SUCCESS.value == "SUCCESS"
    assert ResponseStatus.ERROR.value == "ERROR"


def test_protocol_error_codes_and_transport_status():
    assert {k.value: k.http_status for k in ProtocolErrorKind} == {
        "401": 401,
        "400": 200,
        "404": 200,
        "502": 200,
        "500": 200,
    }
