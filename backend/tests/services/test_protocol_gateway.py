"""Protocol Gateway - verifies authentication, parsing, resolution, and error envelopes.

Invariants:
    - Unauthenticated or malformed requests never open a record store session
    - Every failure is an XML envelope; only authentication failures are HTTP 401
    - A fetched artifact is returned byte-for-byte as stored
"""

import base64
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest
from lxml import etree

from certbridge.core.domain_types import GatewayStage, SignatureEncoding
from certbridge.core.errors import StoreUnavailableError
from certbridge.core.signature import compute_signature
from certbridge.infrastructure.record_store import SqlRecordStore
from certbridge.services.issuance import IssuancePipeline
from certbridge.services.protocol_gateway import ProtocolGateway


def _uri_body(holder_id: str = "DL-1001") -> bytes:
    return f"<PullURIRequest><digilockerid>{holder_id}</digilockerid></PullURIRequest>".encode()


def _doc_body(reference: str) -> bytes:
    return f"<PullDocRequest><URI>{reference}</URI></PullDocRequest>".encode()


def _status(payload: bytes) -> tuple[str, str, str | None]:
    root = etree.fromstring(payload)
    return (
        root.findtext("ResponseStatus/Status"),
        root.findtext("ResponseStatus/ErrorCode"),
        root.findtext("ResponseStatus/ErrorMessage"),
    )


@pytest.fixture
def opened():
    return []


@pytest.fixture
def gateway(test_session_factory, object_store, settings, opened):
    @asynccontextmanager
    async def open_store():
        opened.append(True)
        async with test_session_factory() as session:
            yield SqlRecordStore(session)

    return ProtocolGateway(open_store, object_store, settings)


@pytest.fixture
def sign(settings):
    def _sign(body: bytes, encoding: SignatureEncoding) -> str:
        return compute_signature(body, settings.locker_api_key, encoding)
    return _sign


@pytest.fixture
async def issued_record(test_db, object_store, settings, make_record):
    pipeline = IssuancePipeline(SqlRecordStore(test_db), object_store, settings)
    return await pipeline.issue(await make_record())


# ─── Authentication ─────────────────────────────────────────────

async def test_valid_signature_is_accepted(gateway, sign, issued_record):
    body = _uri_body()
    result = await gateway.pull_uri(body, sign(body, SignatureEncoding.BASE64))
    assert result.status_code == 200
    assert result.stage is GatewayStage.RESPONDED
    assert _status(result.body)[:2] == ("SUCCESS", "0")


async def test_flipped_body_byte_is_rejected(gateway, sign, opened):
    signature = sign(_uri_body("DL-1001"), SignatureEncoding.BASE64)
    result = await gateway.pull_uri(_uri_body("DL-1002"), signature)
    assert result.status_code == 401
    assert result.stage is GatewayStage.REJECTED
    assert _status(result.body) == ("ERROR", "401", "Unauthorized request")
    assert opened == []


async def test_altered_signature_is_rejected(gateway, sign, opened):
    body = _uri_body()
    signature = sign(body, SignatureEncoding.BASE64)
    altered = ("A" if signature[0] != "A" else "B") + signature[1:]
    result = await gateway.pull_uri(body, altered)
    assert result.status_code == 401
    assert opened == []


async def test_missing_signature_is_rejected(gateway, opened):
    result = await gateway.pull_doc(_doc_body("locker://certbridge/x"), None)
    assert result.status_code == 401
    assert etree.fromstring(result.body).tag == "PullDocResponse"
    assert opened == []


async def test_fetch_signed_with_list_encoding_is_rejected(gateway, sign):
    body = _doc_body("locker://certbridge/x")
    result = await gateway.pull_doc(body, sign(body, SignatureEncoding.BASE64))
    assert result.status_code == 401


async def test_unconfigured_secret_rejects_everything(
    test_session_factory, object_store, settings, sign, opened,
):
    @asynccontextmanager
    async def open_store():
        opened.append(True)
        async with test_session_factory() as session:
            yield SqlRecordStore(session)

    gateway = ProtocolGateway(
        open_store, object_store, settings.model_copy(update={"locker_api_key": None}),
    )
    body = _uri_body()
    result = await gateway.pull_uri(body, sign(body, SignatureEncoding.BASE64))
    assert result.status_code == 401
    assert opened == []


# ─── Parsing ────────────────────────────────────────────────────

async def test_malformed_body_is_rejected_before_store_access(gateway, sign, opened):
    body = b"<PullURIRequest><digilockerid>"
    result = await gateway.pull_uri(body, sign(body, SignatureEncoding.BASE64))
    assert result.status_code == 200
    assert _status(result.body) == ("ERROR", "400", "Invalid request format")
    assert opened == []


async def test_missing_field_names_the_field(gateway, sign, opened):
    body = b"<PullDocRequest><URI></URI></PullDocRequest>"
    result = await gateway.pull_doc(body, sign(body, SignatureEncoding.HEX))
    assert _status(result.body) == ("ERROR", "400", "URI is required")
    assert opened == []


# ─── PullURI ────────────────────────────────────────────────────

async def test_list_returns_every_record_for_holder(gateway, sign, issued_record, make_record):
    await make_record(event_id="CONF-25")
    await make_record(holder_id="DL-OTHER")
    body = _uri_body()

    result = await gateway.pull_uri(body, sign(body, SignatureEncoding.BASE64))

    documents = etree.fromstring(result.body).findall("DocDetails/Document")
    assert len(documents) == 2
    uris = {d.findtext("URI") for d in documents}
    assert issued_record.external_reference in uris
    # Unissued records are listed without a URI
    assert "" in uris


async def test_unknown_holder_is_not_found(gateway, sign, opened):
    body = _uri_body("DL-NOBODY")
    result = await gateway.pull_uri(body, sign(body, SignatureEncoding.BASE64))
    assert result.status_code == 200
    assert _status(result.body) == (
        "ERROR", "404", "No certificates found for this DigiLocker ID",
    )
    assert opened == [True]


# ─── PullDoc ────────────────────────────────────────────────────

async def test_fetch_returns_stored_artifact_unchanged(
    gateway, sign, issued_record, object_store,
):
    body = _doc_body(issued_record.external_reference)

    result = await gateway.pull_doc(body, sign(body, SignatureEncoding.HEX))

    assert result.status_code == 200
    root = etree.fromstring(result.body)
    assert root.findtext("ResponseStatus/Status") == "SUCCESS"
    stored = object_store.objects["certificates/DL-1001_CONF-24.pdf"]
    assert base64.b64decode(root.findtext("DocDetails/PDF")) == stored
    assert root.findtext("DocDetails/Data/Recipient") == "Asha Verma"


async def test_unknown_reference_is_not_found(gateway, sign, issued_record):
    body = _doc_body("locker://certbridge/0000")
    result = await gateway.pull_doc(body, sign(body, SignatureEncoding.HEX))
    assert _status(result.body) == (
        "ERROR", "404", "Certificate not found for the provided URI",
    )


async def test_storage_failure_is_upstream_error(gateway, sign, issued_record, object_store):
    object_store.get_error = StoreUnavailableError("timeout", "get")
    body = _doc_body(issued_record.external_reference)

    result = await gateway.pull_doc(body, sign(body, SignatureEncoding.HEX))

    assert result.status_code == 200
    assert _status(result.body) == ("ERROR", "502", "Failed to retrieve certificate")
    assert b"<PDF>" not in result.body


async def test_missing_artifact_is_upstream_error(gateway, sign, issued_record, object_store):
    object_store.objects.clear()
    body = _doc_body(issued_record.external_reference)

    result = await gateway.pull_doc(body, sign(body, SignatureEncoding.HEX))

    assert _status(result.body)[1] == "502"


# ─── Internal errors ────────────────────────────────────────────

async def test_unexpected_failure_is_generic_internal_error(object_store, settings, sign):
    @asynccontextmanager
    async def broken_store():
        raise RuntimeError("connection string with password=hunter2")
        yield  # pragma: no cover

    gateway = ProtocolGateway(broken_store, object_store, settings)
    body = _uri_body()

    result = await gateway.pull_uri(body, sign(body, SignatureEncoding.BASE64))

    assert result.status_code == 200
    assert _status(result.body) == ("ERROR", "500", "Internal server error")
    assert b"hunter2" not in result.body


async def test_list_orders_documents_newest_first(gateway, sign, make_record):
    base = datetime(2024, 3, 1, tzinfo=timezone.utc)
    await make_record(event_id="CONF-OLD", created_at=base)
    await make_record(event_id="CONF-NEW", created_at=base + timedelta(days=30))
    await make_record(event_id="CONF-MID", created_at=base + timedelta(days=10))
    body = _uri_body()

    result = await gateway.pull_uri(body, sign(body, SignatureEncoding.BASE64))

    documents = etree.fromstring(result.body).findall("DocDetails/Document")
    assert [d.findtext("Data/DocumentID") for d in documents] == [
        "CONF-NEW", "CONF-MID", "CONF-OLD",
    ]
