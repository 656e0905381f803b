"""Locker Pull Protocol - XML endpoints called by the document-locker partner.

Invariants:
    - Raw body bytes are handed to the gateway untouched (signature covers them)
    - Responses are always XML with the protocol content type, including errors
    - Signature header name comes from settings

Design Decisions:
    - Routes only move bytes in and out; all protocol logic lives in the gateway
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from certbridge.api.dependencies import get_gateway
from certbridge.config import Settings, get_settings
from certbridge.core.envelopes import CONTENT_TYPE
from certbridge.services.protocol_gateway import ProtocolGateway, ProtocolResponse

router = APIRouter(prefix="/api/v1/locker", tags=["locker"])


def _xml(result: ProtocolResponse) -> Response:
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type=CONTENT_TYPE,
    )


@router.post("/pull-uri")
async def pull_uri(
    request: Request,
    gateway: ProtocolGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """List certificates for a locker holder id."""
    body = await request.body()
    signature = request.headers.get(settings.locker_signature_header)
    return _xml(await gateway.pull_uri(body, signature))


@router.post("/pull-doc")
async def pull_doc(
    request: Request,
    gateway: ProtocolGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """Return one certificate, PDF embedded as base64."""
    body = await request.body()
    signature = request.headers.get(settings.locker_signature_header)
    return _xml(await gateway.pull_doc(body, signature))
