"""Protocol Gateway - authenticated locker pull requests resolved against stored records.

Invariants:
    - Stages advance RECEIVED -> AUTHENTICATED -> PARSED -> RESOLVED -> RESPONDED;
      any failure moves to REJECTED and nothing after it runs
    - Signature checked over the raw body before parsing; no record store session is
      opened until the request has been authenticated AND parsed
    - Every failure becomes an XML error envelope; no exception escapes handle()
    - Object store failures while fetching -> UpstreamStorageFailure, never a success body
    - Internal error detail goes to the log only

Design Decisions:
    - Record store opened through an injected factory: each request gets its own
      session from the shared pool, and tests can count whether one was opened
    - Stateless apart from injected collaborators; safe to share across requests
"""

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from certbridge.config import Settings
from certbridge.core.domain_types import (
    GatewayStage, MessageType, SignatureEncoding,
)
from certbridge.core.envelopes import (
    build_error, build_pull_doc_response, build_pull_uri_response, descriptor_for,
)
from certbridge.core.errors import (
    AuthenticationFailure, DocumentNotFound, ErrorContext, InternalProtocolError,
    ObjectStoreError, ProtocolError, UpstreamStorageFailure,
)
from certbridge.core.protocol_messages import (
    PullDocRequest, PullURIRequest, parse_request,
)
from certbridge.core.repository_protocols import (
    HolderRecordLike, ObjectStore, RecordStore,
)
from certbridge.core.signature import verify_signature

logger = logging.getLogger(__name__)

RecordStoreOpener = Callable[[], AbstractAsyncContextManager[RecordStore]]


@dataclass(frozen=True)
class ProtocolResponse:
    status_code: int
    body: bytes
    stage: GatewayStage


class ProtocolGateway:
    """Handles PullURI (list by holder) and PullDoc (fetch by reference)."""

    def __init__(
        self,
        open_record_store: RecordStoreOpener,
        object_store: ObjectStore,
        settings: Settings,
    ):
        self._open_record_store = open_record_store
        self._objects = object_store
        self._settings = settings

    async def pull_uri(self, body: bytes, signature: str | None) -> ProtocolResponse:
        return await self.handle(MessageType.PULL_URI, body, signature)

    async def pull_doc(self, body: bytes, signature: str | None) -> ProtocolResponse:
        return await self.handle(MessageType.PULL_DOC, body, signature)

    async def handle(
        self, message_type: MessageType, body: bytes, signature: str | None,
    ) -> ProtocolResponse:
        stage = GatewayStage.RECEIVED
        try:
            self._authenticate(message_type, body, signature)
            stage = GatewayStage.AUTHENTICATED

            request = parse_request(message_type, body)
            stage = GatewayStage.PARSED

            if isinstance(request, PullURIRequest):
                records = await self._resolve_holder(request)
                stage = GatewayStage.RESOLVED
                payload = self._respond_list(records)
            else:
                record = await self._resolve_reference(request)
                stage = GatewayStage.RESOLVED
                payload = await self._respond_document(record)
            stage = GatewayStage.RESPONDED

        except ProtocolError as e:
            return self._reject(message_type, stage, e)
        except Exception as e:
            logger.error(
                f"Unhandled gateway failure: {e}",
                extra={"message_type": message_type.value, "stage": stage.value},
                exc_info=True,
            )
            return self._reject(message_type, stage, InternalProtocolError(
                ErrorContext(message_type=message_type.value),
            ))

        logger.info(
            "Protocol request served",
            extra={"message_type": message_type.value, "stage": stage.value},
        )
        return ProtocolResponse(200, payload, stage)

    # ─── Stages ───────────────────────────────────────────────────

    def _authenticate(
        self, message_type: MessageType, body: bytes, signature: str | None,
    ) -> None:
        secret = self._settings.locker_api_key
        if not secret:
            logger.error("locker_api_key is not configured; rejecting request")
        if not verify_signature(body, signature, secret, self._encoding(message_type)):
            raise AuthenticationFailure()

    def _encoding(self, message_type: MessageType) -> SignatureEncoding:
        if message_type is MessageType.PULL_URI:
            return self._settings.pull_uri_signature_encoding
        return self._settings.pull_doc_signature_encoding

    async def _resolve_holder(self, request: PullURIRequest) -> list[HolderRecordLike]:
        async with self._open_record_store() as store:
            records = await store.list_by_holder(request.holder_id)
        if not records:
            raise DocumentNotFound(
                "No certificates found for this DigiLocker ID",
                ErrorContext(holder_id=request.holder_id),
            )
        return records

    async def _resolve_reference(self, request: PullDocRequest) -> HolderRecordLike:
        async with self._open_record_store() as store:
            record = await store.get_by_reference(request.reference)
        if record is None or not record.artifact_location:
            raise DocumentNotFound("Certificate not found for the provided URI")
        return record

    def _respond_list(self, records: list[HolderRecordLike]) -> bytes:
        return build_pull_uri_response([
            descriptor_for(
                r, self._settings.document_type, self._settings.program_label,
            )
            for r in records
        ])

    async def _respond_document(self, record: HolderRecordLike) -> bytes:
        try:
            artifact = await self._objects.get(
                self._objects.key_from_location(record.artifact_location),
            )
        except ObjectStoreError as e:
            logger.error(
                f"Artifact retrieval failed: {e.message}",
                extra={"error_code": e.code, "record_id": str(record.id)},
            )
            raise UpstreamStorageFailure()
        descriptor = descriptor_for(
            record, self._settings.document_type, self._settings.program_label,
        )
        return build_pull_doc_response(descriptor, artifact)

    # ─── Rejection ────────────────────────────────────────────────

    def _reject(
        self, message_type: MessageType, stage: GatewayStage, error: ProtocolError,
    ) -> ProtocolResponse:
        logger.warning(
            f"Protocol request rejected: {error.message}",
            extra={
                "message_type": message_type.value,
                "stage": stage.value,
                "error_code": error.kind.value,
            },
        )
        return ProtocolResponse(
            error.kind.http_status,
            build_error(message_type, error.kind, error.message),
            GatewayStage.REJECTED,
        )
