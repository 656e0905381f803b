"""Partner Issuance Client - pushes issued certificates to the locker partner API.

Invariants:
    - Every request carries X-Partner-ID and X-API-Key; bodies are signed with X-HMAC
      (hex HMAC-SHA256 of the exact JSON bytes sent)
    - Rate limits (429): exponential backoff with jitter, respects Retry-After
    - Transient errors (5xx, connection, timeout): max_retries with exponential backoff
    - Client errors (4xx except 429): immediate failure, no retry
    - All failures mapped to PartnerAPIError (core/errors.py), including httpx
      errors that are not retried
    - Certificate URIs are percent-encoded into a single path segment

Design Decisions:
    - Instance with injected configuration instead of a static wrapper reading globals:
      tests pass an httpx.MockTransport, nothing touches process-wide config
    - Body serialized once and signed as sent, so the signature cannot drift from
      the bytes on the wire
"""

import asyncio
import json
import logging
import random
from urllib.parse import quote

import httpx

from certbridge.config import Settings
from certbridge.core.domain_types import SignatureEncoding
from certbridge.core.errors import ErrorContext, PartnerAPIError
from certbridge.core.repository_protocols import HolderRecordLike
from certbridge.core.signature import compute_signature

logger = logging.getLogger(__name__)


class PartnerIssuerClient:
    """Stateless client for the partner's issue / verify / pull endpoints."""

    def __init__(
        self,
        base_url: str,
        partner_id: str,
        api_key: str,
        partner_secret: str,
        *,
        certificate_type: str,
        issuer_name: str,
        issuer_id: str | None = None,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 30_000,
        timeout_seconds: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
            headers={"X-Partner-ID": partner_id, "X-API-Key": api_key},
        )
        self._secret = partner_secret
        self.certificate_type = certificate_type
        self.issuer_name = issuer_name
        self.issuer_id = issuer_id
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None,
    ) -> "PartnerIssuerClient":
        return cls(
            settings.partner_api_base_url,
            settings.partner_id or "",
            settings.partner_api_key or "",
            settings.partner_secret or "",
            certificate_type=settings.partner_certificate_type,
            issuer_name=settings.issuer_name,
            issuer_id=settings.partner_issuer_id,
            max_retries=settings.partner_max_retries,
            base_delay_ms=settings.partner_base_delay_ms,
            max_delay_ms=settings.partner_max_delay_ms,
            timeout_seconds=settings.partner_timeout_seconds,
            transport=transport,
        )

    async def issue_certificate(self, record: HolderRecordLike) -> dict:
        """Announce an issued certificate to the partner."""
        payload = {
            "docType": self.certificate_type,
            "uri": record.external_reference,
            "name": record.full_name,
            "digiLockerId": record.holder_id,
            "conferenceId": record.event_id,
            "date": record.event_date.isoformat(),
            "issuer": {"name": self.issuer_name, "id": self.issuer_id},
        }
        context = ErrorContext(
            record_id=str(record.id), holder_id=record.holder_id,
        )
        return await self._request("POST", "/issue", payload, context)

    async def verify_certificate(self, uri: str) -> dict:
        return await self._request("GET", f"/verify/{quote(uri, safe='')}")

    async def pull_certificate(self, uri: str) -> dict:
        return await self._request("GET", f"/pull/{quote(uri, safe='')}")

    async def aclose(self) -> None:
        await self.client.aclose()

    def sign(self, body: bytes) -> str:
        return compute_signature(body, self._secret, SignatureEncoding.HEX)

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        context: ErrorContext | None = None,
    ) -> dict:
        headers = {}
        content = None
        if payload is not None:
            content = json.dumps(payload, separators=(",", ":")).encode("utf-8")
            headers = {
                "Content-Type": "application/json",
                "X-HMAC": self.sign(content),
            }

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(
                    method, path, content=content, headers=headers,
                )
            except httpx.TimeoutException as e:
                await self._handle_transient_error(e, attempt, "timeout", context)
                continue
            except httpx.TransportError as e:
                await self._handle_transient_error(
                    e, attempt, "connection_error", context,
                )
                continue
            except httpx.HTTPError as e:
                raise PartnerAPIError(str(e), "request_error", context=context)

            if response.status_code == 429:
                await self._handle_rate_limit(response, attempt, context)
                continue
            if response.status_code >= 500:
                await self._handle_transient_error(
                    PartnerAPIError(response.reason_phrase, "server_error"),
                    attempt, "server_error", context,
                )
                continue
            if response.is_error:
                raise PartnerAPIError(
                    f"{response.status_code} {response.reason_phrase}",
                    "client_error", context=context,
                )

            logger.info(
                f"Partner API {method} {path} succeeded",
                extra={"attempt": attempt + 1},
            )
            try:
                return response.json()
            except ValueError:
                raise PartnerAPIError(
                    "Response body is not JSON", "invalid_response",
                    context=context,
                )

        raise PartnerAPIError("Retries exhausted", "unknown", context=context)

    async def _handle_rate_limit(
        self, response: httpx.Response, attempt: int, context: ErrorContext | None,
    ) -> None:
        retry_after_ms = self._extract_retry_after(response)
        if attempt >= self.max_retries:
            raise PartnerAPIError(
                "Rate limit exceeded after retries",
                "rate_limit",
                retry_after_ms=retry_after_ms,
                context=context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(
            f"Partner rate limit hit, retry after {delay}ms (attempt {attempt + 1})",
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self,
        e: Exception,
        attempt: int,
        error_type: str,
        context: ErrorContext | None,
    ) -> None:
        if attempt >= self.max_retries:
            raise PartnerAPIError(
                f"Transient failure after {self.max_retries} retries: {e}",
                error_type,
                context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(f"Partner API transient error, retry after {delay}ms: {e}")
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, response: httpx.Response) -> int | None:
        """Retry-After header in milliseconds, if it is a number of seconds."""
        val = response.headers.get("retry-after")
        if val and val.isdigit():
            return int(val) * 1000
        return None
