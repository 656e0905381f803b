"""S3 Object Store - durable artifact storage with retry, backoff, and error mapping.

Invariants:
    - put() returns s3://{bucket}/{key}; key_from_location() inverts it
    - Missing key (NoSuchKey / 404) -> ArtifactNotFoundError, never retried
    - Throttling, 5xx and connection errors: retried with exponential backoff, then
      StoreUnavailableError
    - Other client errors (auth, bad bucket): immediate StoreUnavailableError
    - The only component that writes blobs

Design Decisions:
    - boto3 calls run in asyncio.to_thread: the client is blocking, requests must not
      stall the event loop while one upload is in flight
    - ±25% jitter on backoff: many workers re-issuing after an outage do not retry in step
    - No ACL on upload: artifacts are private and served only through the gateway
"""

import asyncio
import logging
import random

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from certbridge.config import Settings
from certbridge.core.errors import (
    ArtifactNotFoundError, ErrorContext, StoreUnavailableError,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
_THROTTLE_CODES = frozenset({
    "SlowDown", "Throttling", "ThrottlingException", "RequestLimitExceeded",
    "ServiceUnavailable", "InternalError", "RequestTimeout",
})
_TRANSIENT_ERRORS = (
    EndpointConnectionError, ConnectionClosedError,
    ConnectTimeoutError, ReadTimeoutError,
)


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def _http_status(e: ClientError) -> int:
    return int(e.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0) or 0)


def _is_retryable(e: ClientError) -> bool:
    return _error_code(e) in _THROTTLE_CODES or _http_status(e) >= 500


class S3ObjectStore:
    """Puts and gets certificate PDFs in one S3 bucket."""

    def __init__(
        self,
        bucket: str,
        client,
        max_retries: int = 3,
        base_delay_ms: int = 200,
        max_delay_ms: int = 5_000,
    ):
        self.bucket = bucket
        self.client = client
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ObjectStore":
        client = boto3.client(
            "s3",
            region_name=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            # Retries are ours; botocore's own would multiply with them
            config=Config(retries={"max_attempts": 1, "mode": "standard"}),
        )
        return cls(
            settings.s3_bucket_name,
            client,
            max_retries=settings.object_store_max_retries,
            base_delay_ms=settings.object_store_base_delay_ms,
            max_delay_ms=settings.object_store_max_delay_ms,
        )

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under key, overwriting any previous object."""
        await self._call(
            "put",
            key,
            self.client.put_object,
            Bucket=self.bucket, Key=key, Body=data, ContentType=content_type,
        )
        logger.info(
            "Artifact stored", extra={"object_key": key},
        )
        return f"s3://{self.bucket}/{key}"

    async def get(self, key: str) -> bytes:
        response = await self._call(
            "get", key, self.client.get_object, Bucket=self.bucket, Key=key,
        )
        body = response["Body"]
        try:
            return await asyncio.to_thread(body.read)
        except (BotoCoreError, OSError) as e:
            raise StoreUnavailableError(str(e), "get", ErrorContext(
                debug_info={"object_key": key},
            ))
        finally:
            body.close()

    def key_from_location(self, location: str) -> str:
        prefix = f"s3://{self.bucket}/"
        if not location.startswith(prefix):
            raise StoreUnavailableError(
                f"Location '{location}' is not in bucket '{self.bucket}'",
                "resolve",
            )
        return location[len(prefix):]

    async def _call(self, operation: str, key: str, fn, **params):
        """Run a blocking client call with retry on transient failures."""
        for attempt in range(self.max_retries + 1):
            try:
                return await asyncio.to_thread(fn, **params)

            except ClientError as e:
                if _error_code(e) in _NOT_FOUND_CODES:
                    raise ArtifactNotFoundError(key)
                if not _is_retryable(e):
                    raise StoreUnavailableError(
                        f"{_error_code(e) or 'client error'}", operation,
                    )
                await self._handle_transient_error(e, operation, attempt)

            except _TRANSIENT_ERRORS as e:
                await self._handle_transient_error(e, operation, attempt)

            except BotoCoreError as e:
                logger.error(
                    f"Unexpected object store error: {e}", exc_info=True,
                )
                raise StoreUnavailableError(str(e), operation)

    async def _handle_transient_error(
        self, e: Exception, operation: str, attempt: int,
    ) -> None:
        """Sleep before the next attempt, or raise once retries are spent."""
        if attempt >= self.max_retries:
            raise StoreUnavailableError(
                f"Transient failure after {self.max_retries} retries: {e}",
                operation,
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"Object store {operation} failed, retry after {delay}ms: {e}",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
