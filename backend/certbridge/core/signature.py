"""Request Signatures - HMAC-SHA256 over raw request bytes.

Invariants:
    - Digest is computed over the exact body bytes, before any parsing
    - Comparison is constant-time (hmac.compare_digest)
    - Missing header or missing secret is a failed verification, never an exception

Design Decisions:
    - Encoding is a parameter, not a constant: the locker signs list requests in
      base64 and fetch requests in hex, and both must keep working
"""

import base64
import hashlib
import hmac

from certbridge.core.domain_types import SignatureEncoding


def compute_signature(
    body: bytes, secret: str, encoding: SignatureEncoding,
) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    if encoding is SignatureEncoding.HEX:
        return digest.hex()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(
    body: bytes,
    supplied: str | None,
    secret: str | None,
    encoding: SignatureEncoding,
) -> bool:
    """True only when a secret is configured and the supplied value matches."""
    if not supplied or not secret:
        return False
    expected = compute_signature(body, secret, encoding)
    return hmac.compare_digest(
        expected.encode("ascii"), supplied.strip().encode("utf-8"),
    )
