"""Ed25519 verification of Discord interaction callbacks."""

from __future__ import annotations

from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from ..errors import AuthError


def verify_signature(
    public_key: str | None,
    signature: str | None,
    timestamp: str | None,
    body: bytes,
) -> None:
    """Verify ``signature`` over ``timestamp + body``.

    Args:
        public_key: Application public key, hex encoded.
        signature: ``X-Signature-Ed25519`` header, hex encoded.
        timestamp: ``X-Signature-Timestamp`` header.
        body: Raw request body, exactly as received.

    Raises:
        AuthError: Any piece is missing, malformed, or the signature does
            not verify.
    """
    if not public_key:
        raise AuthError("No public key configured for interaction verification")
    if not signature or not timestamp:
        raise AuthError("Missing signature headers")
    try:
        key = VerifyKey(bytes.fromhex(public_key))
        key.verify(timestamp.encode() + body, bytes.fromhex(signature))
    except (BadSignatureError, ValueError, TypeError) as e:
        raise AuthError("Invalid request signature") from e
