"""
HMAC-SHA256 signature verification for inbound webhook calls.

The provider signs the exact bytes of the request body with the shared secret
and sends the hex digest in the signature header, optionally prefixed with
``sha256=``. Verification must run on the raw body, before any JSON parsing.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from feedrelay.errors import AuthenticationError, ConfigurationError
from feedrelay.util.logger import get_logger

logger = get_logger("signature_verifier")

SIGNATURE_PREFIX = "sha256="


def compute_signature(raw_body: bytes, shared_secret: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``raw_body`` keyed by ``shared_secret``."""
    return hmac.new(shared_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify(raw_body: bytes, signature_header: Optional[str], shared_secret: Optional[str]) -> bool:
    """Check a webhook signature against the raw request body.

    Args:
        raw_body: Request body exactly as received.
        signature_header: Value of the signature header, with or without the
            ``sha256=`` prefix.
        shared_secret: Secret shared with the provider.

    Returns:
        True when the signature matches, False otherwise (including a missing
        header).

    Raises:
        ConfigurationError: If no shared secret is configured.
    """
    if not shared_secret:
        raise ConfigurationError("Webhook not properly configured")
    if not signature_header:
        return False

    provided = signature_header.strip()
    if provided.lower().startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]

    expected = compute_signature(raw_body, shared_secret)
    return hmac.compare_digest(expected.encode("ascii"), provided.lower().encode("utf-8"))


class SignatureVerifier:
    """Holds the shared secret and turns verification failures into exceptions."""

    def __init__(self, shared_secret: Optional[str]) -> None:
        self._shared_secret = shared_secret

    @property
    def is_configured(self) -> bool:
        return bool(self._shared_secret)

    def check(self, raw_body: bytes, signature_header: Optional[str], origin: str = "unknown") -> None:
        """Raise unless ``signature_header`` is a valid signature of ``raw_body``.

        Raises:
            ConfigurationError: No shared secret configured.
            AuthenticationError: Signature missing or invalid.
        """
        if not self._shared_secret:
            logger.critical("[SIGNATURE] Webhook secret is not configured; refusing webhook traffic")
            raise ConfigurationError("Webhook not properly configured")

        if not signature_header:
            logger.warning("[SIGNATURE] Missing signature from %s", origin)
            raise AuthenticationError("Missing signature")

        if not verify(raw_body, signature_header, self._shared_secret):
            preview = raw_body[:100].decode("utf-8", errors="replace")
            logger.warning("[SIGNATURE] Invalid signature from %s (body starts: %r)", origin, preview)
            raise AuthenticationError("Invalid signature")
