"""
HMAC signer for the credentials cookie.

The signature is a lowercase hex HMAC-SHA256 over the exact payload bytes,
so callers must serialize deterministically before signing (see
models.CredentialPayload.serialize).
"""

import hashlib
import hmac
from typing import Union

from utokyo_relay.errors import ConfigurationError


Payload = Union[bytes, str]


class Signer:
    """
    Computes and checks signatures with one process-wide key.

    Build one instance at startup and share it between the callback and the
    session verifier. The key is never exposed after construction.
    """

    digestmod = hashlib.sha256

    def __init__(self, key: Payload):
        if not key:
            raise ConfigurationError("Signing key is not configured")
        if isinstance(key, str):
            key = key.encode("utf-8")
        self._key = key

    def sign(self, payload: Payload) -> str:
        """
        Sign a payload.

        Args:
            payload: Raw bytes, or text which is UTF-8 encoded first

        Returns:
            Hex-encoded HMAC of the payload
        """
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return hmac.new(self._key, payload, self.digestmod).hexdigest()

    def verify(self, payload: Payload, signature: str) -> bool:
        """Constant-time check that signature matches the payload."""
        if not signature:
            return False
        expected = self.sign(payload).encode("ascii")
        # compare_digest rejects non-ASCII str, so compare bytes
        return hmac.compare_digest(expected, signature.encode("utf-8"))

    def __repr__(self) -> str:
        return f"<Signer {self.digestmod().name}>"
