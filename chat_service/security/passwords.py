"""Salted one-way hashing for account secrets."""

from __future__ import annotations

import hashlib
import hmac
import secrets

_ALGORITHM = "pbkdf2_sha256"


class SecretHasher:
    """PBKDF2-HMAC-SHA256 hasher producing self-describing hash strings.

    Hashes are encoded as ``pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>``
    so verification keeps working after the configured iteration count changes.
    """

    def __init__(self, iterations: int, salt_bytes: int = 16) -> None:
        self._iterations = iterations
        self._salt_bytes = salt_bytes

    def hash(self, secret: str) -> str:
        """Return a freshly salted hash string for ``secret``."""
        salt = secrets.token_bytes(self._salt_bytes)
        digest = _derive(secret, salt, self._iterations)
        return f"{_ALGORITHM}${self._iterations}${salt.hex()}${digest.hex()}"

    def verify(self, secret: str, encoded: str) -> bool:
        """Return ``True`` when ``secret`` matches ``encoded`` exactly.

        Parameters
        ----------
        secret:
            Candidate secret as supplied by the caller; compared byte-for-byte,
            without trimming or case folding.
        encoded:
            Hash string previously produced by :meth:`hash`.
        """
        try:
            algorithm, iterations, salt_hex, digest_hex = encoded.split("$")
            salt = bytes.fromhex(salt_hex)
            expected = bytes.fromhex(digest_hex)
            rounds = int(iterations)
        except ValueError:
            return False
        if algorithm != _ALGORITHM:
            return False
        return hmac.compare_digest(_derive(secret, salt, rounds), expected)


def _derive(secret: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, iterations)
