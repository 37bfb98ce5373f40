"""AES-GCM encryption for compressed cache bodies.

Envelope format: ``base64(nonce):base64(ciphertext)``. The ciphertext
carries the GCM tag, so any change to either half fails authentication.
"""

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from supacache.errors import DecodeError

NONCE_SIZE = 12  # 96-bit nonce, fresh per call
ENVELOPE_SEPARATOR = ":"
_KEY_SIZES = (16, 24, 32)


class AesGcmCipher:
    """Authenticated encryption with a raw symmetric key.

    Example:
        ```python
        cipher = AesGcmCipher.from_secret(settings.encryption_key)
        envelope = cipher.encrypt("payload")
        assert cipher.decrypt(envelope) == b"payload"
        ```
    """

    def __init__(self, key: bytes) -> None:
        """Initialize the cipher.

        Args:
            key: 16, 24 or 32 raw key bytes
        """
        if len(key) not in _KEY_SIZES:
            raise ValueError(f"Encryption key must be 16, 24 or 32 bytes, got {len(key)}")
        self._aead = AESGCM(key)

    @classmethod
    def from_secret(cls, secret: str | bytes) -> "AesGcmCipher":
        """Create a cipher from provisioned secret material."""
        return cls(cls.derive_key(secret))

    @staticmethod
    def derive_key(secret: str | bytes) -> bytes:
        """Import secret material as a raw AES key.

        There is no stretching: the secret must already be 16, 24 or 32
        bytes once UTF-8 encoded.

        Args:
            secret: The provisioned secret

        Returns:
            The raw key bytes

        Raises:
            ValueError: If the secret is missing or has the wrong length
        """
        key = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        if len(key) not in _KEY_SIZES:
            raise ValueError(
                f"CACHE_ENCRYPTION_KEY must be 16, 24 or 32 bytes, got {len(key)}"
            )
        return key

    def encrypt(self, plaintext: str | bytes) -> str:
        """Encrypt plaintext into an envelope string."""
        data = plaintext.encode("utf-8") if isinstance(plaintext, str) else plaintext
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, data, None)
        return (
            base64.b64encode(nonce).decode("ascii")
            + ENVELOPE_SEPARATOR
            + base64.b64encode(ciphertext).decode("ascii")
        )

    def decrypt(self, envelope: str | bytes) -> bytes:
        """Decrypt and authenticate an envelope.

        Raises:
            DecodeError: If the envelope is malformed or fails authentication
        """
        try:
            text = envelope.decode("ascii") if isinstance(envelope, bytes) else envelope
            nonce_b64, ciphertext_b64 = text.split(ENVELOPE_SEPARATOR)
            nonce = base64.b64decode(nonce_b64, validate=True)
            ciphertext = base64.b64decode(ciphertext_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Malformed encryption envelope: {e}") from e

        if len(nonce) != NONCE_SIZE:
            raise DecodeError(f"Envelope nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise DecodeError("Envelope failed authentication") from e
