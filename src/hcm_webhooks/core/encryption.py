"""Encryption of webhook credentials at rest.

Provides AES-256-GCM encryption for authentication parameters (passwords,
bearer tokens, OAuth client secrets) stored in webhook configurations.

Usage:
    from hcm_webhooks.core.encryption import Encryptor, generate_key

    encryptor = Encryptor.from_string(generate_key())
    token = encryptor.encrypt_json({"token": "abc123"})
    params = encryptor.decrypt_json(token)
"""

import base64
import json
import secrets
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import SecretStr

from hcm_webhooks.core.exceptions import EncryptionError

NONCE_SIZE = 12  # 96 bits recommended for AES-GCM
KEY_SIZE = 32  # 256 bits for AES-256
TAG_SIZE = 16


class Encryptor:
    """AES-256-GCM encryptor for credential blobs.

    Ciphertexts are base64 of ``nonce || ciphertext || tag``.
    """

    def __init__(self, key: bytes):
        """Initialize encryptor with a key.

        Args:
            key: 32-byte (256-bit) encryption key

        Raises:
            EncryptionError: If key is not 32 bytes
        """
        if len(key) != KEY_SIZE:
            raise EncryptionError(f"Encryption key must be {KEY_SIZE} bytes, got {len(key)}")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_string(cls, key: str | SecretStr) -> "Encryptor":
        """Build an encryptor from a base64-encoded key."""
        raw = key.get_secret_value() if isinstance(key, SecretStr) else key
        try:
            decoded = base64.b64decode(raw, validate=True)
        except ValueError as e:
            raise EncryptionError("Encryption key is not valid base64") from e
        return cls(decoded)

    def encrypt_json(self, data: dict[str, Any], associated_data: bytes | None = None) -> str:
        """Serialize and encrypt a JSON object.

        Args:
            data: Object to encrypt
            associated_data: Optional AAD binding the ciphertext to its row

        Returns:
            Base64-encoded ciphertext
        """
        plaintext = json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8")
        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext, associated_data)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt_json(self, token: str, associated_data: bytes | None = None) -> dict[str, Any]:
        """Decrypt a value produced by :meth:`encrypt_json`.

        Raises:
            EncryptionError: If the key is wrong or the data was tampered with
        """
        try:
            raw = base64.b64decode(token, validate=True)
        except ValueError as e:
            raise EncryptionError("Ciphertext is not valid base64") from e
        if len(raw) < NONCE_SIZE + TAG_SIZE:
            raise EncryptionError("Ciphertext too short")

        try:
            plaintext = self._aesgcm.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], associated_data)
        except InvalidTag as e:
            raise EncryptionError("Decryption failed: wrong key or corrupted data") from e
        return json.loads(plaintext)


def generate_key() -> str:
    """Generate a new random base64-encoded AES-256 key."""
    return base64.b64encode(secrets.token_bytes(KEY_SIZE)).decode("ascii")
