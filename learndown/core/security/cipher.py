# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Password-based encryption of configuration objects.

Any JSON-serializable object (typically the mapping of database
coordinates distributed to course applications) is serialized to
canonical JSON and sealed with AES-256-GCM. The key is the SHA-256 digest
of the password, so the same password string is all a course needs to
read its configuration.

Example:
    >>> from learndown.core.security import encrypt, decrypt
    >>> blob = encrypt({"MONGO_BASE": "sdd"}, password="s3cret")
    >>> decrypt(blob, password="s3cret")
    {'MONGO_BASE': 'sdd'}
"""

import base64
import binascii
import hashlib
import json
import os
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

ALGORITHM = "aes256-gcm"
NONCE_SIZE = 12


class InvalidArgument(ValueError):
    """Raised when an operation receives an unusable argument."""


class DecryptionError(Exception):
    """Raised when a blob cannot be decrypted.

    Covers a wrong password as well as corrupt or truncated blobs.
    """


@dataclass(frozen=True)
class EncryptedBlob:
    """Ciphertext produced by encrypt().

    Attributes:
        nonce: Random nonce used for this encryption.
        ciphertext: Encrypted payload including the GCM tag.
        algorithm: Algorithm tag.
    """

    nonce: bytes
    ciphertext: bytes
    algorithm: str = ALGORITHM

    def to_bytes(self) -> bytes:
        """Serialize the blob to its storage form (a small JSON envelope)."""
        payload = {
            "algorithm": self.algorithm,
            "nonce": base64.b64encode(self.nonce).decode("ascii"),
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
        }
        return json.dumps(payload, ensure_ascii=True).encode("utf-8")

    @staticmethod
    def from_bytes(data: bytes) -> "EncryptedBlob":
        """Parse the storage form of a blob.

        Raises:
            DecryptionError: If the data is not a valid envelope.
        """
        try:
            raw = json.loads(data.decode("utf-8"))
            return EncryptedBlob(
                nonce=base64.b64decode(raw["nonce"], validate=True),
                ciphertext=base64.b64decode(raw["ciphertext"], validate=True),
                algorithm=str(raw.get("algorithm", ALGORITHM)),
            )
        except (
            UnicodeDecodeError,
            json.JSONDecodeError,
            binascii.Error,
            KeyError,
            TypeError,
            AttributeError,
        ) as exc:
            raise DecryptionError(f"Invalid encrypted blob: {exc}") from exc


def _check_password(password: Any) -> str:
    if not isinstance(password, str):
        raise InvalidArgument("Use a single character string for the password")
    if not password:
        raise InvalidArgument("The password cannot be empty")
    return password


def derive_key(password: str) -> bytes:
    """Derive the 256-bit encryption key from a password.

    Args:
        password: Non-empty password string.

    Returns:
        32-byte key.

    Raises:
        InvalidArgument: If the password is not a non-empty string.
    """
    return hashlib.sha256(_check_password(password).encode("utf-8")).digest()


def encrypt(obj: Any, password: str) -> EncryptedBlob:
    """Encrypt a JSON-serializable object with a password.

    Args:
        obj: Object to encrypt. Tuples come back as lists after decryption.
        password: Non-empty password string.

    Returns:
        The encrypted blob.

    Raises:
        InvalidArgument: If the password is invalid or obj cannot be
            serialized to JSON.
    """
    key = derive_key(password)
    try:
        serialized = json.dumps(
            obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"Object cannot be serialized: {exc}") from exc

    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, serialized.encode("utf-8"), None)
    return EncryptedBlob(nonce=nonce, ciphertext=ciphertext)


def decrypt(blob: EncryptedBlob | bytes, password: str) -> Any:
    """Decrypt a blob produced by encrypt().

    Args:
        blob: The blob, or its storage form as returned by to_bytes().
        password: The password used for encryption.

    Returns:
        The decrypted object.

    Raises:
        InvalidArgument: If the password is not a non-empty string.
        DecryptionError: If the password is wrong or the blob is corrupt.
    """
    key = derive_key(password)
    if isinstance(blob, (bytes, bytearray)):
        blob = EncryptedBlob.from_bytes(bytes(blob))

    if blob.algorithm != ALGORITHM:
        raise DecryptionError(f"Unsupported algorithm: {blob.algorithm}")
    if len(blob.nonce) != NONCE_SIZE:
        raise DecryptionError("Invalid nonce length")

    try:
        serialized = AESGCM(key).decrypt(blob.nonce, blob.ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionError("Wrong password or corrupt data") from exc

    try:
        return json.loads(serialized.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecryptionError(f"Corrupt decrypted payload: {exc}") from exc
