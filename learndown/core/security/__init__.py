# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Security primitives for learndown."""

from learndown.core.security.cipher import (
    ALGORITHM,
    DecryptionError,
    EncryptedBlob,
    InvalidArgument,
    decrypt,
    derive_key,
    encrypt,
)

__all__ = [
    "ALGORITHM",
    "EncryptedBlob",
    "InvalidArgument",
    "DecryptionError",
    "encrypt",
    "decrypt",
    "derive_key",
]
