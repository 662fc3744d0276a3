# encryption abstraction module

import os
import struct

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

# AEAD header format: magic (2 bytes), version (1 byte), packet type (1 byte), sequence (4 bytes), nonce (12 bytes), length (4 bytes)
HEADER_STRUCT = struct.Struct(">HBBI12sI")

_MAGIC = 0xA7DA
_VERSION = 1

_secret_key: bytes | None = None


def enable_encryption(key: bytes) -> None:
    """Set the symmetric key used for AEAD frames."""
    global _secret_key
    if len(key) not in (16, 24, 32):
        raise ValueError("AES key must be 16/24/32 bytes")
    _secret_key = key


def disable_encryption() -> None:
    global _secret_key
    _secret_key = None


def is_enabled() -> bool:
    return _secret_key is not None


def pack(ptype: int, seq: int, payload: bytes) -> bytes:
    """AEAD pack: header + ciphertext+tag. The header is bound as associated data."""
    if _secret_key is None:
        raise ValueError("Encryption key not set")
    nonce = os.urandom(12)
    # ciphertext carries a 16-byte tag on top of the payload
    header = HEADER_STRUCT.pack(_MAGIC, _VERSION, ptype, seq, nonce, len(payload) + 16)
    ciphertext = AESGCM(_secret_key).encrypt(nonce, payload, header)
    return header + ciphertext


def unpack(frame: bytes) -> tuple[int, int, int, int, bytes]:
    """AEAD unpack: returns (magic, version, ptype, seq, plaintext); raises InvalidTag on tampering."""
    if _secret_key is None:
        raise ValueError("Encryption key not set")
    header = frame[: HEADER_STRUCT.size]
    magic, version, ptype, seq, nonce, length = HEADER_STRUCT.unpack(header)
    ciphertext = frame[HEADER_STRUCT.size : HEADER_STRUCT.size + length]
    plaintext = AESGCM(_secret_key).decrypt(nonce, ciphertext, header)
    return magic, version, ptype, seq, plaintext
