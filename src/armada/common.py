"""Low-level packet framing utilities.

Plain frame layout (16-byte header + JSON payload):
0-1  : 0xA7DA       magic bytes
2    : version (1)
3    : PacketType (enum)
4-7  : seq u32 (big-endian)
8-11 : len u32 (payload length)
12-15: CRC-32 over header[0:12]+payload
16-  : UTF-8 JSON payload

When encryption is enabled every frame instead uses the AEAD layout from
:mod:`armada.encryption` (nonce in the header, AES-GCM tag instead of CRC).
"""

from __future__ import annotations

import enum
import json
import struct
import zlib
from io import BufferedReader, BufferedWriter
from typing import Any, Final, Tuple

from cryptography.exceptions import InvalidTag

from . import config as _cfg
from . import encryption as _aead

MAGIC: Final[int] = 0xA7DA
VERSION: Final[int] = 1

HEADER_STRUCT = struct.Struct(">HBBIII")
HEADER_LEN: Final[int] = HEADER_STRUCT.size

DEFAULT_KEY = _cfg.DEFAULT_KEY

enable_encryption = _aead.enable_encryption
disable_encryption = _aead.disable_encryption


class PacketType(int, enum.Enum):
    """Enumerate Armada wire-protocol packet categories."""

    GAME = 0  # every game and lobby JSON message
    ERROR = 1  # transport-level notices


class FrameError(Exception):
    """Base for framing problems."""


class CrcError(FrameError):
    """Raised when a CRC-32 check fails while decoding a frame."""


class IncompleteError(FrameError):
    """Raised when the stream closes before a full frame could be read."""


def _crc(header12: bytes, payload: bytes) -> int:
    return zlib.crc32(header12 + payload) & 0xFFFFFFFF


def _decode(payload: bytes) -> Any:
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FrameError(f"payload is not UTF-8 JSON: {e}") from e


def _read_exact(r, n: int, what: str) -> bytes:
    data = r.read(n)
    if data is None or len(data) < n:
        raise IncompleteError(f"Incomplete {what}")
    return data


# ---------------------------------------------------------------------------
# Public pack / unpack
# ---------------------------------------------------------------------------


def pack(ptype: PacketType, seq: int, obj: Any) -> bytes:
    """Serialize *obj* into one framed packet (AEAD if encryption is enabled)."""
    payload = json.dumps(obj, separators=(",", ":")).encode("utf-8")
    if len(payload) > _cfg.MAX_PAYLOAD:
        raise FrameError(f"Payload too large: {len(payload)} bytes")
    seq &= 0xFFFFFFFF
    if _aead.is_enabled():
        return _aead.pack(int(ptype), seq, payload)
    head = struct.pack(">HBBII", MAGIC, VERSION, int(ptype), seq, len(payload))
    return head + struct.pack(">I", _crc(head, payload)) + payload


def unpack(r: BufferedReader) -> Tuple[PacketType, int, Any]:
    """Read one framed packet from *r* and return `(ptype, seq, obj)`."""
    if _aead.is_enabled():
        header = _read_exact(r, _aead.HEADER_STRUCT.size, "header")
        magic, version, ptype_val, seq, _nonce, length = _aead.HEADER_STRUCT.unpack(header)
        if magic != MAGIC or version != VERSION:
            raise FrameError("magic/version mismatch")
        if length > _cfg.MAX_PAYLOAD + 16:
            raise FrameError(f"Frame too large: {length} bytes")
        body = _read_exact(r, length, "payload")
        try:
            _, _, ptype_val, seq, payload = _aead.unpack(header + body)
        except InvalidTag as e:
            raise FrameError("AEAD authentication failed") from e
    else:
        header = _read_exact(r, HEADER_LEN, "header")
        magic, version, ptype_val, seq, length, crc = HEADER_STRUCT.unpack(header)
        if magic != MAGIC or version != VERSION:
            raise FrameError("magic/version mismatch")
        if length > _cfg.MAX_PAYLOAD:
            raise FrameError(f"Frame too large: {length} bytes")
        payload = _read_exact(r, length, "payload")
        if _crc(header[:12], payload) != crc:
            raise CrcError(f"CRC mismatch on seq {seq}")
    try:
        ptype = PacketType(ptype_val)
    except ValueError as e:
        raise FrameError(f"Unknown packet type {ptype_val}") from e
    return ptype, seq, _decode(payload)


# ---------------------------------------------------------------------------
# Convenience wrappers for file-like objects
# ---------------------------------------------------------------------------


def send_pkt(w: BufferedWriter, ptype: PacketType, seq: int, obj: Any) -> None:
    """Write a single framed packet to buffered writer *w* and flush."""
    w.write(pack(ptype, seq, obj))
    w.flush()


def recv_pkt(r: BufferedReader) -> Tuple[PacketType, int, Any]:
    """Blocking helper that returns the next `(ptype, seq, obj)` tuple from *r*."""
    return unpack(r)


__all__ = [
    "PacketType",
    "FrameError",
    "CrcError",
    "IncompleteError",
    "enable_encryption",
    "disable_encryption",
    "pack",
    "unpack",
    "send_pkt",
    "recv_pkt",
]
