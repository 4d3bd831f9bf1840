"""Binary glTF (GLB) container framing.

Layout::

    header  magic(4) version(u32) total_length(u32)
    chunk*  length(u32) type(u32) payload[length] padding-to-4

The JSON chunk comes first and is space padded inside its declared length.
The optional BIN chunk declares its exact payload length and is followed by
zero padding, so readers that honour the declared length and readers that
round up to the next 4-byte boundary both land on the next chunk.
"""

from __future__ import annotations

import struct
from typing import Optional, Tuple

from .constants import (
    CHUNK_TYPE_BIN,
    CHUNK_TYPE_JSON,
    GLB_CHUNK_HEADER_SIZE,
    GLB_HEADER_SIZE,
    GLB_MAGIC,
    GLB_VERSION,
)
from .errors import E_CHUNK, E_LENGTH, E_MAGIC, E_VERSION, FormatError

__all__ = [
    "decode_container",
    "encode_container",
    "is_container",
    "parse_header",
]

_JSON_PAD = b" "
_BIN_PAD = b"\x00"


def _pad_len(n: int) -> int:
    return (4 - n % 4) % 4


def is_container(data: bytes) -> bool:
    return data[:4] == GLB_MAGIC


def parse_header(data: bytes) -> Tuple[int, int]:
    """Return ``(version, total_length)`` after checking the magic."""
    if len(data) < GLB_HEADER_SIZE:
        raise FormatError(
            E_LENGTH,
            f"Binary container too short for header: {len(data)} bytes",
        )
    magic, version, total = struct.unpack_from("<4sII", data, 0)
    if magic != GLB_MAGIC:
        raise FormatError(E_MAGIC, f"Bad container magic: {magic!r}")
    return version, total


def decode_container(data: bytes) -> Tuple[bytes, Optional[bytes]]:
    """Split a binary container into its JSON and optional BIN payloads."""
    version, total = parse_header(data)
    if version != GLB_VERSION:
        raise FormatError(
            E_VERSION,
            f"Unsupported container version {version}",
            {"expected": GLB_VERSION},
        )
    if total != len(data):
        raise FormatError(
            E_LENGTH,
            f"Header length {total} disagrees with actual size {len(data)}",
        )
    json_chunk: Optional[bytes] = None
    bin_chunk: Optional[bytes] = None
    offset = GLB_HEADER_SIZE
    index = 0
    while offset < total:
        if offset + GLB_CHUNK_HEADER_SIZE > total:
            raise FormatError(
                E_CHUNK,
                f"Truncated chunk header at offset {offset}",
                {"chunk": index},
            )
        length, ctype = struct.unpack_from("<II", data, offset)
        start = offset + GLB_CHUNK_HEADER_SIZE
        end = start + length
        if end > total:
            raise FormatError(
                E_CHUNK,
                f"Chunk {index} reads past end: {start}+{length}>{total}",
                {"chunk": index},
            )
        payload = data[start:end]
        if ctype == CHUNK_TYPE_JSON:
            if index != 0:
                raise FormatError(
                    E_CHUNK,
                    "JSON chunk must be the first chunk",
                    {"chunk": index},
                )
            json_chunk = payload.rstrip(_JSON_PAD + _BIN_PAD)
        elif ctype == CHUNK_TYPE_BIN:
            if bin_chunk is not None:
                raise FormatError(
                    E_CHUNK, "Duplicate BIN chunk", {"chunk": index}
                )
            bin_chunk = payload
        elif index == 0:
            raise FormatError(
                E_CHUNK,
                f"First chunk must be JSON, got type 0x{ctype:08x}",
                {"chunk": index},
            )
        # unknown chunk types are skipped
        offset = end + _pad_len(end)
        index += 1
    if json_chunk is None:
        raise FormatError(E_CHUNK, "Missing JSON chunk")
    return json_chunk, bin_chunk


def _chunk(ctype: int, payload: bytes, pad: bytes, padded_length: bool) -> bytes:
    padding = pad * _pad_len(len(payload))
    length = len(payload) + len(padding) if padded_length else len(payload)
    return struct.pack("<II", length, ctype) + payload + padding


def encode_container(json_chunk: bytes, bin_chunk: Optional[bytes] = None) -> bytes:
    """Frame JSON (and optional binary) payloads as a binary container."""
    if isinstance(json_chunk, str):
        json_chunk = json_chunk.encode("utf-8")
    body = _chunk(CHUNK_TYPE_JSON, bytes(json_chunk), _JSON_PAD, True)
    if bin_chunk is not None:
        body += _chunk(CHUNK_TYPE_BIN, bytes(bin_chunk), _BIN_PAD, False)
    total = GLB_HEADER_SIZE + len(body)
    return struct.pack("<4sII", GLB_MAGIC, GLB_VERSION, total) + body
