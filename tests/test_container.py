import struct

import pytest

from flatgltf.container import decode_container, encode_container, parse_header
from flatgltf.errors import FormatError


def test_container_roundtrip_with_bin():
    json_chunk = b'{"asset":{"version":"2.0"}}'
    bin_chunk = bytes(range(10))
    data = encode_container(json_chunk, bin_chunk)
    assert len(data) % 4 == 0
    assert parse_header(data) == (2, len(data))
    assert decode_container(data) == (json_chunk, bin_chunk)


def test_container_roundtrip_without_bin():
    data = encode_container(b'{"a":1}')
    assert decode_container(data) == (b'{"a":1}', None)


def test_json_chunk_padded_with_spaces_inside_declared_length():
    data = encode_container(b'{"a":1}')  # 7 bytes
    length, ctype = struct.unpack_from("<II", data, 12)
    assert length == 8
    assert ctype == 0x4E4F534A
    assert data[20:28] == b'{"a":1} '


def test_bin_chunk_declares_exact_length():
    data = encode_container(b"{}  ", b"\x01\x02\x03")
    length, ctype = struct.unpack_from("<II", data, 12 + 8 + 4)
    assert (length, ctype) == (3, 0x004E4942)
    assert data.endswith(b"\x01\x02\x03\x00")


def test_bad_magic():
    data = bytearray(encode_container(b"{}"))
    data[0:4] = b"gltf"
    with pytest.raises(FormatError) as ei:
        decode_container(bytes(data))
    assert ei.value.code == "E_MAGIC"


def test_bad_version():
    data = bytearray(encode_container(b"{}"))
    struct.pack_into("<I", data, 4, 1)
    with pytest.raises(FormatError) as ei:
        decode_container(bytes(data))
    assert ei.value.code == "E_VERSION"


def test_total_length_mismatch():
    data = encode_container(b"{}") + b"\x00\x00\x00\x00"
    with pytest.raises(FormatError) as ei:
        decode_container(data)
    assert ei.value.code == "E_LENGTH"


def test_header_too_short():
    with pytest.raises(FormatError) as ei:
        decode_container(b"glTF\x02\x00")
    assert ei.value.code == "E_LENGTH"


def test_chunk_past_end():
    data = bytearray(encode_container(b"{}  "))
    struct.pack_into("<I", data, 12, 400)
    with pytest.raises(FormatError) as ei:
        decode_container(bytes(data))
    assert ei.value.code == "E_CHUNK"


def test_first_chunk_must_be_json():
    body = struct.pack("<II", 4, 0x004E4942) + b"\x00" * 4
    data = struct.pack("<4sII", b"glTF", 2, 12 + len(body)) + body
    with pytest.raises(FormatError) as ei:
        decode_container(data)
    assert ei.value.code == "E_CHUNK"


def test_duplicate_bin_chunk():
    extra = struct.pack("<II", 4, 0x004E4942) + b"\x05" * 4
    data = bytearray(encode_container(b"{}  ", b"\x01\x02\x03\x04") + extra)
    struct.pack_into("<I", data, 8, len(data))
    with pytest.raises(FormatError) as ei:
        decode_container(bytes(data))
    assert ei.value.code == "E_CHUNK"


def test_unknown_chunk_is_skipped():
    extra = struct.pack("<II", 4, 0x12345678) + b"abcd"
    data = bytearray(encode_container(b"{}  ") + extra)
    struct.pack_into("<I", data, 8, len(data))
    assert decode_container(bytes(data)) == (b"{}", None)
