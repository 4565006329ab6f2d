"""Shared fixtures for bundle tests."""

import io
import struct
import zipfile
import pytest

# (local header offset, central directory header offset) of 2-byte fields
HEADER_FIELDS = {
    "flags": (6, 8),
    "method": (8, 10),
}

DEFLATE64 = 9
ENCRYPTED_FLAG = 0x1


def set_entry_header(data: bytes, name: str, field: str, value: int) -> bytes:
    """Overwrite a header field of one entry in both its local and central headers."""
    local_at, central_at = HEADER_FIELDS[field]
    packed = struct.pack("<H", value)
    patched = bytearray(data)

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        header_offset = zf.getinfo(name).header_offset
    patched[header_offset + local_at:header_offset + local_at + 2] = packed

    pos = patched.find(b"PK\x01\x02")
    while pos != -1:
        name_length = struct.unpack_from("<H", patched, pos + 28)[0]
        if patched[pos + 46:pos + 46 + name_length] == name.encode():
            patched[pos + central_at:pos + central_at + 2] = packed
        pos = patched.find(b"PK\x01\x02", pos + 46)

    return bytes(patched)


@pytest.fixture
def mark_deflate64():
    """Make an entry claim Deflate64 compression, which zipfile cannot decode."""
    def mark(data: bytes, name: str) -> bytes:
        return set_entry_header(data, name, "method", DEFLATE64)
    return mark


@pytest.fixture
def mark_encrypted():
    """Set the encryption flag on an entry."""
    def mark(data: bytes, name: str) -> bytes:
        return set_entry_header(data, name, "flags", ENCRYPTED_FLAG)
    return mark
