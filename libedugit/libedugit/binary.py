"""Conversions between raw byte buffers and text."""

import base64

REPLACEMENT_CHARACTER = '\ufffd'


def to_bytes(data: bytes | bytearray | memoryview | str | None) -> bytes:
    """Normalize raw bytes, text (encoded as UTF-8) or None (empty) to bytes."""
    if data is None:
        return b''
    if isinstance(data, str):
        return data.encode('utf-8')

    return bytes(data)


def encode_base64(data: bytes | str | None) -> str:
    return base64.b64encode(to_bytes(data)).decode('ascii')


def decode_base64(text: str | None) -> bytes:
    if not text:
        return b''

    return base64.b64decode(text)


def is_binary(data: bytes | str | None) -> bool:
    """Report whether content is likely binary.

    The content is decoded permissively as UTF-8; any replacement character in the result marks it as binary."""
    content = to_bytes(data)
    if not content:
        return False

    return REPLACEMENT_CHARACTER in content.decode('utf-8', errors='replace')


def bytes_equal(left: bytes | str | None, right: bytes | str | None) -> bool:
    left_bytes = to_bytes(left)
    right_bytes = to_bytes(right)
    if len(left_bytes) != len(right_bytes):
        return False

    return all(a == b for a, b in zip(left_bytes, right_bytes, strict=True))
