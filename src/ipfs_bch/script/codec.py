"""Chunked push encoding for null-data (OP_RETURN) outputs.

Layout::

    0x6a                       OP_RETURN marker
    repeat:
      0x01..0x4b  <data>       direct push, opcode is the length
      0x4c <len:1> <data>      OP_PUSHDATA1
      0x4d <len:2 LE> <data>   OP_PUSHDATA2

OP_PUSHDATA4 is not supported: consensus rejects it inside OP_RETURN
outputs, and the largest chunk is therefore 65535 bytes.
"""

from __future__ import annotations

from typing import Iterable

from ipfs_bch.errors import EncodingError, ParseError

OP_0 = 0x00
OP_RETURN = 0x6A
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D

MAX_DIRECT_PUSH = 0x4B  # 75
MAX_PUSHDATA1 = 0xFF
MAX_PUSHDATA2 = 0xFFFF


def push_header(length: int) -> bytes:
    """Return the minimal push header for a chunk of ``length`` bytes.

    Empty chunks use a zero-length OP_PUSHDATA1 so that no bare OP_0 is
    ever emitted.
    """
    if length < 0:
        raise EncodingError(f"negative chunk length {length}")
    if 1 <= length <= MAX_DIRECT_PUSH:
        return bytes([length])
    if length <= MAX_PUSHDATA1:
        return bytes([OP_PUSHDATA1, length])
    if length <= MAX_PUSHDATA2:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little")
    raise EncodingError(
        f"chunk of {length} bytes exceeds the {MAX_PUSHDATA2} byte OP_PUSHDATA2 limit"
    )


def encode(chunks: Iterable[bytes | str]) -> bytes:
    """Encode ordered chunks into a null-data script. ``str`` chunks are UTF-8."""
    out = bytearray([OP_RETURN])
    for chunk in chunks:
        data = chunk.encode("utf-8") if isinstance(chunk, str) else bytes(chunk)
        out += push_header(len(data))
        out += data
    return bytes(out)


def decode(script: bytes) -> list[bytes]:
    """Decode a null-data script into its ordered chunks.

    The cursor is bounded by the script length; an OP_0 opcode is an empty
    chunk, not a terminator.
    """
    if not script:
        raise ParseError("empty script")
    if script[0] != OP_RETURN:
        raise ParseError(f"script does not start with OP_RETURN (0x{script[0]:02x})")

    chunks: list[bytes] = []
    end = len(script)
    pos = 1
    while pos < end:
        opcode = script[pos]
        pos += 1
        if opcode <= MAX_DIRECT_PUSH:
            length = opcode
        elif opcode == OP_PUSHDATA1:
            if pos + 1 > end:
                raise ParseError(f"truncated OP_PUSHDATA1 header at offset {pos - 1}")
            length = script[pos]
            pos += 1
        elif opcode == OP_PUSHDATA2:
            if pos + 2 > end:
                raise ParseError(f"truncated OP_PUSHDATA2 header at offset {pos - 1}")
            length = int.from_bytes(script[pos:pos + 2], "little")
            pos += 2
        else:
            raise ParseError(f"unsupported opcode 0x{opcode:02x} at offset {pos - 1}")

        if pos + length > end:
            raise ParseError(
                f"push of {length} bytes at offset {pos} overruns script "
                f"({end - pos} bytes left)"
            )
        chunks.append(bytes(script[pos:pos + length]))
        pos += length

    return chunks


def encode_hex(chunks: Iterable[bytes | str]) -> str:
    return encode(chunks).hex()


def decode_hex(script_hex: str) -> list[bytes]:
    try:
        script = bytes.fromhex(script_hex)
    except ValueError as exc:
        raise ParseError(f"script is not valid hex: {exc}") from exc
    return decode(script)
