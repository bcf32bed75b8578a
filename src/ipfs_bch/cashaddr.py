"""CashAddr checksum handling for re-prefixing service addresses per network."""

from __future__ import annotations

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"

_GENERATORS = (
    0x98F2BC8E61,
    0x79B76D99E2,
    0xF33E5FB3C4,
    0xAE2EABE2A8,
    0x1E4F43E470,
)


def _polymod(values: list[int]) -> int:
    c = 1
    for d in values:
        c0 = c >> 35
        c = ((c & 0x07FFFFFFFF) << 5) ^ d
        for i, gen in enumerate(_GENERATORS):
            if (c0 >> i) & 1:
                c ^= gen
    return c ^ 1


def _prefix_expand(prefix: str) -> list[int]:
    return [ord(x) & 0x1F for x in prefix] + [0]


def _checksum(prefix: str, payload: list[int]) -> list[int]:
    mod = _polymod(_prefix_expand(prefix) + payload + [0] * 8)
    return [(mod >> 5 * (7 - i)) & 0x1F for i in range(8)]


def decode(address: str) -> tuple[str, list[int]]:
    """Split a prefixed CashAddr into (prefix, 5-bit payload without checksum).

    Raises ValueError when the address is malformed or the checksum fails.
    """
    if address.lower() != address and address.upper() != address:
        raise ValueError(f"mixed case address: {address}")
    address = address.lower()
    prefix, sep, body = address.rpartition(":")
    if not sep or not prefix or len(body) < 8:
        raise ValueError(f"address has no prefix: {address}")
    data = [CHARSET.find(c) for c in body]
    if any(x == -1 for x in data):
        raise ValueError(f"invalid character in address: {address}")
    if _polymod(_prefix_expand(prefix) + data) != 0:
        raise ValueError(f"bad checksum: {address}")
    return prefix, data[:-8]


def encode(prefix: str, payload: list[int]) -> str:
    data = payload + _checksum(prefix, payload)
    return f"{prefix}:" + "".join(CHARSET[d] for d in data)


def convert_prefix(address: str, prefix: str) -> str:
    """Re-encode an address under a different network prefix."""
    _, payload = decode(address)
    return encode(prefix, payload)


def is_valid(address: str) -> bool:
    try:
        decode(address)
    except ValueError:
        return False
    return True
