"""Null-data script encoding."""

from ipfs_bch.script.codec import decode, decode_hex, encode, encode_hex

__all__ = ["encode", "decode", "encode_hex", "decode_hex"]
