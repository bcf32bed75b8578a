"""IPBC settlement protocol: messages, parameters and request building."""

from ipfs_bch.protocol.builder import (
    MAX_URL_BYTES,
    PinRequestBuilder,
    format_amount,
    validate,
    validate_size,
    validate_url,
)
from ipfs_bch.protocol.messages import parse_receipt, pin_message, receipt_message
from ipfs_bch.protocol.params import ParameterResolver, resolve

__all__ = [
    "MAX_URL_BYTES", "PinRequestBuilder", "format_amount",
    "validate", "validate_size", "validate_url",
    "parse_receipt", "pin_message", "receipt_message",
    "ParameterResolver", "resolve",
]
