"""Error taxonomy for the settlement protocol and its collaborators."""

from __future__ import annotations


class IpfsBchError(Exception):
    """Base class for every error raised by ipfs_bch."""


class ValidationError(IpfsBchError):
    """User input rejected before a request is built.

    ``reason`` is a stable machine-readable code ("invalid_url",
    "url_too_long", "empty", "too_large", "remote_too_large").
    """

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class NetworkError(IpfsBchError):
    """Transport failure talking to a remote collaborator."""


class EncodingError(IpfsBchError):
    """A chunk cannot be represented as a null-data push."""


class ParseError(IpfsBchError):
    """A null-data script is malformed or truncated."""


class ProtocolError(IpfsBchError):
    """A decoded message does not have the expected chunk structure."""


class RefundError(IpfsBchError):
    """The service refunded the deposit instead of pinning."""

    def __init__(self, reason, transaction_id: str = "") -> None:
        super().__init__(f"Transaction refunded due to error: {reason.description}")
        self.reason = reason
        self.transaction_id = transaction_id


class UnrecognizedFormatError(IpfsBchError):
    """A correlated receipt carried an unknown status or refund reason."""

    def __init__(self, message: str, chunks: list[bytes] | None = None) -> None:
        super().__init__(message)
        self.chunks = chunks or []


class SupersededError(IpfsBchError):
    """A watch session ended because a newer request or a reset replaced it."""
