"""IPBC message formats carried in null-data outputs.

    pin request:     <'IPBC'> <'PIN'>    <url>
    success receipt: <'IPBC'> <'DONE'>   <deposit txid> <cid>
    refund receipt:  <'IPBC'> <'REFUND'> <deposit txid> <reason>
"""

from __future__ import annotations

from ipfs_bch.errors import ProtocolError, UnrecognizedFormatError
from ipfs_bch.models.events import ReceiptEvent, ReceiptStatus, RefundReason
from ipfs_bch.models.records import Transaction
from ipfs_bch.script.codec import decode, encode

PROTOCOL_ID = b"IPBC"
PIN = b"PIN"
DONE = b"DONE"
REFUND = b"REFUND"

RECEIPT_CHUNKS = 4


def pin_message(url: str) -> list[bytes]:
    return [PROTOCOL_ID, PIN, url.encode("utf-8")]


def receipt_message(status: ReceiptStatus, deposit_txid: str, payload: str) -> bytes:
    """Encode a receipt script the way the service writes it."""
    return encode([PROTOCOL_ID, status.value, deposit_txid, payload])


def _text(chunk: bytes) -> str:
    try:
        return chunk.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolError(f"chunk is not UTF-8 text: {chunk[:16].hex()}") from exc


def _render(chunks: list[bytes]) -> str:
    return " ".join(c.decode("utf-8", errors="replace") for c in chunks)


def parse_receipt(
    tx: Transaction, deposit_txid: str, generation: int = 0
) -> ReceiptEvent | None:
    """Classify a transaction seen on the receipt address.

    Returns None when the transaction carries no null-data output or is
    correlated with a different deposit. Raises ParseError / ProtocolError
    for structurally invalid messages and UnrecognizedFormatError for a
    correlated receipt with an unknown status or refund reason.
    """
    output = tx.nulldata_output()
    if output is None:
        return None

    chunks = decode(output.script)
    if len(chunks) != RECEIPT_CHUNKS:
        raise ProtocolError(f"expected {RECEIPT_CHUNKS} chunks, got {len(chunks)}")
    if chunks[0] != PROTOCOL_ID:
        raise ProtocolError(f"not an IPBC message: {chunks[0][:16]!r}")

    correlation_id = _text(chunks[2])
    if correlation_id.lower() != deposit_txid.lower():
        return None

    status = chunks[1]
    if status == DONE:
        _text(chunks[3])
        return ReceiptEvent(
            transaction_id=tx.txid,
            status=ReceiptStatus.DONE,
            correlation_id=correlation_id,
            payload=chunks[3],
            generation=generation,
        )
    if status == REFUND:
        reason = _text(chunks[3])
        if reason not in RefundReason.__members__:
            raise UnrecognizedFormatError(
                f"Unrecognized refund reason {reason!r}", chunks,
            )
        return ReceiptEvent(
            transaction_id=tx.txid,
            status=ReceiptStatus.REFUND,
            correlation_id=correlation_id,
            payload=chunks[3],
            generation=generation,
        )

    raise UnrecognizedFormatError(f"Unknown receipt format {_render(chunks)}", chunks)
