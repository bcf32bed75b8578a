"""Record types shared between the protocol, collaborators and storage."""

from __future__ import annotations

from dataclasses import dataclass, field

NULLDATA = "nulldata"


@dataclass(frozen=True)
class ServiceParams:
    """Operating limits published by the service."""

    fee: int = 0  # satoshis
    max_size: int = 0  # bytes


@dataclass(frozen=True)
class TokenUtxo:
    """A CashToken-carrying output held by an address."""

    txid: str
    vout: int
    value: int  # satoshis
    category: str
    amount: int = 0
    capability: str | None = None  # "none" | "mutable" | "minting", None if fungible only
    commitment: str = ""  # hex


@dataclass(frozen=True)
class TxOutput:
    """A decoded transaction output."""

    script_type: str  # "nulldata", "pubkeyhash", ...
    script_hex: str
    value: int = 0  # satoshis

    @property
    def script(self) -> bytes:
        return bytes.fromhex(self.script_hex)


@dataclass(frozen=True)
class Transaction:
    """A transaction as delivered by an address watcher."""

    txid: str
    outputs: list[TxOutput] = field(default_factory=list)

    def nulldata_output(self) -> TxOutput | None:
        for out in self.outputs:
            if out.script_type == NULLDATA:
                return out
        return None


@dataclass(frozen=True)
class PinRequest:
    """An immutable pin request ready to be paid."""

    url: str
    fee_sats: int
    encoded_bytes: bytes
    pay_instruction: str
    deposit_address: str


@dataclass
class ValidationResult:
    """Outcome of validating user input against the service limits."""

    ok: bool
    reason: str = "accepted"  # "invalid_url", "url_too_long", "empty", "too_large", ...
    message: str = ""


@dataclass
class RequestRecord:
    """A pin request as persisted in the history store."""

    id: int
    generation: int
    url: str
    fee_sats: int
    script_hex: str
    pay_instruction: str
    status: str = "awaiting_deposit"
    deposit_txid: str | None = None
    receipt_txid: str | None = None
    cid: str | None = None
    refund_reason: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    request_id: int | None
    txid: str | None
    message: str
    created_at: str
