"""Settlement events emitted by the watcher."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ReceiptStatus(str, Enum):
    DONE = "DONE"
    REFUND = "REFUND"


class RefundReason(str, Enum):
    """Closed set of refund reasons the service can report."""

    NOT_IPBC = "NOT_IPBC"
    FEE_NOT_PAID = "FEE_NOT_PAID"
    DL_FAIL = "DL_FAIL"

    @property
    def description(self) -> str:
        return _REFUND_DESCRIPTIONS[self]


_REFUND_DESCRIPTIONS = {
    RefundReason.NOT_IPBC: "Not an IPBC transaction",
    RefundReason.FEE_NOT_PAID: "Did not pay required fee",
    RefundReason.DL_FAIL: "Service was not able to download remote data and pin it",
}


@dataclass(frozen=True)
class DepositEvent:
    """The user's payment carrying our pin request reached the deposit address."""

    transaction_id: str  # hex
    matched_script: bytes
    generation: int


@dataclass(frozen=True)
class ReceiptEvent:
    """The service answered on the receipt address.

    ``correlation_id`` is the deposit transaction id echoed by the service.
    ``payload`` is the CID for DONE receipts and the reason for REFUND ones.
    """

    transaction_id: str
    status: ReceiptStatus
    correlation_id: str
    payload: bytes
    generation: int

    @property
    def cid(self) -> str | None:
        if self.status != ReceiptStatus.DONE:
            return None
        return self.payload.decode("utf-8")

    @property
    def reason(self) -> RefundReason | None:
        if self.status != ReceiptStatus.REFUND:
            return None
        return RefundReason(self.payload.decode("utf-8"))
