"""Data models for ipfs_bch."""

from ipfs_bch.models.config import ClientConfig, Network, NETWORK_DEFAULTS
from ipfs_bch.models.events import (
    DepositEvent,
    ReceiptEvent,
    ReceiptStatus,
    RefundReason,
)
from ipfs_bch.models.records import (
    ActivityRecord,
    PinRequest,
    RequestRecord,
    ServiceParams,
    TokenUtxo,
    Transaction,
    TxOutput,
    ValidationResult,
)

__all__ = [
    "ClientConfig", "Network", "NETWORK_DEFAULTS",
    "DepositEvent", "ReceiptEvent", "ReceiptStatus", "RefundReason",
    "ActivityRecord", "PinRequest", "RequestRecord", "ServiceParams",
    "TokenUtxo", "Transaction", "TxOutput", "ValidationResult",
]
