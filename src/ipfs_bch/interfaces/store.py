"""HistoryStore protocol - persistence of pin requests and their outcomes."""

from __future__ import annotations

from typing import Protocol

from ipfs_bch.models.records import ActivityRecord, PinRequest, RequestRecord


class HistoryStore(Protocol):
    """Records every request built and how it settled."""

    # ── Lifecycle ───────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables and open the connection."""
        ...

    async def close(self) -> None:
        ...

    # ── Requests ────────────────────────────────────────────

    async def save_request(self, request: PinRequest, generation: int) -> int:
        """Insert a freshly built request. Returns its row id."""
        ...

    async def update_request(self, request_id: int, status: str, **fields: object) -> None:
        """Update status plus any of deposit_txid, receipt_txid, cid, refund_reason."""
        ...

    async def get_request(self, request_id: int) -> RequestRecord | None:
        ...

    async def get_recent_requests(self, limit: int = 20) -> list[RequestRecord]:
        ...

    # ── Activity ────────────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        request_id: int | None = None,
        txid: str | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
