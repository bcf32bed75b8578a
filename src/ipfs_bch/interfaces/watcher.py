"""TransactionWatcher protocol - pushes new transactions seen on an address."""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from ipfs_bch.models.records import Transaction

OnTransaction = Callable[[Transaction], Awaitable[None]]
Unsubscribe = Callable[[], Awaitable[None]]


class TransactionWatcher(Protocol):
    """Address-transaction subscription transport."""

    async def subscribe(self, address: str, on_transaction: OnTransaction) -> Unsubscribe:
        """Deliver every new transaction touching ``address`` until unsubscribed."""
        ...
