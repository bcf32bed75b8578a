"""TokenSource protocol - queries CashToken holdings of an address."""

from __future__ import annotations

from typing import Protocol

from ipfs_bch.models.records import TokenUtxo


class TokenSource(Protocol):
    """Lists token UTXOs held by an address."""

    async def get_token_utxos(self, address: str, category: str) -> list[TokenUtxo]:
        """Return the holdings of ``category`` at ``address`` in indexer order."""
        ...
