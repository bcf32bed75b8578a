"""CashToken holdings via ``blockchain.address.listunspent``."""

from __future__ import annotations

import logging

from ipfs_bch.electrum.client import ElectrumClient
from ipfs_bch.models.records import TokenUtxo

log = logging.getLogger(__name__)


def parse_token_utxo(entry: dict) -> TokenUtxo | None:
    """Convert one listunspent entry, None if it carries no token."""
    token = entry.get("token_data")
    if not token:
        return None
    nft = token.get("nft") or {}
    return TokenUtxo(
        txid=entry["tx_hash"],
        vout=int(entry["tx_pos"]),
        value=int(entry.get("value", 0)),
        category=token.get("category", ""),
        amount=int(token.get("amount", 0) or 0),
        capability=nft.get("capability"),
        commitment=nft.get("commitment", ""),
    )


class ElectrumTokenSource:
    """Implements TokenSource against a Fulcrum server with CashToken support."""

    def __init__(self, client: ElectrumClient) -> None:
        self._client = client

    async def get_token_utxos(self, address: str, category: str) -> list[TokenUtxo]:
        entries = await self._client.request(
            "blockchain.address.listunspent", [address, "tokens_only"],
        )
        holdings = []
        for entry in entries or []:
            utxo = parse_token_utxo(entry)
            if utxo is not None and utxo.category == category:
                holdings.append(utxo)
        log.debug("%d holdings of %s at %s", len(holdings), category[:16], address)
        return holdings
