"""Address watcher built on Electrum address subscriptions."""

from __future__ import annotations

import logging
from decimal import Decimal

from ipfs_bch.electrum.client import ElectrumClient
from ipfs_bch.interfaces.watcher import OnTransaction, Unsubscribe
from ipfs_bch.models.records import Transaction, TxOutput

log = logging.getLogger(__name__)

SATS_PER_BCH = Decimal(100_000_000)

_SUBSCRIBE = "blockchain.address.subscribe"


def parse_transaction(raw: dict) -> Transaction:
    """Convert a verbose ``blockchain.transaction.get`` result."""
    outputs = []
    for vout in raw.get("vout", []):
        script = vout.get("scriptPubKey", {})
        value = Decimal(str(vout.get("value", 0))) * SATS_PER_BCH
        outputs.append(
            TxOutput(
                script_type=script.get("type", ""),
                script_hex=script.get("hex", ""),
                value=int(value),
            )
        )
    return Transaction(txid=raw.get("txid") or raw.get("hash", ""), outputs=outputs)


class _Subscription:
    def __init__(self, address: str, callback: OnTransaction) -> None:
        self.address = address
        self.callback = callback
        self.seen: set[str] = set()
        self.active = True


class ElectrumAddressWatcher:
    """Implements TransactionWatcher on top of an ElectrumClient.

    Confirmed transactions already in an address's history when a
    subscription is made are not delivered. Unconfirmed ones are, since they
    may have arrived between the subscribe and history calls. Every
    transaction is delivered at most once per subscription.
    """

    def __init__(self, client: ElectrumClient) -> None:
        self._client = client
        self._subs: dict[str, list[_Subscription]] = {}
        client.on_notification(_SUBSCRIBE, self._on_status)

    async def subscribe(self, address: str, on_transaction: OnTransaction) -> Unsubscribe:
        sub = _Subscription(address, on_transaction)
        first = not self._subs.get(address)
        self._subs.setdefault(address, []).append(sub)

        if first:
            await self._client.request(_SUBSCRIBE, [address])
        history = await self._client.request("blockchain.address.get_history", [address])
        sub.seen.update(e["tx_hash"] for e in history or [] if e.get("height", 0) > 0)
        log.debug("Subscribed to %s (%d confirmed transactions)", address, len(sub.seen))

        async def unsubscribe() -> None:
            if not sub.active:
                return
            sub.active = False
            remaining = [s for s in self._subs.get(address, []) if s is not sub]
            if remaining:
                self._subs[address] = remaining
                return
            self._subs.pop(address, None)
            if self._client.connected:
                await self._client.request("blockchain.address.unsubscribe", [address])
            log.debug("Unsubscribed from %s", address)

        await self._deliver(address, [sub], history)
        return unsubscribe

    async def _on_status(self, params: list) -> None:
        if not params:
            return
        address = params[0]
        subs = [s for s in self._subs.get(address, []) if s.active]
        if not subs:
            return

        history = await self._client.request("blockchain.address.get_history", [address])
        await self._deliver(address, subs, history)

    async def _deliver(self, address: str, subs: list[_Subscription], history) -> None:
        fetched: dict[str, Transaction] = {}
        for sub in subs:
            new = [e["tx_hash"] for e in history or [] if e["tx_hash"] not in sub.seen]
            sub.seen.update(new)
            for txid in new:
                if not sub.active:
                    break
                if txid not in fetched:
                    raw = await self._client.request("blockchain.transaction.get", [txid, True])
                    fetched[txid] = parse_transaction(raw)
                try:
                    await sub.callback(fetched[txid])
                except Exception as exc:
                    log.error("Transaction callback for %s failed: %s", address, exc, exc_info=True)
