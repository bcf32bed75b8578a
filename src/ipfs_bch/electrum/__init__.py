"""Electrum (Fulcrum) integration components."""

from ipfs_bch.electrum.client import ElectrumClient
from ipfs_bch.electrum.tokens import ElectrumTokenSource
from ipfs_bch.electrum.watcher import ElectrumAddressWatcher

__all__ = ["ElectrumClient", "ElectrumTokenSource", "ElectrumAddressWatcher"]
