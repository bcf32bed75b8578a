"""Deposit/receipt correlation."""

from ipfs_bch.settlement.watcher import SettlementState, SettlementWatcher, WatchSession

__all__ = ["SettlementState", "SettlementWatcher", "WatchSession"]
