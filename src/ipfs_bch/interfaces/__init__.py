"""Protocol interfaces for the ipfs_bch collaborators."""

from ipfs_bch.interfaces.prober import SizeProber
from ipfs_bch.interfaces.store import HistoryStore
from ipfs_bch.interfaces.tokens import TokenSource
from ipfs_bch.interfaces.uploader import Uploader
from ipfs_bch.interfaces.watcher import OnTransaction, TransactionWatcher, Unsubscribe

__all__ = [
    "SizeProber",
    "HistoryStore",
    "TokenSource",
    "Uploader",
    "TransactionWatcher", "OnTransaction", "Unsubscribe",
]
