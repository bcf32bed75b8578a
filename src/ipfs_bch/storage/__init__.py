"""Persistence of pin request history."""

from ipfs_bch.storage.sqlite import SQLiteHistoryStore

__all__ = ["SQLiteHistoryStore"]
