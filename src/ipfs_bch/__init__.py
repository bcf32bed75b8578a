"""ipfs_bch - IPFS pinning with on-chain Bitcoin Cash settlement."""

__version__ = "0.1.0"
