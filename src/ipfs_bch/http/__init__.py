"""HTTP collaborators: remote size probe and upload client."""

from ipfs_bch.http.prober import HttpSizeProber
from ipfs_bch.http.uploader import HttpUploader

__all__ = ["HttpSizeProber", "HttpUploader"]
