"""SizeProber protocol - learns a remote file's size without downloading it."""

from __future__ import annotations

from typing import Protocol


class SizeProber(Protocol):
    """Metadata-only fetch of a remote resource."""

    async def probe(self, url: str, timeout: float) -> int | None:
        """Return the advertised size in bytes, None if the server does not say."""
        ...
