"""Uploader protocol - hands a local file or raw text to the upload service."""

from __future__ import annotations

from typing import Protocol


class Uploader(Protocol):
    """Uploads content and returns the URL it can be pinned from."""

    async def upload(self, content: bytes, filename: str, content_type: str) -> str:
        """Upload ``content`` and return its public URL."""
        ...

    async def upload_checked(
        self,
        content: bytes,
        max_size: int,
        filename: str,
        content_type: str,
    ) -> str:
        """Reject empty or oversized content with ValidationError, then upload."""
        ...
