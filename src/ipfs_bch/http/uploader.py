"""Upload client - multipart POST to the service's upload endpoint."""

from __future__ import annotations

import logging

import httpx

from ipfs_bch.errors import NetworkError, ValidationError
from ipfs_bch.protocol.builder import validate_size

log = logging.getLogger(__name__)


class HttpUploader:
    """Uploads a local file or raw text and returns the URL to pin.

    The service answers ``{"url": ...}`` on success and ``{"error": ...}``
    on failure.
    """

    def __init__(self, upload_url: str, timeout: float = 60) -> None:
        self._upload_url = upload_url
        self._timeout = timeout

    async def upload(
        self,
        content: bytes,
        filename: str = "data.txt",
        content_type: str = "text/plain",
    ) -> str:
        log.info("Uploading %s (%d bytes) to %s", filename, len(content), self._upload_url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._upload_url,
                    files={"file": (filename, content, content_type)},
                )
        except httpx.HTTPError as exc:
            raise NetworkError(f"Error uploading file: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.is_error or not data.get("url"):
            error = data.get("error") or f"HTTP {resp.status_code}"
            raise NetworkError(f"Error uploading file: {error}")

        log.info("Uploaded %s -> %s", filename, data["url"])
        return data["url"]

    async def upload_checked(
        self,
        content: bytes,
        max_size: int,
        filename: str = "data.txt",
        content_type: str = "text/plain",
    ) -> str:
        """Upload after rejecting empty or oversized content locally."""
        check = validate_size(len(content), max_size)
        if not check.ok:
            raise ValidationError(check.reason, check.message)
        return await self.upload(content, filename, content_type)
