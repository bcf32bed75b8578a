"""Remote size probe - HEAD request for Content-Length."""

from __future__ import annotations

import logging

import httpx

from ipfs_bch.errors import NetworkError

log = logging.getLogger(__name__)


class HttpSizeProber:
    """Learns a remote file's size without downloading its body.

    The request runs inside the awaiting task, so cancelling that task
    aborts it.
    """

    def __init__(self, follow_redirects: bool = True) -> None:
        self._follow_redirects = follow_redirects

    async def probe(self, url: str, timeout: float) -> int | None:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                follow_redirects=self._follow_redirects,
            ) as client:
                resp = await client.head(url)
                resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Error fetching URL: timeout after {timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise NetworkError(f"Error fetching URL: HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Error fetching URL: {exc}") from exc

        content_length = resp.headers.get("content-length")
        if content_length is None:
            log.debug("%s did not report a size", url)
            return None
        try:
            return int(content_length)
        except ValueError:
            log.warning("%s sent a bad Content-Length: %r", url, content_length)
            return None
