"""Pin request validation and payment instruction construction."""

from __future__ import annotations

import logging
from decimal import Decimal

import httpx

from ipfs_bch.errors import ValidationError
from ipfs_bch.interfaces.prober import SizeProber
from ipfs_bch.models.records import PinRequest, ServiceParams, ValidationResult
from ipfs_bch.protocol.messages import pin_message
from ipfs_bch.script.codec import encode

log = logging.getLogger(__name__)

# Leaves room for the IPBC/PIN chunks and push headers under the
# standardness limit for OP_RETURN outputs.
MAX_URL_BYTES = 210

SATS_PER_BCH = 100_000_000


def format_amount(sats: int) -> str:
    """Satoshis as a plain BCH decimal string ("0.0025", never "2.5e-3")."""
    bch = (Decimal(sats) / SATS_PER_BCH).normalize()
    return format(bch, "f")


def format_size(size: int) -> str:
    """Byte count in the service's kb notation (1024 bytes)."""
    return f"{size / 1024:g}kb"


def validate_url(url: str) -> ValidationResult:
    """Check that ``url`` is an absolute URL that fits the pin message."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError):
        return ValidationResult(ok=False, reason="invalid_url", message="Invalid URL")
    if not parsed.is_absolute_url:
        return ValidationResult(ok=False, reason="invalid_url", message="Invalid URL")

    length = len(url.encode("utf-8"))
    if length > MAX_URL_BYTES:
        return ValidationResult(
            ok=False,
            reason="url_too_long",
            message=f"URL length too long ({length}) to fit into OP_RETURN",
        )
    return ValidationResult(ok=True)


def validate_size(size: int, max_size: int, *, remote: bool = False) -> ValidationResult:
    """Check a payload size against the service limit."""
    if size <= 0:
        return ValidationResult(ok=False, reason="empty", message="Empty data")
    if size > max_size:
        if remote:
            return ValidationResult(
                ok=False,
                reason="remote_too_large",
                message=f"Remote content exceeds {format_size(max_size)} ({round(size / 1024)}kb)",
            )
        return ValidationResult(
            ok=False,
            reason="too_large",
            message=f"Raw data size exceeds {format_size(max_size)} ({round(size / 1024)}kb)",
        )
    return ValidationResult(ok=True)


def validate(
    url_or_payload: str | bytes, size: int, max_size: int, *, is_url: bool = True
) -> ValidationResult:
    """Validate a candidate URL (or raw payload) and its size.

    Raw payloads are only checked for size.
    """
    if is_url:
        url_check = validate_url(
            url_or_payload.decode("utf-8") if isinstance(url_or_payload, bytes) else url_or_payload
        )
        if not url_check.ok:
            return url_check
    return validate_size(size, max_size)


class PinRequestBuilder:
    """Turns a URL plus the service parameters into a payable PinRequest."""

    def __init__(
        self,
        deposit_address: str,
        prober: SizeProber | None = None,
        probe_timeout: float = 10,
    ) -> None:
        self._deposit_address = deposit_address
        self._prober = prober
        self._probe_timeout = probe_timeout

    @property
    def deposit_address(self) -> str:
        return self._deposit_address

    async def probe_remote_size(self, url: str, timeout: float | None = None) -> int | None:
        """HEAD the URL for its size. Cancelling the awaiting task aborts the request."""
        if self._prober is None:
            return None
        return await self._prober.probe(
            url, self._probe_timeout if timeout is None else timeout,
        )

    def build(self, url: str, fee: int, max_size: int) -> PinRequest:
        """Encode ``["IPBC", "PIN", url]`` and form the payment instruction.

        Raises ValidationError if the URL cannot be carried.
        """
        check = validate_url(url)
        if not check.ok:
            raise ValidationError(check.reason, check.message)

        encoded = encode(pin_message(url))
        # The wallet adds the OP_RETURN marker itself
        pay_instruction = (
            f"{self._deposit_address}?amount={format_amount(fee)}"
            f"&op_return_raw={encoded[1:].hex()}"
        )
        log.info("Built pin request for %s (fee %d sats)", url[:60], fee)
        return PinRequest(
            url=url,
            fee_sats=fee,
            encoded_bytes=encoded,
            pay_instruction=pay_instruction,
            deposit_address=self._deposit_address,
        )

    async def prepare(self, url: str, params: ServiceParams) -> PinRequest:
        """Validate, probe the remote size, then build.

        A remote size over the service limit blocks the request. A server
        that does not report a size is given the benefit of the doubt.
        """
        check = validate_url(url)
        if not check.ok:
            raise ValidationError(check.reason, check.message)

        remote_size = await self.probe_remote_size(url)
        if remote_size is not None:
            size_check = validate_size(remote_size, params.max_size, remote=True)
            if not size_check.ok:
                raise ValidationError(size_check.reason, size_check.message)

        return self.build(url, params.fee, params.max_size)
