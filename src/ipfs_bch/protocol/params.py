"""Service parameter discovery from the mutable parameter NFT."""

from __future__ import annotations

import logging
from typing import Iterable

from ipfs_bch.interfaces.tokens import TokenSource
from ipfs_bch.models.records import ServiceParams, TokenUtxo

log = logging.getLogger(__name__)

MUTABLE = "mutable"

# Commitment as reported by the indexer: hex of two uint32 LE values
# (fee in satoshis, max size in bytes).
COMMITMENT_HEX_LENGTH = 16


def resolve(holdings: Iterable[TokenUtxo]) -> ServiceParams | None:
    """Read {fee, max_size} from the first mutable NFT in ``holdings``.

    Returns None when there is no mutable holding or its commitment has the
    wrong shape; callers keep their previous values in that case.
    """
    mutable = [h for h in holdings if h.capability == MUTABLE]
    if not mutable:
        return None

    commitment = mutable[0].commitment
    if not commitment or len(commitment) != COMMITMENT_HEX_LENGTH:
        return None
    try:
        raw = bytes.fromhex(commitment)
    except ValueError:
        return None

    return ServiceParams(
        fee=int.from_bytes(raw[0:4], "little"),
        max_size=int.from_bytes(raw[4:8], "little"),
    )


class ParameterResolver:
    """Keeps the last known service parameters, refreshed from the chain."""

    def __init__(
        self,
        source: TokenSource,
        address: str,
        token_id: str,
        initial: ServiceParams | None = None,
    ) -> None:
        self._source = source
        self._address = address
        self._token_id = token_id
        self._params = initial or ServiceParams()

    @property
    def params(self) -> ServiceParams:
        return self._params

    async def refresh(self) -> ServiceParams:
        """Query the token holdings and adopt any new parameters."""
        holdings = await self._source.get_token_utxos(self._address, self._token_id)
        resolved = resolve(holdings)
        if resolved is None:
            log.warning(
                "No usable parameter commitment for token %s, keeping fee=%d max_size=%d",
                self._token_id[:16], self._params.fee, self._params.max_size,
            )
            return self._params

        if resolved != self._params:
            log.info(
                "Service parameters: fee=%d sats, max_size=%d bytes",
                resolved.fee, resolved.max_size,
            )
        self._params = resolved
        return resolved
