import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .models import Asset, TokenMeta

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 6


@dataclass(frozen=True)
class CacheEntry:
    value: TokenMeta
    fetched_at: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.fetched_at <= ttl_seconds


def _decimals(value: Any) -> int:
    return DEFAULT_DECIMALS if value is None else int(value)


def parse_token_meta(raw: Optional[Dict[str, Any]]) -> Optional[TokenMeta]:
    if not raw:
        return None
    return TokenMeta(
        usdc_ledger=str(raw.get("ckusdc", "")),
        usdt_ledger=str(raw.get("ckusdt", "")),
        usdc_decimals=_decimals(raw.get("dec_usdc")),
        usdt_decimals=_decimals(raw.get("dec_usdt")),
    )


class TokenMetadataCache:
    """Per-session token metadata with a freshness window.

    Decimals are owned by the service; until it publishes metadata the
    common six-decimal layout of the ck-stablecoins is assumed.
    """

    def __init__(self, service, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.service = service
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entry: Optional[CacheEntry] = None

    async def get(self) -> TokenMeta:
        now = self.clock()
        if self._entry is not None and self._entry.is_fresh(now, self.ttl_seconds):
            return self._entry.value

        meta = parse_token_meta(await self.service.get_token_meta())
        if meta is None:
            logger.warning("Service has no token metadata; assuming %d decimals", DEFAULT_DECIMALS)
            meta = TokenMeta(
                usdc_ledger="",
                usdt_ledger="",
                usdc_decimals=DEFAULT_DECIMALS,
                usdt_decimals=DEFAULT_DECIMALS,
            )
        self._entry = CacheEntry(value=meta, fetched_at=now)
        return meta

    async def decimals_for(self, asset: Asset) -> int:
        meta = await self.get()
        return meta.decimals_for(asset)

    def invalidate(self) -> None:
        self._entry = None
