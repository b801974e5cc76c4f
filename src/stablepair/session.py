import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from .activity import ActivityPager
from .config import ClientConfig
from .errors import RemoteCallError
from .http_client import HttpClient
from .metadata import TokenMetadataCache
from .models import (
    ActivityPage,
    Asset,
    AvailableBalance,
    CanonicalEvent,
    PairAmounts,
    PoolInfo,
    StatsSnapshot,
    SwapEstimate,
)
from .oracle import QuoteOracle
from .poller import BalancePoller, PollOutcome, Sleep
from .sequencer import RequestSequencer
from .service import PoolServiceClient
from .solver import SwapSolver, min_amount_out, require_pair
from .units import Number, ZERO, as_amount, from_e6, from_fixed_point, to_e6

logger = logging.getLogger(__name__)

BALANCE_EPSILON = Decimal("1e-12")


def _pair_amounts(raw: Any) -> PairAmounts:
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return PairAmounts(usdc=from_e6(int(raw[0])), usdt=from_e6(int(raw[1])))
    if isinstance(raw, dict):
        return PairAmounts(usdc=from_e6(int(raw.get("usdc") or 0)), usdt=from_e6(int(raw.get("usdt") or 0)))
    raise ValueError(f"unexpected amounts payload: {raw!r}")


def _record(method: str, raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise RemoteCallError(method, f"expected a record, got {type(raw).__name__}")
    return raw


STATS_FIELDS = (
    "now_sec",
    "tvl_e6",
    "vol_24h_e6",
    "vol_7d_e6",
    "fee_24h_e6",
    "fee_7d_e6",
    "swaps_24h",
    "apy_24h_bp",
)


def parse_stats_snapshot(raw: Any) -> StatsSnapshot:
    """Decode a stats record, either keyed by field name or positional."""
    if isinstance(raw, dict) and "now_sec" in raw:
        values = {name: raw.get(name) for name in STATS_FIELDS}
    elif isinstance(raw, (dict, list, tuple)):
        positional = list(raw.values()) if isinstance(raw, dict) else list(raw)
        values = dict(zip(STATS_FIELDS, positional))
    else:
        raise RemoteCallError("get_stats_snapshot", f"unexpected stats payload: {raw!r}")

    def count(name: str) -> int:
        return int(values.get(name) or 0)

    return StatsSnapshot(
        now_sec=count("now_sec"),
        tvl=from_e6(count("tvl_e6")),
        volume_24h=from_e6(count("vol_24h_e6")),
        volume_7d=from_e6(count("vol_7d_e6")),
        fee_24h=from_e6(count("fee_24h_e6")),
        fee_7d=from_e6(count("fee_7d_e6")),
        swaps_24h=count("swaps_24h"),
        apy_24h_pct=Decimal(count("apy_24h_bp")) / 100,
    )


class StablePairSession:
    """Everything one user session needs, wired once and shared explicitly.

    Owns the transport, the metadata cache, the sequencer and the visible
    state slices (current estimate, balances, activity feed).
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        service=None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config or ClientConfig()
        self.http: Optional[HttpClient] = None
        if service is None:
            self.http = HttpClient(
                timeout=self.config.service.request_timeout,
                user_agent=self.config.service.user_agent,
            )
            service = PoolServiceClient(self.http, self.config.service.base_url)
        self.service = service
        self.sequencer = RequestSequencer()
        self.metadata = TokenMetadataCache(service, ttl_seconds=self.config.metadata_ttl_seconds, clock=clock)
        self.oracle = QuoteOracle(service)
        self.solver = SwapSolver(self.oracle, self.sequencer, self.config.solver)
        self.poller = BalancePoller(service, self.metadata, self.sequencer, self.config.poll, sleep=sleep)
        self.activity = ActivityPager(service, self.config.activity, self.sequencer)

    async def __aenter__(self) -> "StablePairSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self.http is not None:
            await self.http.aclose()

    @property
    def balances(self) -> AvailableBalance:
        return self.poller.balances

    # Quotes

    async def solve_exact_input(self, asset_in: Asset, asset_out: Asset, amount_in: Number) -> Optional[SwapEstimate]:
        return await self.solver.solve_exact_input(asset_in, asset_out, amount_in)

    async def solve_exact_output(
        self,
        asset_in: Asset,
        asset_out: Asset,
        target_out: Number,
        max_in: Optional[Number] = None,
    ) -> Optional[SwapEstimate]:
        # an unobserved balance leaves the solve unbounded
        if max_in is None and self.poller.observed:
            max_in = self.balances.get(asset_in)
        return await self.solver.solve_exact_output(asset_in, asset_out, target_out, max_in)

    # Balances

    async def refresh_and_observe(
        self, user: str, tries: Optional[int] = None, interval_ms: Optional[int] = None
    ) -> Optional[PollOutcome]:
        return await self.poller.refresh_and_observe(user, tries=tries, interval_ms=interval_ms)

    # Activity

    async def load_first_page(self, page_size: Optional[int] = None) -> Optional[ActivityPage]:
        return await self.activity.load_first(page_size)

    async def load_more_page(self, cursor: Optional[int] = None, page_size: Optional[int] = None) -> Optional[ActivityPage]:
        return await self.activity.load_more(cursor, page_size)

    async def load_latest(self, limit: Optional[int] = None) -> List[CanonicalEvent]:
        return await self.activity.load_latest(limit)

    # Pool state

    async def pool_info(self) -> PoolInfo:
        raw = _record("get_pool_info", await self.service.get_pool_info())
        return PoolInfo(
            amp=int(raw.get("a_amp", 0)),
            fee_bps=int(raw.get("fee_bps", 0)),
            reserve_usdc=from_e6(int(raw.get("reserve_usdc", 0))),
            reserve_usdt=from_e6(int(raw.get("reserve_usdt", 0))),
            total_shares=from_e6(int(raw.get("total_shares", 0))),
            virtual_price=from_e6(int(raw.get("virtual_price_e6", 0))),
        )

    async def pool_reserves(self) -> PairAmounts:
        raw = _record("get_pool_reserves_live", await self.service.get_pool_reserves_live())
        meta = await self.metadata.get()
        return PairAmounts(
            usdc=from_fixed_point(int(raw.get("usdc") or 0), meta.decimals_for(Asset.USDC)),
            usdt=from_fixed_point(int(raw.get("usdt") or 0), meta.decimals_for(Asset.USDT)),
        )

    async def pool_stats(self) -> StatsSnapshot:
        return parse_stats_snapshot(await self.service.get_stats_snapshot())

    # Liquidity position

    async def user_position(self, user: str) -> Decimal:
        """LP shares held by ``user``, in natural units."""
        raw = await self.service.get_user_position(user)
        shares = raw.get("shares") if isinstance(raw, dict) else raw
        if isinstance(shares, (bool, float, list)):
            raise RemoteCallError("get_user_position", f"unexpected position payload: {raw!r}")
        return from_e6(int(shares or 0))

    async def unclaimed_fee(self, user: str) -> PairAmounts:
        raw = _record("get_unclaimed_fee", await self.service.get_unclaimed_fee(user))
        return _pair_amounts(raw)

    # Mutations: failures always propagate and are never retried.

    async def submit_swap(self, user: str, estimate: SwapEstimate, slippage_pct: Optional[Number] = None) -> Decimal:
        require_pair(estimate.asset_in, estimate.asset_out)
        if estimate.amount_in <= 0 or estimate.amount_out <= 0:
            raise ValueError("swap amounts must be positive")
        available = self.balances.get(estimate.asset_in)
        if estimate.amount_in > available + BALANCE_EPSILON:
            raise ValueError(
                f"insufficient {estimate.asset_in.display_name} balance: available {available}"
            )

        slippage = self.config.default_slippage_pct if slippage_pct is None else slippage_pct
        min_out = min_amount_out(estimate.amount_out, slippage)
        result = await self.service.swap_live(
            user,
            estimate.asset_in,
            estimate.asset_out,
            to_e6(estimate.amount_in),
            to_e6(min_out),
        )
        amount_out = from_e6(int(result.get("dy_e6", 0))) if isinstance(result, dict) else ZERO
        logger.info(
            "Swapped %s %s for %s %s (min %s)",
            estimate.amount_in,
            estimate.asset_in.display_name,
            amount_out,
            estimate.asset_out.display_name,
            min_out,
        )
        await self.refresh_and_observe(user)
        return amount_out

    async def add_liquidity(self, user: str, usdc: Number, usdt: Number) -> Decimal:
        usdc_amount, usdt_amount = as_amount(usdc), as_amount(usdt)
        if usdc_amount <= 0 and usdt_amount <= 0:
            raise ValueError("liquidity amounts must be positive")
        result = await self.service.add_liquidity(user, to_e6(usdc_amount), to_e6(usdt_amount))
        shares_raw = result.get("shares", 0) if isinstance(result, dict) else result
        shares = from_e6(int(shares_raw or 0))
        await self.refresh_and_observe(user)
        return shares

    async def remove_liquidity(self, user: str, shares: Number) -> PairAmounts:
        share_amount = as_amount(shares)
        if share_amount <= 0:
            raise ValueError("shares must be positive")
        amounts = _pair_amounts(await self.service.remove_liquidity(user, to_e6(share_amount)))
        await self.refresh_and_observe(user)
        return amounts

    async def claim_fee(self, user: str) -> PairAmounts:
        amounts = _pair_amounts(await self.service.claim_fee(user))
        await self.refresh_and_observe(user)
        return amounts
