"""Swap estimation on top of the forward-only pricing call.

The service can price ``amount_in -> amount_out`` but has no inverse, so an
exact-output swap is found by seeding from the marginal price and then
rescaling the input by ``target / observed`` a small, bounded number of
times. Every probe is a network round-trip, which is why the iteration
budget is tiny; the server-side minimum-output check is the real guard.
"""

import logging
from decimal import Decimal
from typing import Optional

from .config import SolverConfig
from .errors import OracleError, StaleResult
from .models import Asset, Quote, SwapEstimate, is_supported_pair
from .oracle import QuoteOracle
from .sequencer import QUOTE_CHANNEL, RequestSequencer, Ticket
from .units import ZERO, Number, as_amount

logger = logging.getLogger(__name__)

ONE = Decimal(1)
MIN_SLIPPAGE_PCT = Decimal("0.05")


def require_pair(asset_in: Asset, asset_out: Asset) -> None:
    if not is_supported_pair(asset_in, asset_out):
        raise ValueError(f"unsupported pair {asset_in.display_name} -> {asset_out.display_name}")


def min_amount_out(amount_out: Number, slippage_pct: Number) -> Decimal:
    slippage = max(MIN_SLIPPAGE_PCT, as_amount(slippage_pct))
    return max(ZERO, as_amount(amount_out) * (ONE - slippage / Decimal(100)))


def _clamp(value: Decimal, low: Decimal, high: Optional[Decimal]) -> Decimal:
    if high is not None and value > high:
        value = high
    return max(low, value)


class SwapSolver:
    """Exact-in and exact-out estimates sharing one sequenced channel.

    ``current`` holds the estimate of the most recently issued request that
    completed; superseded requests return ``None`` and leave it untouched.
    """

    def __init__(
        self,
        oracle: QuoteOracle,
        sequencer: RequestSequencer,
        config: SolverConfig,
        channel: str = QUOTE_CHANNEL,
    ) -> None:
        self.oracle = oracle
        self.sequencer = sequencer
        self.config = config
        self.channel = channel
        self.current: Optional[SwapEstimate] = None

    def tolerance_for(self, target: Decimal) -> Decimal:
        return max(self.config.abs_tolerance, target * self.config.rel_tolerance)

    async def solve_exact_input(self, asset_in: Asset, asset_out: Asset, amount_in: Number) -> Optional[SwapEstimate]:
        require_pair(asset_in, asset_out)
        ticket = self.sequencer.ticket(self.channel)
        amount = as_amount(amount_in)
        if amount <= 0:
            return self._commit(ticket, SwapEstimate.zero(asset_in, asset_out))

        try:
            quote = await self.oracle.quote_forward(asset_in, asset_out, amount)
        except OracleError:
            if not ticket.is_current():
                logger.debug("Dropping failed exact-in quote superseded on %s", self.channel)
                return None
            raise
        estimate = SwapEstimate(asset_in=asset_in, asset_out=asset_out, amount_in=amount, quote=quote)
        return self._commit(ticket, estimate)

    async def solve_exact_output(
        self,
        asset_in: Asset,
        asset_out: Asset,
        target_out: Number,
        max_in: Optional[Number] = None,
    ) -> Optional[SwapEstimate]:
        """Find the input whose forward quote lands on ``target_out``.

        ``max_in`` is the spendable balance of ``asset_in``; ``None`` leaves
        the search unbounded. Returns ``None`` when a newer request on the
        channel superseded this one.
        """
        require_pair(asset_in, asset_out)
        ticket = self.sequencer.ticket(self.channel)
        target = as_amount(target_out)
        bound = None if max_in is None else as_amount(max_in)

        if target <= 0 or (bound is not None and bound <= 0):
            return self._commit(ticket, SwapEstimate.zero(asset_in, asset_out))

        try:
            estimate = await self._solve(ticket, asset_in, asset_out, target, bound)
        except StaleResult:
            logger.debug("Dropping superseded exact-out solve on %s (token %d)", self.channel, ticket.token)
            return None
        except OracleError:
            if not ticket.is_current():
                logger.debug("Dropping failed exact-out solve superseded on %s", self.channel)
                return None
            raise
        return self._commit(ticket, estimate)

    async def _solve(
        self,
        ticket: Ticket,
        asset_in: Asset,
        asset_out: Asset,
        target: Decimal,
        bound: Optional[Decimal],
    ) -> SwapEstimate:
        cfg = self.config
        tolerance = self.tolerance_for(target)

        guess = await self._seed(ticket, asset_in, asset_out, target)
        guess = _clamp(guess, cfg.min_input, bound)

        iterations = 0
        for _ in range(cfg.max_refinements):
            quote = await self.oracle.quote_forward(asset_in, asset_out, guess)
            ticket.ensure_current()
            iterations += 1
            if quote.amount_out <= 0:
                break
            if abs(quote.amount_out - target) <= tolerance:
                break
            ratio = _clamp(target / quote.amount_out, cfg.ratio_floor, cfg.ratio_ceiling)
            guess = _clamp(guess * ratio, cfg.min_input, bound)
            logger.debug("Refinement %d: out=%s ratio=%s next=%s", iterations, quote.amount_out, ratio, guess)

        final = await self.oracle.quote_forward(asset_in, asset_out, guess)
        ticket.ensure_current()

        converged = abs(final.amount_out - target) <= tolerance
        bound_limited = bound is not None and guess >= bound
        if not converged and not bound_limited:
            logger.warning(
                "Exact-out solve stopped after %d refinements: target=%s got=%s",
                iterations,
                target,
                final.amount_out,
            )
        return SwapEstimate(
            asset_in=asset_in,
            asset_out=asset_out,
            amount_in=guess,
            quote=final,
            converged=converged,
            bound_limited=bound_limited,
            iterations=iterations,
        )

    async def _seed(self, ticket: Ticket, asset_in: Asset, asset_out: Asset, target: Decimal) -> Decimal:
        try:
            probe: Quote = await self.oracle.quote_forward(asset_in, asset_out, ONE)
        except OracleError as exc:
            ticket.ensure_current()
            logger.debug("Unit probe failed, seeding with the target: %s", exc)
            return target
        ticket.ensure_current()
        price = probe.amount_out if probe.amount_out > 0 else probe.price
        if price <= 0:
            return target
        # fee on a unit input approximates the fee rate
        fee_rate = max(ZERO, probe.fee)
        return target / price * (ONE + fee_rate) * self.config.seed_inflation

    def _commit(self, ticket: Ticket, estimate: SwapEstimate) -> Optional[SwapEstimate]:
        if not ticket.is_current():
            return None
        self.current = estimate
        return estimate
