"""Refresh-then-poll reconciliation of the available-balance read path.

The service recomputes balances in the background after a mutation, so a
read right after a deposit or swap may still show the old value. The
coordinator triggers the recompute, takes a baseline read and re-reads at a
fixed interval until something changes or the attempt budget runs out.
Running out is not an error: the balance was already current, or the UI
shows stale-but-safe data until the next refresh.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .config import PollConfig
from .errors import RemoteCallError, StaleResult, StablePairError, TransportFailure
from .metadata import TokenMetadataCache
from .models import Asset, AvailableBalance
from .sequencer import BALANCE_CHANNEL, RequestSequencer, Ticket
from .units import from_fixed_point

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class PollPhase(Enum):
    IDLE = "idle"
    TRIGGERED = "triggered"
    OBSERVING = "observing"
    SETTLED = "settled"


@dataclass
class PollState:
    phase: PollPhase = PollPhase.IDLE
    attempt: int = 0
    last: Optional[AvailableBalance] = None
    changed: bool = False


@dataclass(frozen=True)
class PollOutcome:
    balance: AvailableBalance
    attempts: int
    changed: bool


class BalancePoller:
    def __init__(
        self,
        service,
        metadata: TokenMetadataCache,
        sequencer: RequestSequencer,
        config: PollConfig,
        sleep: Sleep = asyncio.sleep,
        channel: str = BALANCE_CHANNEL,
    ) -> None:
        self.service = service
        self.metadata = metadata
        self.sequencer = sequencer
        self.config = config
        self.sleep = sleep
        self.channel = channel
        self.balances = AvailableBalance()
        self.observed = False
        self.state = PollState()

    async def read_balance(self, user: str) -> AvailableBalance:
        raw = await self.service.get_available_balances_live_for(user)
        if not isinstance(raw, dict):
            raise RemoteCallError("get_available_balances_live_for", "balance response is not an object")
        meta = await self.metadata.get()
        return AvailableBalance(
            usdc=from_fixed_point(int(raw.get("usdc") or 0), meta.decimals_for(Asset.USDC)),
            usdt=from_fixed_point(int(raw.get("usdt") or 0), meta.decimals_for(Asset.USDT)),
        )

    async def refresh_and_observe(
        self,
        user: str,
        tries: Optional[int] = None,
        interval_ms: Optional[int] = None,
    ) -> Optional[PollOutcome]:
        """Trigger a recompute for ``user`` and poll until the balance moves.

        Returns ``None`` if a newer refresh on the same channel was issued
        while this one was in flight; the visible balance is then left to
        the newer refresh.
        """
        cfg = self.config
        tries = max(cfg.min_tries, cfg.tries if tries is None else tries)
        interval_ms = max(cfg.min_interval_ms, cfg.interval_ms if interval_ms is None else interval_ms)

        ticket = self.sequencer.ticket(self.channel)
        state = PollState()
        self.state = state
        try:
            outcome = await self._observe(ticket, state, user, tries, interval_ms)
        except StaleResult:
            logger.debug("Dropping superseded balance poll for %s (token %d)", user, ticket.token)
            return None

        self.balances = outcome.balance
        self.observed = True
        logger.info(
            "Balance poll for %s settled after %d reads (changed=%s)",
            user,
            outcome.attempts,
            outcome.changed,
        )
        return outcome

    async def _observe(self, ticket: Ticket, state: PollState, user: str, tries: int, interval_ms: int) -> PollOutcome:
        state.phase = PollPhase.TRIGGERED
        try:
            await self.service.refresh_available_for(user)
        except StablePairError as exc:
            logger.warning("Balance recompute trigger failed for %s: %s", user, exc)
        ticket.ensure_current()

        state.phase = PollPhase.OBSERVING
        state.last = await self._read_or(user, self.balances)
        state.attempt = 1
        ticket.ensure_current()

        for attempt in range(2, tries + 1):
            await self.sleep(interval_ms / 1000)
            ticket.ensure_current()
            current = await self._read_or(user, state.last)
            ticket.ensure_current()
            state.attempt = attempt
            if current != state.last:
                state.last = current
                state.changed = True
                break

        state.phase = PollPhase.SETTLED
        return PollOutcome(balance=state.last, attempts=state.attempt, changed=state.changed)

    async def _read_or(self, user: str, fallback: AvailableBalance) -> AvailableBalance:
        try:
            return await self.read_balance(user)
        except (TransportFailure, RemoteCallError, ValueError, TypeError) as exc:
            logger.warning("Balance read failed for %s, keeping last value: %s", user, exc)
            return fallback
