"""Activity feed: strict event parsing and cursor pagination.

The service log mixes two encodings: flat records carrying a ``kind`` field
with natural amounts, and tagged variants (``{"Swap": {...}}``) with
six-decimal fixed-point amounts. Timestamps arrive in seconds, milliseconds,
microseconds or nanoseconds. Everything is parsed into one immutable event
model with millisecond timestamps; records that match no known shape become
a :class:`~stablepair.errors.NormalizationSkip` and are dropped.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from .config import ActivityConfig
from .errors import NormalizationSkip, StaleResult
from .models import (
    ActivityPage,
    AddLiquidityEvent,
    Asset,
    CanonicalEvent,
    ClaimFeeEvent,
    DepositEvent,
    RemoveLiquidityEvent,
    SwapEvent,
    WithdrawEvent,
)
from .sequencer import ACTIVITY_CHANNEL, RequestSequencer, Ticket
from .units import from_e6

logger = logging.getLogger(__name__)

NANOS_THRESHOLD = Decimal("1e18")
MICROS_THRESHOLD = Decimal("1e15")
MILLIS_THRESHOLD = Decimal("1e12")

ParseResult = Union[CanonicalEvent, NormalizationSkip]


def normalize_timestamp_ms(raw: Any) -> int:
    """Infer the unit of ``raw`` from its magnitude and convert to ms."""
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return 0
    if not value.is_finite() or value <= 0:
        return 0
    if value >= NANOS_THRESHOLD:
        return int(value // 1_000_000)
    if value >= MICROS_THRESHOLD:
        return int(value // 1_000)
    if value >= MILLIS_THRESHOLD:
        return int(value)
    return int(value * 1000)


def _natural(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not an amount: {value!r}")
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise ValueError(f"not an amount: {value!r}")
    return amount


def _fixed(value: Any) -> Decimal:
    if isinstance(value, (bool, float)) or value is None:
        raise ValueError(f"not a fixed-point amount: {value!r}")
    return from_e6(int(value))


def _asset(value: Any) -> Asset:
    asset = Asset.parse(value)
    if asset is None:
        raise ValueError(f"unknown token {value!r}")
    return asset


def _common(record: Mapping[str, Any]) -> Tuple[str, int]:
    return str(record["who"]), normalize_timestamp_ms(record["ts"])


def _swap(record: Mapping[str, Any], amount: Callable[[Any], Decimal], tagged: bool) -> CanonicalEvent:
    actor, ts = _common(record)
    if tagged:
        return SwapEvent(actor, ts, amount(record["dx_e6"]), amount(record["dy_e6"]))
    return SwapEvent(actor, ts, amount(record["dx"]), amount(record["dy"]))


def _add_liquidity(record: Mapping[str, Any], amount: Callable[[Any], Decimal], tagged: bool) -> CanonicalEvent:
    actor, ts = _common(record)
    return AddLiquidityEvent(actor, ts, amount(record["usdc"]), amount(record["usdt"]), amount(record["shares"]))


def _remove_liquidity(record: Mapping[str, Any], amount: Callable[[Any], Decimal], tagged: bool) -> CanonicalEvent:
    actor, ts = _common(record)
    return RemoveLiquidityEvent(actor, ts, amount(record["usdc"]), amount(record["usdt"]), amount(record["shares"]))


def _deposit(record: Mapping[str, Any], amount: Callable[[Any], Decimal], tagged: bool) -> CanonicalEvent:
    actor, ts = _common(record)
    return DepositEvent(actor, ts, _asset(record["token"]), amount(record["amount"]))


def _withdraw(record: Mapping[str, Any], amount: Callable[[Any], Decimal], tagged: bool) -> CanonicalEvent:
    actor, ts = _common(record)
    return WithdrawEvent(actor, ts, _asset(record["token"]), amount(record["amount"]))


def _claim_fee(record: Mapping[str, Any], amount: Callable[[Any], Decimal], tagged: bool) -> CanonicalEvent:
    actor, ts = _common(record)
    if tagged:
        return ClaimFeeEvent(actor, ts, amount(record["usdc_e6"]), amount(record["usdt_e6"]))
    return ClaimFeeEvent(actor, ts, amount(record["usdc"]), amount(record["usdt"]))


EVENT_BUILDERS: Dict[str, Callable[[Mapping[str, Any], Callable[[Any], Decimal], bool], CanonicalEvent]] = {
    "Swap": _swap,
    "AddLiq": _add_liquidity,
    "RemoveLiq": _remove_liquidity,
    "Deposit": _deposit,
    "Withdraw": _withdraw,
    "ClaimFee": _claim_fee,
}


def parse_event(raw: Any) -> ParseResult:
    if not isinstance(raw, dict) or not raw:
        return NormalizationSkip("record is not an object", raw)

    if "kind" in raw:
        tag, body, amount, tagged = raw["kind"], raw, _natural, False
    else:
        tags = [key for key in raw if key in EVENT_BUILDERS]
        if len(raw) != 1 or len(tags) != 1:
            return NormalizationSkip("record matches no event variant", raw)
        tag = tags[0]
        body, amount, tagged = raw[tag], _fixed, True

    builder = EVENT_BUILDERS.get(tag) if isinstance(tag, str) else None
    if builder is None:
        return NormalizationSkip(f"unknown event kind {tag!r}", raw)
    if not isinstance(body, dict):
        return NormalizationSkip(f"{tag} payload is not an object", raw)
    try:
        return builder(body, amount, tagged)
    except KeyError as exc:
        return NormalizationSkip(f"{tag} record missing {exc.args[0]}", raw)
    except (TypeError, ValueError, InvalidOperation) as exc:
        return NormalizationSkip(f"{tag} record has bad field: {exc}", raw)


def normalize_events(records: Sequence[Any], cutoff_ms: int, first_index: int = 0) -> List[Tuple[int, CanonicalEvent]]:
    """Parse ``records`` into ``(raw_index, event)`` pairs, newest first."""
    events: List[Tuple[int, CanonicalEvent]] = []
    for offset, raw in enumerate(records):
        parsed = parse_event(raw)
        if isinstance(parsed, NormalizationSkip):
            logger.warning("Skipping activity record %d: %s", first_index + offset, parsed.reason)
            continue
        if parsed.timestamp_ms < cutoff_ms:
            continue
        events.append((first_index + offset, parsed))
    events.sort(key=lambda item: (item[1].timestamp_ms, item[0]), reverse=True)
    return events


class ActivityPager:
    """Cursor pagination over the service event log for one session.

    ``events`` accumulates everything loaded since the last ``load_first``,
    newest first. ``has_more`` only says the last raw batch was full.
    """

    def __init__(self, service, config: ActivityConfig, sequencer: Optional[RequestSequencer] = None) -> None:
        self.service = service
        self.config = config
        self.sequencer = sequencer or RequestSequencer()
        self.events: List[CanonicalEvent] = []
        self.cursor = 0
        self.has_more = True
        self._indexed: List[Tuple[int, CanonicalEvent]] = []
        self._seen: Set[int] = set()

    async def load_first(self, page_size: Optional[int] = None) -> Optional[ActivityPage]:
        ticket = self.sequencer.ticket(ACTIVITY_CHANNEL)
        try:
            page, indexed, raw_count = await self._fetch(ticket, 0, page_size)
        except StaleResult:
            return None
        self._indexed, self._seen = [], set()
        self._merge(indexed)
        self.cursor = raw_count
        self.has_more = page.has_more
        return page

    async def load_more(self, cursor: Optional[int] = None, page_size: Optional[int] = None) -> Optional[ActivityPage]:
        start = self.cursor if cursor is None else cursor
        ticket = self.sequencer.ticket(ACTIVITY_CHANNEL)
        try:
            page, indexed, raw_count = await self._fetch(ticket, start, page_size)
        except StaleResult:
            return None
        self._merge(indexed)
        self.cursor = start + raw_count
        self.has_more = page.has_more
        return page

    async def load_latest(self, limit: Optional[int] = None) -> List[CanonicalEvent]:
        limit = limit or self.config.page_size
        records = await self.service.get_events_latest(limit)
        return [event for _, event in normalize_events(records, self.config.cutoff_ms)]

    async def _fetch(
        self, ticket: Ticket, cursor: int, page_size: Optional[int]
    ) -> Tuple[ActivityPage, List[Tuple[int, CanonicalEvent]], int]:
        size = page_size or self.config.page_size
        records = await self.service.get_events(cursor, size)
        ticket.ensure_current()
        indexed = normalize_events(records, self.config.cutoff_ms, first_index=cursor)
        page = ActivityPage(
            events=[event for _, event in indexed],
            cursor=cursor + len(records),
            has_more=len(records) == size,
        )
        logger.info("Loaded activity page at %d: %d records, %d shown", cursor, len(records), len(page.events))
        return page, indexed, len(records)

    def _merge(self, indexed: List[Tuple[int, CanonicalEvent]]) -> None:
        fresh = [item for item in indexed if item[0] not in self._seen]
        self._seen.update(index for index, _ in fresh)
        self._indexed.extend(fresh)
        self._indexed.sort(key=lambda item: (item[1].timestamp_ms, item[0]), reverse=True)
        self.events = [event for _, event in self._indexed]
