from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Union

from .units import ZERO


class Asset(str, Enum):
    USDC = "USDC"
    USDT = "USDT"

    @property
    def display_name(self) -> str:
        return TOKEN_DISPLAY_NAMES[self]

    @property
    def balance_key(self) -> str:
        return self.value.lower()

    def variant(self) -> Dict[str, None]:
        """Tagged-variant wire encoding, e.g. ``{"USDC": None}``."""
        return {self.value: None}

    @classmethod
    def parse(cls, value: object) -> Optional["Asset"]:
        """Accept a tagged variant, a wire tag or a display name."""
        if isinstance(value, dict):
            tags = [tag for tag in value if tag in cls.__members__]
            return cls[tags[0]] if len(tags) == 1 else None
        if isinstance(value, str):
            if value in cls.__members__:
                return cls[value]
            for asset, name in TOKEN_DISPLAY_NAMES.items():
                if value == name:
                    return asset
        return None


TOKEN_DISPLAY_NAMES: Dict[Asset, str] = {
    Asset.USDC: "ckUSDC",
    Asset.USDT: "ckUSDT",
}


def is_supported_pair(asset_in: Asset, asset_out: Asset) -> bool:
    return {asset_in, asset_out} == {Asset.USDC, Asset.USDT}


@dataclass(frozen=True)
class Quote:
    amount_out: Decimal
    fee: Decimal
    price: Decimal


@dataclass(frozen=True)
class SwapEstimate:
    asset_in: Asset
    asset_out: Asset
    amount_in: Decimal
    quote: Quote
    converged: bool = True
    bound_limited: bool = False
    iterations: int = 0

    @property
    def amount_out(self) -> Decimal:
        return self.quote.amount_out

    @classmethod
    def zero(cls, asset_in: Asset, asset_out: Asset) -> "SwapEstimate":
        return cls(
            asset_in=asset_in,
            asset_out=asset_out,
            amount_in=ZERO,
            quote=Quote(amount_out=ZERO, fee=ZERO, price=ZERO),
        )


@dataclass(frozen=True)
class PairAmounts:
    usdc: Decimal = ZERO
    usdt: Decimal = ZERO

    def get(self, asset: Asset) -> Decimal:
        return self.usdc if asset is Asset.USDC else self.usdt


@dataclass(frozen=True)
class AvailableBalance(PairAmounts):
    pass


@dataclass(frozen=True)
class TokenMeta:
    usdc_ledger: str
    usdt_ledger: str
    usdc_decimals: int
    usdt_decimals: int

    def decimals_for(self, asset: Asset) -> int:
        return self.usdc_decimals if asset is Asset.USDC else self.usdt_decimals


@dataclass(frozen=True)
class PoolInfo:
    amp: int
    fee_bps: int
    reserve_usdc: Decimal
    reserve_usdt: Decimal
    total_shares: Decimal
    virtual_price: Decimal

    @property
    def tvl(self) -> Decimal:
        return self.reserve_usdc + self.reserve_usdt


@dataclass(frozen=True)
class StatsSnapshot:
    now_sec: int
    tvl: Decimal
    volume_24h: Decimal
    volume_7d: Decimal
    fee_24h: Decimal
    fee_7d: Decimal
    swaps_24h: int
    apy_24h_pct: Decimal


@dataclass(frozen=True)
class SwapEvent:
    actor: str
    timestamp_ms: int
    amount_in: Decimal
    amount_out: Decimal
    kind: str = field(default="Swap", init=False)


@dataclass(frozen=True)
class AddLiquidityEvent:
    actor: str
    timestamp_ms: int
    usdc: Decimal
    usdt: Decimal
    shares: Decimal
    kind: str = field(default="AddLiquidity", init=False)


@dataclass(frozen=True)
class RemoveLiquidityEvent:
    actor: str
    timestamp_ms: int
    usdc: Decimal
    usdt: Decimal
    shares: Decimal
    kind: str = field(default="RemoveLiquidity", init=False)


@dataclass(frozen=True)
class DepositEvent:
    actor: str
    timestamp_ms: int
    asset: Asset
    amount: Decimal
    kind: str = field(default="Deposit", init=False)


@dataclass(frozen=True)
class WithdrawEvent:
    actor: str
    timestamp_ms: int
    asset: Asset
    amount: Decimal
    kind: str = field(default="Withdraw", init=False)


@dataclass(frozen=True)
class ClaimFeeEvent:
    actor: str
    timestamp_ms: int
    usdc: Decimal
    usdt: Decimal
    kind: str = field(default="ClaimFee", init=False)


CanonicalEvent = Union[
    SwapEvent,
    AddLiquidityEvent,
    RemoveLiquidityEvent,
    DepositEvent,
    WithdrawEvent,
    ClaimFeeEvent,
]


@dataclass(frozen=True)
class ActivityPage:
    events: List[CanonicalEvent]
    cursor: int
    has_more: bool
