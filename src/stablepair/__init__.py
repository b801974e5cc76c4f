from .activity import ActivityPager, normalize_timestamp_ms, parse_event
from .config import ClientConfig, PollConfig, SolverConfig, load_config
from .errors import NormalizationSkip, OracleError, RemoteCallError, StablePairError, StaleResult, TransportFailure
from .models import ActivityPage, Asset, AvailableBalance, CanonicalEvent, Quote, StatsSnapshot, SwapEstimate
from .oracle import QuoteOracle
from .poller import BalancePoller, PollOutcome, PollPhase
from .sequencer import RequestSequencer
from .session import StablePairSession
from .solver import SwapSolver, min_amount_out
from .units import from_fixed_point, to_fixed_point

__all__ = [
    "ActivityPage",
    "ActivityPager",
    "Asset",
    "AvailableBalance",
    "BalancePoller",
    "CanonicalEvent",
    "ClientConfig",
    "NormalizationSkip",
    "OracleError",
    "PollConfig",
    "PollOutcome",
    "PollPhase",
    "Quote",
    "QuoteOracle",
    "RemoteCallError",
    "RequestSequencer",
    "SolverConfig",
    "StablePairError",
    "StablePairSession",
    "StatsSnapshot",
    "StaleResult",
    "SwapEstimate",
    "SwapSolver",
    "TransportFailure",
    "from_fixed_point",
    "load_config",
    "min_amount_out",
    "normalize_timestamp_ms",
    "parse_event",
    "to_fixed_point",
]
