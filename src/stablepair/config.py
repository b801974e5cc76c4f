import os
from dataclasses import dataclass, field, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Mapping, Type, TypeVar

import yaml

BASE_URL_ENV = "STABLEPAIR_BASE_URL"

# 2025-01-01 00:00:00 JST; activity older than this predates the live pool.
ACTIVITY_CUTOFF_MS = 1_735_657_200_000

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceConfig:
    base_url: str = "http://127.0.0.1:4943/api/vaultpair"
    request_timeout: float = 5.0
    user_agent: str = "stablepair-client/1.0"


@dataclass(frozen=True)
class SolverConfig:
    rel_tolerance: Decimal = Decimal("1e-6")
    abs_tolerance: Decimal = Decimal("1e-9")
    max_refinements: int = 2
    ratio_floor: Decimal = Decimal("0.5")
    ratio_ceiling: Decimal = Decimal("2.0")
    seed_inflation: Decimal = Decimal("1.002")
    min_input: Decimal = Decimal("1e-12")


@dataclass(frozen=True)
class PollConfig:
    tries: int = 12
    interval_ms: int = 1000
    min_tries: int = 1
    min_interval_ms: int = 200


@dataclass(frozen=True)
class ActivityConfig:
    page_size: int = 20
    cutoff_ms: int = ACTIVITY_CUTOFF_MS


@dataclass(frozen=True)
class ClientConfig:
    service: ServiceConfig = field(default_factory=ServiceConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    activity: ActivityConfig = field(default_factory=ActivityConfig)
    metadata_ttl_seconds: float = 300.0
    default_slippage_pct: Decimal = Decimal("0.5")


def _section(cls: Type[T], raw: Mapping[str, Any]) -> T:
    values: Dict[str, Any] = {}
    for item in fields(cls):
        if item.name not in raw:
            continue
        value = raw[item.name]
        if item.type in (Decimal, "Decimal"):
            value = Decimal(str(value))
        values[item.name] = value
    return cls(**values)


def config_from_dict(raw: Mapping[str, Any]) -> ClientConfig:
    raw = raw or {}
    service_raw = dict(raw.get("service") or {})
    env_url = os.getenv(BASE_URL_ENV)
    if env_url:
        service_raw["base_url"] = env_url

    top: Dict[str, Any] = {}
    if "metadata_ttl_seconds" in raw:
        top["metadata_ttl_seconds"] = float(raw["metadata_ttl_seconds"])
    if "default_slippage_pct" in raw:
        top["default_slippage_pct"] = Decimal(str(raw["default_slippage_pct"]))

    return ClientConfig(
        service=_section(ServiceConfig, service_raw),
        solver=_section(SolverConfig, raw.get("solver") or {}),
        poll=_section(PollConfig, raw.get("poll") or {}),
        activity=_section(ActivityConfig, raw.get("activity") or {}),
        **top,
    )


def load_config(config_path: Path) -> ClientConfig:
    with Path(config_path).open("r", encoding="utf-8") as fh:
        return config_from_dict(yaml.safe_load(fh) or {})
