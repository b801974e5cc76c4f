"""Error types for the pool client, mapped from transport and service failures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class StablePairError(Exception):
    """Base class for every error raised by this package."""


@dataclass
class TransportFailure(StablePairError):
    """Network, HTTP or decoding failure talking to the pool service."""

    message: str
    http_status: Optional[int] = None
    body: Optional[str] = None
    cause: Optional[BaseException] = None

    def __str__(self) -> str:  # pragma: no cover - representational only
        suffix = []
        if self.http_status is not None:
            suffix.append(f"status={self.http_status}")
        if self.body:
            suffix.append(f"body={self.body}")
        if self.cause:
            suffix.append(f"cause={self.cause}")
        detail = ", ".join(suffix)
        return f"{self.message} ({detail})" if detail else self.message


@dataclass
class RemoteCallError(StablePairError):
    """The service answered, but with an error payload."""

    method: str
    message: str

    def __str__(self) -> str:
        return f"{self.method}: {self.message}"


@dataclass
class OracleError(StablePairError):
    """A forward quote failed or came back malformed."""

    message: str
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        return self.message


@dataclass
class StaleResult(StablePairError):
    """Raised at an await checkpoint once a newer request owns the channel."""

    channel: str
    token: int

    def __str__(self) -> str:  # pragma: no cover - representational only
        return f"stale result on {self.channel!r} (token {self.token})"


@dataclass(frozen=True)
class NormalizationSkip:
    """Outcome of parsing an event record that matched no known shape."""

    reason: str
    raw: Any = None
