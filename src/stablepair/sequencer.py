"""Latest-issued-wins ordering for asynchronous results.

Work on a channel takes a token before it starts and checks it after every
await. Superseded work still runs to completion; its result is dropped.
"""

from dataclasses import dataclass
from typing import Dict

from .errors import StaleResult

QUOTE_CHANNEL = "quote"
BALANCE_CHANNEL = "balance"
ACTIVITY_CHANNEL = "activity"


class RequestSequencer:
    def __init__(self) -> None:
        self._counters: Dict[str, int] = {}

    def next(self, channel: str) -> int:
        token = self._counters.get(channel, 0) + 1
        self._counters[channel] = token
        return token

    def current(self, channel: str) -> int:
        return self._counters.get(channel, 0)

    def is_current(self, channel: str, token: int) -> bool:
        return self._counters.get(channel, 0) == token

    def ticket(self, channel: str) -> "Ticket":
        return Ticket(sequencer=self, channel=channel, token=self.next(channel))


@dataclass(frozen=True)
class Ticket:
    sequencer: RequestSequencer
    channel: str
    token: int

    def is_current(self) -> bool:
        return self.sequencer.is_current(self.channel, self.token)

    def ensure_current(self) -> None:
        if not self.is_current():
            raise StaleResult(self.channel, self.token)
