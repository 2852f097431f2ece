import copy
import random
from dataclasses import dataclass
from typing import List, Optional, TypeVar

LOG_KINDS = {"info", "success", "warning", "error", "action"}


@dataclass(frozen=True)
class LogEntry:
    time: int
    message: str
    kind: str = "info"

    def __str__(self) -> str:
        return f"t={self.time}: {self.message}"


class EventLog:
    """Append-only event log that evicts its oldest entries past `limit`."""

    def __init__(self, limit: int = 200):
        if limit < 1:
            raise ValueError("event log limit must be >= 1")
        self.limit = limit
        self.entries: List[LogEntry] = []

    def append(self, time: int, message: str, kind: str = "info") -> LogEntry:
        if kind not in LOG_KINDS:
            raise ValueError(f"unknown log kind '{kind}'")
        entry = LogEntry(time=time, message=message, kind=kind)
        self.entries.append(entry)
        if len(self.entries) > self.limit:
            self.entries = self.entries[-self.limit:]
        return entry

    def clear(self) -> None:
        self.entries = []

    def messages(self) -> List[str]:
        return [e.message for e in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(list(self.entries))


def make_rng(seed: Optional[int] = None, rng: Optional[random.Random] = None) -> random.Random:
    if rng is not None:
        return rng
    return random.Random(seed)


class TickEngine:
    """Clock plus event log shared by every tick-driven engine.

    Subclasses implement `_advance()`; `tick()` moves the clock forward by
    one unit before calling it, so the first tick observes time 1.
    """

    def __init__(self, rng: Optional[random.Random] = None, log_limit: int = 200):
        self.rng = make_rng(rng=rng)
        self.time = 0
        self.log = EventLog(log_limit)

    def _log_event(self, message: str, kind: str = "info") -> None:
        self.log.append(self.time, message, kind)

    def tick(self):
        self.time += 1
        self._advance()
        return self

    def run(self, steps: int):
        for _ in range(max(0, int(steps))):
            if self.done():
                break
            self.tick()
        return self

    def done(self) -> bool:
        return False

    def _advance(self) -> None:
        raise NotImplementedError

    def snapshot(self):
        return copy.deepcopy(self)


EngineT = TypeVar("EngineT", bound=TickEngine)


def advance(engine: EngineT) -> EngineT:
    """Return a new engine one tick ahead, leaving `engine` untouched."""
    nxt = copy.deepcopy(engine)
    nxt.tick()
    return nxt
