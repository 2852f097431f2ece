import random
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Type

from .base import TickEngine
from .metrics import sync_summary
from .models import (
    ForkTable,
    MutexResource,
    QueuedAccess,
    ReadersWritersResource,
    SemaphoreResource,
    SyncMetrics,
    SyncThread,
    ThreadState,
)

# Per-tick request probability is contention_rate / CONTENTION_DIVISOR
CONTENTION_DIVISOR = 20


def _check_positive(name: str, value: Any) -> None:
    if value < 1:
        raise ValueError(f"{name} must be >= 1")


def _check_rate(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1]")


class _Config:
    """Shared `from_dict` for the per-mode config dataclasses."""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        data = data or {}
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            raw = data[f.name]
            if f.type in (bool, "bool"):
                if not isinstance(raw, bool):
                    raise ValueError(f"{f.name} must be a boolean")
                kwargs[f.name] = raw
                continue
            caster = float if f.type in (float, "float") else int
            if isinstance(raw, bool):
                raise ValueError(f"{f.name} must be numeric")
            try:
                kwargs[f.name] = caster(raw)
            except (TypeError, ValueError):
                raise ValueError(f"{f.name} must be numeric, got {raw!r}")
        return cls(**kwargs)


@dataclass
class MutexConfig(_Config):
    thread_count: int = 5
    cs_duration: int = 20
    contention_rate: float = 0.5

    def __post_init__(self):
        _check_positive("thread_count", self.thread_count)
        _check_positive("cs_duration", self.cs_duration)
        _check_rate("contention_rate", self.contention_rate)


@dataclass
class SemaphoreConfig(_Config):
    producers: int = 2
    consumers: int = 2
    buffer_size: int = 3
    produce_time: int = 15
    consume_time: int = 20

    def __post_init__(self):
        _check_positive("producers", self.producers)
        _check_positive("consumers", self.consumers)
        _check_positive("buffer_size", self.buffer_size)
        _check_positive("produce_time", self.produce_time)
        _check_positive("consume_time", self.consume_time)


@dataclass
class ReadersWritersConfig(_Config):
    readers: int = 4
    writers: int = 2
    read_time: int = 10
    write_time: int = 25
    request_rate: float = 0.1

    def __post_init__(self):
        if self.readers < 0 or self.writers < 0 or self.readers + self.writers < 1:
            raise ValueError("need at least one reader or writer")
        _check_positive("read_time", self.read_time)
        _check_positive("write_time", self.write_time)
        _check_rate("request_rate", self.request_rate)


@dataclass
class DiningConfig(_Config):
    count: int = 5
    think_time: int = 30
    eat_time: int = 20
    prevent_deadlock: bool = False

    def __post_init__(self):
        if self.count < 2:
            raise ValueError("count must be >= 2")
        _check_positive("think_time", self.think_time)
        _check_positive("eat_time", self.eat_time)


class SyncEngine(TickEngine):
    """Tickable thread state machine; each mode supplies its transition rules."""

    mode = ""
    title = "synchronization"
    config_cls: Type[_Config] = _Config

    def __init__(self, config=None, rng: Optional[random.Random] = None, log_limit: int = 200):
        super().__init__(rng=rng, log_limit=log_limit)
        self.config = config if config is not None else self.config_cls()
        self.metrics = SyncMetrics()
        self.frozen = False
        self.threads: List[SyncThread] = self._build_threads()
        self.resources = self._build_resources()
        self._log_event(f"Initialized {self.title} simulation.")

    def _build_threads(self) -> List[SyncThread]:
        raise NotImplementedError

    def _build_resources(self):
        raise NotImplementedError

    def _step(self) -> None:
        raise NotImplementedError

    def _advance(self) -> None:
        if self.frozen:
            return
        self._step()
        for t in self.threads:
            if t.state in (ThreadState.WAITING, ThreadState.BLOCKED, ThreadState.HUNGRY):
                t.wait_ticks += 1
                self.metrics.total_wait_ticks += 1

    def thread(self, tid: int) -> Optional[SyncThread]:
        return next((t for t in self.threads if t.id == tid), None)

    def count(self, state: ThreadState) -> int:
        return sum(1 for t in self.threads if t.state == state)

    def summary(self) -> Dict[str, Any]:
        return sync_summary(self.metrics, self.time)

    def resolve_deadlock(self) -> bool:
        return False

    def _progress(self, t: SyncThread, duration: int) -> None:
        t.progress = max(0.0, min(100.0, (duration - t.action_timer) / duration * 100.0))

    def _start(self, t: SyncThread, message: str, duration: int) -> None:
        t.state = ThreadState.ACTIVE
        t.message = message
        t.action_timer = duration
        t.progress = 0.0
        self.metrics.total_acquisitions += 1


class MutexEngine(SyncEngine):
    mode = "MUTEX"
    title = "Mutex Locks"
    config_cls = MutexConfig

    def _build_threads(self):
        return [
            SyncThread(id=i, name=f"T{i}", state=ThreadState.IDLE)
            for i in range(self.config.thread_count)
        ]

    def _build_resources(self):
        return MutexResource()

    def _step(self):
        cfg = self.config
        res: MutexResource = self.resources
        for t in self.threads:
            if t.state == ThreadState.IDLE:
                if self.rng.random() < cfg.contention_rate / CONTENTION_DIVISOR:
                    t.state = ThreadState.WAITING
                    t.message = "Wants lock"
                    self.metrics.total_requests += 1
                    self.metrics.total_waits += 1
                    if res.locked or res.queue:
                        self.metrics.contended_requests += 1
                    res.queue.append(t.id)
                    self._log_event(f"{t.name} wants to enter CS.")
            elif t.state == ThreadState.ACTIVE:
                t.action_timer -= 1
                self._progress(t, cfg.cs_duration)
                if t.action_timer <= 0:
                    t.state = ThreadState.IDLE
                    t.message = "Exited CS"
                    t.progress = 0.0
                    res.locked = False
                    res.owner_id = None
                    self._log_event(f"{t.name} released lock.", "success")

        if not res.locked and res.queue:
            nxt = self.thread(res.queue.pop(0))
            if nxt is not None:
                res.locked = True
                res.owner_id = nxt.id
                self._start(nxt, "In CS", cfg.cs_duration)
                self._log_event(f"{nxt.name} acquired lock.", "action")


class SemaphoreEngine(SyncEngine):
    """Bounded buffer guarded by `mutex`, `empty` and `full` counting semaphores."""

    mode = "SEMAPHORE"
    title = "Semaphores"
    config_cls = SemaphoreConfig

    def _build_threads(self):
        cfg = self.config
        threads = [
            SyncThread(id=i, name=f"Prod {i}", role="producer", state=ThreadState.IDLE)
            for i in range(cfg.producers)
        ]
        threads += [
            SyncThread(id=cfg.producers + i, name=f"Cons {i}", role="consumer", state=ThreadState.IDLE)
            for i in range(cfg.consumers)
        ]
        return threads

    def _build_resources(self):
        size = self.config.buffer_size
        return SemaphoreResource(capacity=size, mutex=1, empty=size, full=0)

    def _try_start(self, t: SyncThread) -> None:
        cfg = self.config
        res: SemaphoreResource = self.resources
        producer = t.role == "producer"
        gate = res.empty if producer else res.full
        first_attempt = t.state == ThreadState.IDLE
        if first_attempt:
            self.metrics.total_requests += 1

        if gate > 0 and res.mutex > 0:
            if producer:
                res.empty -= 1
            else:
                res.full -= 1
            res.mutex -= 1
            if producer:
                self._start(t, "Producing", cfg.produce_time)
            else:
                self._start(t, "Consuming", cfg.consume_time)
            return

        if first_attempt:
            self.metrics.total_waits += 1
            self.metrics.contended_requests += 1
            t.state = ThreadState.BLOCKED
            if gate == 0:
                t.message = "Buffer full" if producer else "Buffer empty"
            else:
                t.message = "Waiting for mutex"
            self._log_event(f"{t.name} blocked ({t.message.lower()}).", "warning")

    def _step(self):
        cfg = self.config
        res: SemaphoreResource = self.resources
        for t in self.threads:
            if t.state in (ThreadState.IDLE, ThreadState.BLOCKED):
                self._try_start(t)
            elif t.state == ThreadState.ACTIVE:
                producer = t.role == "producer"
                duration = cfg.produce_time if producer else cfg.consume_time
                t.action_timer -= 1
                self._progress(t, duration)
                if t.action_timer > 0:
                    continue
                if producer:
                    res.buffer.append("Item")
                    res.full += 1
                    self.metrics.items_produced += 1
                    self._log_event(f"{t.name} produced an item.", "success")
                else:
                    res.buffer.pop(0)
                    res.empty += 1
                    self.metrics.items_consumed += 1
                    self._log_event(f"{t.name} consumed an item.", "action")
                res.mutex += 1
                t.state = ThreadState.IDLE
                t.message = "Finished"
                t.progress = 0.0


class ReadersWritersEngine(SyncEngine):
    """
    Reader-preference readers-writers.

    When a reader heads the queue every queued reader is admitted at once,
    including readers queued behind a writer. A steady stream of readers
    therefore starves writers.
    """

    mode = "READERS_WRITERS"
    title = "Readers-Writers"
    config_cls = ReadersWritersConfig

    def _build_threads(self):
        cfg = self.config
        threads = [
            SyncThread(id=i, name=f"Reader {i}", role="reader", state=ThreadState.IDLE)
            for i in range(cfg.readers)
        ]
        threads += [
            SyncThread(id=cfg.readers + i, name=f"Writer {i}", role="writer", state=ThreadState.IDLE)
            for i in range(cfg.writers)
        ]
        return threads

    def _build_resources(self):
        return ReadersWritersResource()

    def _step(self):
        cfg = self.config
        res: ReadersWritersResource = self.resources
        for t in self.threads:
            reader = t.role == "reader"
            if t.state == ThreadState.IDLE:
                if self.rng.random() < cfg.request_rate:
                    verb = "read" if reader else "write"
                    t.state = ThreadState.WAITING
                    t.message = f"Wants to {verb}"
                    self.metrics.total_requests += 1
                    self.metrics.total_waits += 1
                    if res.writer_active or res.queue or (not reader and res.active_readers):
                        self.metrics.contended_requests += 1
                    res.queue.append(QueuedAccess(thread_id=t.id, kind="R" if reader else "W"))
                    self._log_event(f"{t.name} wants to {verb}.")
            elif t.state == ThreadState.ACTIVE:
                t.action_timer -= 1
                self._progress(t, cfg.read_time if reader else cfg.write_time)
                if t.action_timer <= 0:
                    if reader:
                        res.active_readers -= 1
                        self._log_event(f"{t.name} finished reading.")
                    else:
                        res.writer_active = False
                        self._log_event(f"{t.name} finished writing.", "success")
                    t.state = ThreadState.IDLE
                    t.message = "Finished"
                    t.progress = 0.0

        self._schedule()

    def _schedule(self):
        cfg = self.config
        res: ReadersWritersResource = self.resources
        if not res.queue or res.writer_active:
            return

        head = res.queue[0]
        if head.kind == "W":
            if res.active_readers == 0:
                res.queue.pop(0)
                writer = self.thread(head.thread_id)
                if writer is not None:
                    res.writer_active = True
                    self._start(writer, "Writing", cfg.write_time)
                    self._log_event(f"{writer.name} started writing.", "action")
            return

        admitted = [q for q in res.queue if q.kind == "R"]
        res.queue = [q for q in res.queue if q.kind != "R"]
        for q in admitted:
            reader = self.thread(q.thread_id)
            if reader is not None:
                res.active_readers += 1
                self._start(reader, "Reading", cfg.read_time)
        if admitted:
            self._log_event(f"{len(admitted)} reader(s) started reading.", "action")


class DiningPhilosophersEngine(SyncEngine):
    """
    Philosophers pick up one fork per tick. The naive policy takes the left
    fork first and can deadlock; the prevention policy takes the lower
    numbered fork first, which breaks the circular wait.
    """

    mode = "DINING_PHILOSOPHERS"
    title = "Dining Philosophers"
    config_cls = DiningConfig

    def _think_timer(self) -> float:
        return self.rng.random() * self.config.think_time

    def _build_threads(self):
        n = self.config.count
        return [
            SyncThread(
                id=i,
                name=f"P{i}",
                role="philosopher",
                state=ThreadState.THINKING,
                message="Thinking...",
                action_timer=self._think_timer(),
                left_fork=i,
                right_fork=(i + 1) % n,
            )
            for i in range(n)
        ]

    def _build_resources(self):
        return ForkTable(forks=[None] * self.config.count)

    def forks_held(self, p: SyncThread) -> List[int]:
        forks = self.resources.forks
        return [i for i in (p.left_fork, p.right_fork) if forks[i] == p.id]

    def _fork_order(self, p: SyncThread):
        if self.config.prevent_deadlock:
            return min(p.left_fork, p.right_fork), max(p.left_fork, p.right_fork)
        return p.left_fork, p.right_fork

    def _try_eat(self, p: SyncThread) -> None:
        forks = self.resources.forks
        first, second = self._fork_order(p)
        if forks[first] is None:
            forks[first] = p.id
            p.message = "Has left fork" if first == p.left_fork else "Has right fork"
            return
        if forks[first] != p.id:
            return
        if forks[second] is None:
            forks[second] = p.id
            p.state = ThreadState.EATING
            p.message = "Eating!"
            p.action_timer = self.config.eat_time
            p.progress = 0.0
            self.metrics.total_acquisitions += 1
            self._log_event(f"{p.name} picked up both forks and is eating.", "action")

    def _step(self):
        forks = self.resources.forks
        for p in self.threads:
            if p.state == ThreadState.THINKING:
                p.action_timer -= 1
                if p.action_timer <= 0:
                    p.state = ThreadState.HUNGRY
                    p.message = "Hungry!"
                    self.metrics.total_requests += 1
                    self.metrics.total_waits += 1
                    self._log_event(f"{p.name} is hungry.")
            elif p.state == ThreadState.EATING:
                p.action_timer -= 1
                self._progress(p, self.config.eat_time)
                if p.action_timer <= 0:
                    forks[p.left_fork] = None
                    forks[p.right_fork] = None
                    p.state = ThreadState.THINKING
                    p.message = "Thinking..."
                    p.progress = 0.0
                    p.action_timer = self._think_timer()
                    self._log_event(f"{p.name} finished eating and released forks.", "success")
            elif p.state == ThreadState.HUNGRY:
                self._try_eat(p)

        if self.is_deadlocked():
            self.frozen = True
            self.metrics.deadlocks += 1
            self._log_event("DEADLOCK DETECTED! Each philosopher has one fork.", "error")

    def is_deadlocked(self) -> bool:
        return all(p.state == ThreadState.HUNGRY and len(self.forks_held(p)) == 1 for p in self.threads)

    def resolve_deadlock(self) -> bool:
        if not self.frozen:
            return False
        self.resources.forks = [None] * self.config.count
        for p in self.threads:
            p.state = ThreadState.THINKING
            p.message = "Thinking... (Deadlock resolved)"
            p.progress = 0.0
            p.action_timer = self._think_timer()
        self.frozen = False
        self._log_event("Deadlock resolved by forcing philosophers to release forks.", "success")
        return True


SYNC_MODES: Dict[str, Type[SyncEngine]] = {
    MutexEngine.mode: MutexEngine,
    SemaphoreEngine.mode: SemaphoreEngine,
    ReadersWritersEngine.mode: ReadersWritersEngine,
    DiningPhilosophersEngine.mode: DiningPhilosophersEngine,
}


def normalize_sync_mode(value: Any) -> str:
    mode = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
    if mode not in SYNC_MODES:
        raise ValueError(f"unknown sync mode '{value}' (expected one of {', '.join(SYNC_MODES)})")
    return mode


def create_sync_engine(
    mode: str,
    config: Optional[Dict[str, Any]] = None,
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
) -> SyncEngine:
    """Build a fresh engine for `mode`; `config` is a plain dict of overrides."""
    engine_cls = SYNC_MODES[normalize_sync_mode(mode)]
    cfg = engine_cls.config_cls.from_dict(config)
    return engine_cls(cfg, rng=rng or random.Random(seed))
