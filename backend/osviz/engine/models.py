from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ProcessState(str, Enum):
    NEW = "NEW"
    READY = "READY"
    RUNNING = "RUNNING"
    WAITING = "WAITING"
    TERMINATED = "TERMINATED"


class ThreadState(str, Enum):
    IDLE = "IDLE"
    WAITING = "WAITING"
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    # Dining philosophers
    THINKING = "THINKING"
    HUNGRY = "HUNGRY"
    EATING = "EATING"


@dataclass
class SimulatedProcess:
    id: int
    name: str
    arrival_time: int
    total_burst_time: int

    priority: int = 0
    # Per-tick probability of blocking for I/O while RUNNING
    io_frequency: float = 0.0
    io_duration: int = 0

    # Runtime state
    state: ProcessState = ProcessState.NEW
    remaining_burst_time: int = 0
    cpu_time: int = 0
    waiting_time: int = 0
    io_countdown: int = 0
    completion_time: Optional[int] = None
    turnaround_time: Optional[int] = None

    # PCB fields, shown for inspection only
    pc: int = 0
    registers: Dict[str, int] = field(default_factory=lambda: {"R1": 0, "R2": 0, "R3": 0, "R4": 0})
    memory_address: int = 0

    def __post_init__(self):
        self.arrival_time = int(self.arrival_time)
        self.total_burst_time = int(self.total_burst_time)
        if self.arrival_time < 0:
            raise ValueError(f"{self.name}: arrival_time must be >= 0")
        if self.total_burst_time < 1:
            raise ValueError(f"{self.name}: total_burst_time must be >= 1")
        if not 0.0 <= float(self.io_frequency) <= 1.0:
            raise ValueError(f"{self.name}: io_frequency must be within [0, 1]")
        if int(self.io_duration) < 0:
            raise ValueError(f"{self.name}: io_duration must be >= 0")
        self.io_frequency = float(self.io_frequency)
        self.io_duration = int(self.io_duration)
        self.state = ProcessState(self.state)

        # A fresh process starts with its full burst outstanding
        if self.state == ProcessState.NEW and self.remaining_burst_time == 0:
            self.remaining_burst_time = self.total_burst_time


# ------------------------------
# Resource allocation graph
# ------------------------------
@dataclass(frozen=True)
class GraphProcess:
    id: int
    name: str


@dataclass(frozen=True)
class GraphResource:
    id: int
    name: str
    total_instances: int


@dataclass
class Allocation:
    process_id: int
    resource_id: int
    instances: int = 1


@dataclass
class Request:
    process_id: int
    resource_id: int
    instances: int = 1


# ------------------------------
# Synchronization
# ------------------------------
@dataclass
class SyncThread:
    id: int
    name: str
    state: ThreadState
    # "worker", "producer", "consumer", "reader", "writer" or "philosopher"
    role: str = "worker"
    progress: float = 0.0
    action_timer: float = 0.0
    message: str = "Idle"
    wait_ticks: int = 0
    left_fork: Optional[int] = None
    right_fork: Optional[int] = None


@dataclass
class MutexResource:
    locked: bool = False
    owner_id: Optional[int] = None
    queue: List[int] = field(default_factory=list)


@dataclass
class SemaphoreResource:
    capacity: int
    buffer: List[str] = field(default_factory=list)
    mutex: int = 1
    empty: int = 0
    full: int = 0


@dataclass
class QueuedAccess:
    thread_id: int
    kind: str  # "R" or "W"


@dataclass
class ReadersWritersResource:
    active_readers: int = 0
    writer_active: bool = False
    queue: List[QueuedAccess] = field(default_factory=list)


@dataclass
class ForkTable:
    # forks[i] holds the id of the philosopher holding fork i, or None
    forks: List[Optional[int]] = field(default_factory=list)


@dataclass
class SyncMetrics:
    total_acquisitions: int = 0
    total_waits: int = 0
    contended_requests: int = 0
    total_requests: int = 0
    total_wait_ticks: int = 0
    items_produced: int = 0
    items_consumed: int = 0
    deadlocks: int = 0


# ------------------------------
# Memory allocation
# ------------------------------
@dataclass
class MemoryBlock:
    id: int
    start: int
    size: int
    is_free: bool = True
    process_id: Optional[int] = None

    @property
    def end(self) -> int:
        return self.start + self.size


@dataclass
class MemoryProcess:
    id: int
    name: str
    size: int
    block_id: int
