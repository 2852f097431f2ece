from .banker import BankerResult, BankerStep, RequestDecision, check_safety, evaluate_request
from .base import EventLog, LogEntry, TickEngine, advance
from .compare import compare_context_switch_costs, run_to_completion
from .datasets import clone_processes, generate_processes, load_preset, make_next_process
from .deadlock import CycleReport, ResourceGraph, detect_cycles
from .memory import FIT_POLICIES, AllocationResult, MemoryConfig, MemoryManager, normalize_fit_policy
from .metrics import compute_metrics, lifecycle_summary, sync_summary
from .models import (
    Allocation,
    GraphProcess,
    GraphResource,
    MemoryBlock,
    MemoryProcess,
    ProcessState,
    Request,
    SimulatedProcess,
    SyncThread,
    ThreadState,
)
from .scheduler import LifecycleConfig, LifecycleScheduler
from .sync import (
    SYNC_MODES,
    DiningConfig,
    DiningPhilosophersEngine,
    MutexConfig,
    MutexEngine,
    ReadersWritersConfig,
    ReadersWritersEngine,
    SemaphoreConfig,
    SemaphoreEngine,
    SyncEngine,
    create_sync_engine,
    normalize_sync_mode,
)

__all__ = [
    "Allocation",
    "AllocationResult",
    "BankerResult",
    "BankerStep",
    "CycleReport",
    "DiningConfig",
    "DiningPhilosophersEngine",
    "EventLog",
    "FIT_POLICIES",
    "GraphProcess",
    "GraphResource",
    "LifecycleConfig",
    "LifecycleScheduler",
    "LogEntry",
    "MemoryBlock",
    "MemoryConfig",
    "MemoryManager",
    "MemoryProcess",
    "MutexConfig",
    "MutexEngine",
    "ProcessState",
    "ReadersWritersConfig",
    "ReadersWritersEngine",
    "Request",
    "RequestDecision",
    "ResourceGraph",
    "SYNC_MODES",
    "SemaphoreConfig",
    "SemaphoreEngine",
    "SimulatedProcess",
    "SyncEngine",
    "SyncThread",
    "ThreadState",
    "TickEngine",
    "advance",
    "check_safety",
    "clone_processes",
    "compare_context_switch_costs",
    "compute_metrics",
    "create_sync_engine",
    "detect_cycles",
    "evaluate_request",
    "generate_processes",
    "lifecycle_summary",
    "load_preset",
    "make_next_process",
    "normalize_fit_policy",
    "normalize_sync_mode",
    "run_to_completion",
    "sync_summary",
]
