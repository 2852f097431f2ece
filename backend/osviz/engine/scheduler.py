import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .base import TickEngine
from .datasets import generate_processes
from .models import ProcessState, SimulatedProcess


def _coerce_int(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool):
        raise ValueError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}")


@dataclass
class LifecycleConfig:
    num_processes: int = 5
    avg_burst_time: int = 15
    arrival_interval: int = 3
    context_switch_time: int = 1
    seed: Optional[int] = None

    def __post_init__(self):
        if self.num_processes < 1:
            raise ValueError("num_processes must be >= 1")
        if self.avg_burst_time < 1:
            raise ValueError("avg_burst_time must be >= 1")
        if self.arrival_interval < 1:
            raise ValueError("arrival_interval must be >= 1")
        if self.context_switch_time < 0:
            raise ValueError("context_switch_time must be >= 0")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LifecycleConfig":
        data = data or {}
        seed = data.get("seed")
        return cls(
            num_processes=_coerce_int(data, "num_processes", 5),
            avg_burst_time=_coerce_int(data, "avg_burst_time", 15),
            arrival_interval=_coerce_int(data, "arrival_interval", 3),
            context_switch_time=_coerce_int(data, "context_switch_time", 1),
            seed=None if seed is None else _coerce_int(data, "seed", 0),
        )


class LifecycleScheduler(TickEngine):
    """
    Process lifecycle simulator: NEW -> READY -> RUNNING -> WAITING -> READY -> TERMINATED.

    Scheduling is preemptive SRTF (shortest remaining time first). Switching
    the CPU to another process costs `context_switch_time` ticks, during which
    nothing runs. A running process blocks for I/O with probability
    `io_frequency` on each tick it executes.
    """

    def __init__(
        self,
        processes: List[SimulatedProcess],
        context_switch_time: int = 1,
        rng: Optional[random.Random] = None,
        log_limit: int = 200,
    ):
        if int(context_switch_time) < 0:
            raise ValueError("context_switch_time must be >= 0")
        ids = [p.id for p in processes]
        if len(set(ids)) != len(ids):
            raise ValueError("process ids must be unique")
        super().__init__(rng=rng, log_limit=log_limit)
        self.processes = processes
        self.context_switch_time = int(context_switch_time)
        self.reset()

    @classmethod
    def from_config(cls, config: LifecycleConfig, rng: Optional[random.Random] = None) -> "LifecycleScheduler":
        rng = rng or random.Random(config.seed)
        processes = generate_processes(
            config.num_processes, config.avg_burst_time, config.arrival_interval, rng
        )
        return cls(processes, context_switch_time=config.context_switch_time, rng=rng)

    def reset(self):
        self.time = 0
        self.running_process_id: Optional[int] = None
        self.next_process_id: Optional[int] = None
        self.context_switch_countdown = 0

        self.context_switches = 0
        self.total_cpu_time = 0
        self.completed_count = 0

        # One entry per tick: pid, "CS" during a context switch, or "IDLE"
        self.gantt_chart: List[str] = []
        self.last_transition: Optional[Dict[str, Any]] = None
        self.log.clear()

        for p in self.processes:
            p.state = ProcessState.NEW
            p.remaining_burst_time = p.total_burst_time
            p.cpu_time = 0
            p.waiting_time = 0
            p.io_countdown = 0
            p.completion_time = None
            p.turnaround_time = None

    # -------- Registry --------
    def get(self, pid: Optional[int]) -> Optional[SimulatedProcess]:
        if pid is None:
            return None
        for p in self.processes:
            if p.id == pid:
                return p
        return None

    @property
    def running(self) -> Optional[SimulatedProcess]:
        return self.get(self.running_process_id)

    def next_id(self) -> int:
        return max((p.id for p in self.processes), default=0) + 1

    def add_process(self, process: SimulatedProcess) -> SimulatedProcess:
        if self.get(process.id) is not None:
            raise ValueError(f"process id {process.id} already exists")
        self.processes.append(process)
        self._log_event(f"{process.name} added (arrives at t={process.arrival_time})")
        return process

    def remove_process(self, pid: int) -> bool:
        proc = self.get(pid)
        if proc is None:
            return False
        self.processes = [p for p in self.processes if p.id != pid]
        if self.running_process_id == pid:
            self.running_process_id = None
        if self.next_process_id == pid:
            self.next_process_id = None
            self.context_switch_countdown = 0
        self._log_event(f"{proc.name} removed", "warning")
        return True

    def done(self) -> bool:
        return bool(self.processes) and all(p.state == ProcessState.TERMINATED for p in self.processes)

    def ready_processes(self) -> List[SimulatedProcess]:
        return [p for p in self.processes if p.state == ProcessState.READY]

    def _set_state(self, p: SimulatedProcess, new_state: ProcessState, detail: str = "", kind: str = "info"):
        old = p.state
        if old != new_state:
            p.state = new_state
            self.last_transition = {"process_id": p.id, "from": old.value, "to": new_state.value}
            extra = f" {detail}" if detail else ""
            self._log_event(f"{p.name} {old.value} -> {new_state.value}{extra}", kind)

    # -------- Tick phases --------
    def add_arrived_processes(self):
        for p in self.processes:
            if p.state == ProcessState.NEW and p.arrival_time <= self.time:
                self._set_state(p, ProcessState.READY, "(arrived)")

    def _tick_context_switch(self):
        self.context_switch_countdown -= 1
        if self.context_switch_countdown > 0:
            return
        target = self.get(self.next_process_id)
        self.next_process_id = None
        if target is not None and target.state == ProcessState.READY:
            self.running_process_id = target.id
            self._set_state(target, ProcessState.RUNNING, "(dispatched)", "action")

    def _tick_io(self):
        for p in self.processes:
            if p.state == ProcessState.WAITING:
                p.io_countdown -= 1
                if p.io_countdown <= 0:
                    p.io_countdown = 0
                    self._set_state(p, ProcessState.READY, "(I/O done)")

    def execute(self):
        proc = self.running
        if proc is None:
            self.gantt_chart.append("IDLE")
            return

        proc.remaining_burst_time -= 1
        proc.cpu_time += 1
        self.total_cpu_time += 1
        self.gantt_chart.append(proc.name)

        if proc.remaining_burst_time <= 0:
            proc.remaining_burst_time = 0
            self._set_state(proc, ProcessState.TERMINATED, kind="success")
            proc.completion_time = self.time
            proc.turnaround_time = proc.completion_time - proc.arrival_time
            self.completed_count += 1
            self.running_process_id = None
        elif self.rng.random() < proc.io_frequency:
            self._set_state(proc, ProcessState.WAITING, "(I/O)", "warning")
            proc.io_countdown = proc.io_duration
            self.running_process_id = None

    def _best_ready(self) -> Optional[SimulatedProcess]:
        ready = self.ready_processes()
        if not ready:
            return None
        return min(ready, key=lambda p: (p.remaining_burst_time, p.id))

    def schedule(self):
        best = self._best_ready()
        if best is None:
            return
        current = self.running
        # Equal remaining time never preempts
        if current is not None and best.remaining_burst_time >= current.remaining_burst_time:
            return

        if current is not None:
            self._set_state(current, ProcessState.READY, f"(preempted by {best.name})", "warning")
        self.running_process_id = None

        if self.context_switch_time == 0:
            self.running_process_id = best.id
            self._set_state(best, ProcessState.RUNNING, "(dispatched)", "action")
            return

        self.next_process_id = best.id
        self.context_switch_countdown = self.context_switch_time
        self.context_switches += 1
        self._log_event(f"Context switch to {best.name} ({self.context_switch_time} ticks)", "action")

    def _age_ready(self):
        for p in self.processes:
            if p.state == ProcessState.READY:
                p.waiting_time += 1

    def _advance(self):
        self.last_transition = None
        self.add_arrived_processes()

        if self.context_switch_countdown > 0:
            self.gantt_chart.append("CS")
            self._tick_context_switch()
            self._tick_io()
            self._age_ready()
            return

        self._tick_io()
        self.execute()
        self.schedule()
        self._age_ready()
