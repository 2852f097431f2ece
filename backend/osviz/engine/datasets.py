import random
from typing import List, Optional

from .models import SimulatedProcess


def _random_process(pid: int, arrival_time: int, burst_time: int, rng: random.Random) -> SimulatedProcess:
    return SimulatedProcess(
        id=pid,
        name=f"P{pid}",
        arrival_time=arrival_time,
        total_burst_time=burst_time,
        priority=rng.randint(1, 10),
        io_frequency=0.05 + rng.random() * 0.1,
        io_duration=rng.randint(3, 7),
        pc=rng.randint(0, 1023),
        memory_address=0x1000 + (pid - 1) * 0x100,
    )


def generate_processes(
    count: int,
    avg_burst_time: int,
    arrival_interval: int,
    rng: Optional[random.Random] = None,
) -> List[SimulatedProcess]:
    """Random workload: P1..Pn arriving every `arrival_interval` ticks."""
    rng = rng or random.Random()
    processes: List[SimulatedProcess] = []
    for i in range(count):
        burst = max(2, round(avg_burst_time + (rng.random() - 0.5) * avg_burst_time * 0.8))
        processes.append(_random_process(i + 1, i * arrival_interval, burst, rng))
    return processes


def make_next_process(
    existing: List[SimulatedProcess],
    now: int,
    avg_burst_time: int,
    arrival_interval: int,
    rng: Optional[random.Random] = None,
) -> SimulatedProcess:
    # Arrives no earlier than now, one interval after the last arrival
    rng = rng or random.Random()
    pid = max((p.id for p in existing), default=0) + 1
    last_arrival = max((p.arrival_time for p in existing), default=-arrival_interval)
    burst = max(2, round(avg_burst_time + (rng.random() - 0.5) * avg_burst_time))
    return _random_process(pid, max(now, last_arrival + arrival_interval), burst, rng)


# Helper: clone process list (no runtime fields)
def clone_processes(procs: List[SimulatedProcess]) -> List[SimulatedProcess]:
    return [
        SimulatedProcess(
            id=p.id,
            name=p.name,
            arrival_time=p.arrival_time,
            total_burst_time=p.total_burst_time,
            priority=p.priority,
            io_frequency=p.io_frequency,
            io_duration=p.io_duration,
            pc=p.pc,
            registers=dict(p.registers),
            memory_address=p.memory_address,
        )
        for p in procs
    ]


# ------------------------------
# Presets (no I/O, fully deterministic)
# ------------------------------
def _cpu_only(pid: int, arrival_time: int, burst_time: int) -> SimulatedProcess:
    return SimulatedProcess(
        id=pid,
        name=f"P{pid}",
        arrival_time=arrival_time,
        total_burst_time=burst_time,
        memory_address=0x1000 + (pid - 1) * 0x100,
    )


def load_preset(preset_id: int) -> List[SimulatedProcess]:
    if preset_id == 1:
        # Staggered arrivals with mixed burst lengths
        return [
            _cpu_only(1, 0, 8),
            _cpu_only(2, 1, 4),
            _cpu_only(3, 2, 9),
            _cpu_only(4, 3, 5),
        ]

    if preset_id == 2:
        # Everything arrives together, shortest first
        return [
            _cpu_only(1, 0, 6),
            _cpu_only(2, 0, 5),
            _cpu_only(3, 0, 4),
            _cpu_only(4, 0, 3),
        ]

    if preset_id == 3:
        # Gaps in arrivals leave the CPU idle
        return [
            _cpu_only(1, 0, 3),
            _cpu_only(2, 6, 2),
            _cpu_only(3, 8, 4),
            _cpu_only(4, 12, 2),
        ]

    return load_preset(1)
