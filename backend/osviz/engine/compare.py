import random
from typing import Iterable, List, Optional

from .datasets import clone_processes
from .metrics import lifecycle_summary
from .models import SimulatedProcess
from .scheduler import LifecycleScheduler


def run_to_completion(
    processes: List[SimulatedProcess],
    context_switch_time: int = 1,
    seed: Optional[int] = None,
    max_steps: int = 200000,
):
    """Run a fresh clone of `processes` until every process terminates and return summary metrics."""
    sched = LifecycleScheduler(
        clone_processes(processes),
        context_switch_time=context_switch_time,
        rng=random.Random(seed),
    )

    guard = 0
    while (not sched.done()) and guard < max_steps:
        sched.tick()
        guard += 1

    summary = lifecycle_summary(sched)
    summary["context_switch_time"] = int(context_switch_time)
    summary["makespan"] = int(sched.time)
    summary["finished"] = sched.done()
    summary["gantt"] = list(sched.gantt_chart)
    return summary


def compare_context_switch_costs(
    processes: List[SimulatedProcess],
    costs: Iterable[int] = (0, 1, 2, 3),
    seed: Optional[int] = None,
):
    """Return one summary per context-switch cost, all replaying the same workload and RNG seed."""
    out = []
    for cost in costs:
        if int(cost) < 0:
            raise ValueError("context switch cost must be >= 0")
        out.append(run_to_completion(processes, context_switch_time=int(cost), seed=seed))
    return out
