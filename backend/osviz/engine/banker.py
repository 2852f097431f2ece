"""Banker's algorithm: safety check and resource-request evaluation.

Data structures (per the textbook):
    - Available[r]: free instances of resource r.
    - Max[p][r]: most instances process p may ever hold.
    - Allocation[p][r]: instances process p holds now.
    - Need[p][r]: Max - Allocation.

Both entry points are pure: they copy their inputs and return a result.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

Matrix = Sequence[Sequence[int]]


@dataclass(frozen=True)
class BankerStep:
    step: int
    process_index: int
    work: List[int]
    need: List[int]
    is_allocatable: bool
    finish: List[bool]
    message: str


@dataclass(frozen=True)
class BankerResult:
    is_safe: bool
    sequence: List[int] = field(default_factory=list)
    steps: List[BankerStep] = field(default_factory=list)
    need: List[List[int]] = field(default_factory=list)


@dataclass(frozen=True)
class RequestDecision:
    granted: bool
    reason: str
    result: Optional[BankerResult] = None


def _as_int(value, what: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{what} must be an integer")
    try:
        out = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{what} must be an integer, got {value!r}")
    if out < 0:
        raise ValueError(f"{what} must be >= 0")
    return out


def _as_vector(value, what: str) -> Sequence:
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{what} must be an array, got {type(value).__name__}")
    return value


def _validate(allocation: Matrix, maximum: Matrix, available: Sequence[int]):
    available = _as_vector(available, "available")
    allocation = _as_vector(allocation, "allocation")
    maximum = _as_vector(maximum, "max")
    resource_count = len(available)
    if resource_count == 0:
        raise ValueError("available must list at least one resource")
    if len(allocation) != len(maximum):
        raise ValueError("allocation and max must have the same number of processes")

    avail = [_as_int(v, f"available[{j}]") for j, v in enumerate(available)]
    alloc: List[List[int]] = []
    mx: List[List[int]] = []
    for i, (a_row, m_row) in enumerate(zip(allocation, maximum)):
        a_row = _as_vector(a_row, f"allocation[{i}]")
        m_row = _as_vector(m_row, f"max[{i}]")
        if len(a_row) != resource_count or len(m_row) != resource_count:
            raise ValueError(f"row {i} must have {resource_count} entries")
        a = [_as_int(v, f"allocation[{i}][{j}]") for j, v in enumerate(a_row)]
        m = [_as_int(v, f"max[{i}][{j}]") for j, v in enumerate(m_row)]
        for j in range(resource_count):
            if a[j] > m[j]:
                raise ValueError(f"allocation[{i}][{j}]={a[j]} exceeds max[{i}][{j}]={m[j]}")
        alloc.append(a)
        mx.append(m)
    return alloc, mx, avail


def _fmt(vec: Sequence[int]) -> str:
    return "[" + ", ".join(str(v) for v in vec) + "]"


def _safety(alloc: List[List[int]], mx: List[List[int]], avail: List[int]) -> BankerResult:
    process_count = len(alloc)
    resource_count = len(avail)
    need = [[mx[i][j] - alloc[i][j] for j in range(resource_count)] for i in range(process_count)]
    finish = [False] * process_count
    work = list(avail)
    sequence: List[int] = []
    steps: List[BankerStep] = []

    passes = 0
    while len(sequence) < process_count:
        found = False
        for i in range(process_count):
            if finish[i]:
                continue
            can_allocate = all(need[i][j] <= work[j] for j in range(resource_count))
            work_before = list(work)
            finish_before = list(finish)
            message = (
                f"Check P{i}: Need <= Work? ({_fmt(need[i])}) <= ({_fmt(work_before)}) -> "
                f"{'Yes' if can_allocate else 'No. Must wait.'}"
            )
            if can_allocate:
                for j in range(resource_count):
                    work[j] += alloc[i][j]
                finish[i] = True
                sequence.append(i)
                found = True
                message += f" P{i} runs, releases resources. New Work = {_fmt(work)}."
            steps.append(
                BankerStep(
                    step=len(steps) + 1,
                    process_index=i,
                    work=work_before,
                    need=list(need[i]),
                    is_allocatable=can_allocate,
                    finish=finish_before,
                    message=message,
                )
            )
        if not found:
            break
        passes += 1
        if passes > process_count * process_count:
            break

    return BankerResult(
        is_safe=len(sequence) == process_count,
        sequence=sequence,
        steps=steps,
        need=need,
    )


def check_safety(allocation: Matrix, maximum: Matrix, available: Sequence[int]) -> BankerResult:
    """Run the safety algorithm and return the verdict plus a per-check trace."""
    alloc, mx, avail = _validate(allocation, maximum, available)
    return _safety(alloc, mx, avail)


def evaluate_request(
    allocation: Matrix,
    maximum: Matrix,
    available: Sequence[int],
    process_index: int,
    request: Sequence[int],
) -> RequestDecision:
    """Decide whether granting `request` to `process_index` keeps the system safe."""
    alloc, mx, avail = _validate(allocation, maximum, available)
    i = _as_int(process_index, "process_index")
    if i >= len(alloc):
        raise ValueError(f"process_index must be within 0..{len(alloc) - 1}")
    request = _as_vector(request, "request")
    if len(request) != len(avail):
        raise ValueError(f"request must have {len(avail)} entries")
    req = [_as_int(v, f"request[{j}]") for j, v in enumerate(request)]

    for j, amount in enumerate(req):
        if amount > mx[i][j] - alloc[i][j]:
            return RequestDecision(False, f"P{i} requested more R{j} than its declared maximum.")
    for j, amount in enumerate(req):
        if amount > avail[j]:
            return RequestDecision(False, f"Not enough R{j} available; P{i} must wait.")

    # Pretend to grant, then check safety
    trial_alloc = [list(row) for row in alloc]
    trial_avail = list(avail)
    for j, amount in enumerate(req):
        trial_alloc[i][j] += amount
        trial_avail[j] -= amount
    result = _safety(trial_alloc, mx, trial_avail)
    if result.is_safe:
        return RequestDecision(True, f"Request by P{i} leaves the system safe.", result)
    return RequestDecision(False, f"Request by P{i} would leave the system unsafe.", result)
