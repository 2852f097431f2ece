"""Variable-partition memory allocation.

Memory is a list of contiguous blocks, each free or owned by one process.
A request is placed in a free hole chosen by the fit policy; a hole larger
than the request is split and the remainder stays free. Freeing a block
merges it with free neighbours.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .base import EventLog
from .models import MemoryBlock, MemoryProcess

logger = logging.getLogger(__name__)

FIT_POLICIES = ("FIRST_FIT", "NEXT_FIT", "BEST_FIT", "WORST_FIT")


def normalize_fit_policy(value: Any) -> str:
    policy = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
    if policy and not policy.endswith("_FIT"):
        policy += "_FIT"
    if policy not in FIT_POLICIES:
        raise ValueError(f"unknown fit policy '{value}' (expected one of {', '.join(FIT_POLICIES)})")
    return policy


def _as_size(value: Any, what: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{what} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{what} must be an integer, got {value!r}")


@dataclass
class MemoryConfig:
    total_memory: int = 1024
    initial_partitions: int = 1
    policy: str = "FIRST_FIT"

    def __post_init__(self):
        if self.total_memory < 1:
            raise ValueError("total_memory must be >= 1")
        if self.initial_partitions < 1:
            raise ValueError("initial_partitions must be >= 1")
        if self.initial_partitions > self.total_memory:
            raise ValueError("initial_partitions cannot exceed total_memory")
        self.policy = normalize_fit_policy(self.policy)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MemoryConfig":
        data = data or {}
        return cls(
            total_memory=_as_size(data.get("total_memory", 1024), "total_memory"),
            initial_partitions=_as_size(data.get("initial_partitions", 1), "initial_partitions"),
            policy=data.get("policy", "FIRST_FIT"),
        )


@dataclass(frozen=True)
class AllocationResult:
    allocated: bool
    message: str
    process: Optional[MemoryProcess] = None
    block: Optional[MemoryBlock] = None


class MemoryManager:
    def __init__(self, config: Optional[MemoryConfig] = None, log_limit: int = 100):
        self.config = config if config is not None else MemoryConfig()
        self.log = EventLog(log_limit)
        self.reset()

    def reset(self) -> None:
        total = self.config.total_memory
        parts = self.config.initial_partitions
        base, remainder = divmod(total, parts)

        self.blocks: List[MemoryBlock] = []
        start = 0
        for i in range(parts):
            size = base + (1 if i < remainder else 0)
            self.blocks.append(MemoryBlock(id=i + 1, start=start, size=size))
            start += size

        self.processes: List[MemoryProcess] = []
        self.policy = self.config.policy
        self.next_process_id = 1
        self.next_block_id = len(self.blocks) + 1
        self.next_fit_pointer = 0
        self.allocations = 0
        self.deallocations = 0
        self.last_request_size = 64
        self.version = 0
        self.log.clear()
        self._log(f"Memory reset: {total} KB in {parts} partition(s).")

    def _log(self, message: str, kind: str = "info") -> None:
        self.log.append(self.version, message, kind)

    def set_policy(self, policy: Any) -> str:
        self.policy = normalize_fit_policy(policy)
        return self.policy

    # -------- queries --------
    def process(self, pid: int) -> Optional[MemoryProcess]:
        return next((p for p in self.processes if p.id == pid), None)

    def holes(self) -> List[MemoryBlock]:
        return [b for b in self.blocks if b.is_free]

    def used_memory(self) -> int:
        return sum(b.size for b in self.blocks if not b.is_free)

    def free_memory(self) -> int:
        return sum(b.size for b in self.holes())

    def usage_percentage(self) -> float:
        return self.used_memory() * 100.0 / self.config.total_memory

    def external_fragmentation(self, request_size: Optional[int] = None) -> int:
        """Free memory sitting in holes too small for `request_size`."""
        size = self.last_request_size if request_size is None else int(request_size)
        return sum(b.size for b in self.holes() if b.size < size)

    def metrics(self, request_size: Optional[int] = None) -> Dict[str, Any]:
        holes = self.holes()
        return {
            "usage_percentage": self.usage_percentage(),
            "external_fragmentation": self.external_fragmentation(request_size),
            "allocations": self.allocations,
            "deallocations": self.deallocations,
            "used": self.used_memory(),
            "free": self.free_memory(),
            "largest_hole": max((b.size for b in holes), default=0),
            "holes": len(holes),
        }

    # -------- placement --------
    def find_hole(self, size: int, policy: Optional[str] = None) -> Optional[int]:
        """Index of the block the policy would use for `size`, or None."""
        policy = normalize_fit_policy(policy or self.policy)
        fits = [i for i, b in enumerate(self.blocks) if b.is_free and b.size >= size]
        if not fits:
            return None

        if policy == "FIRST_FIT":
            return fits[0]
        if policy == "NEXT_FIT":
            # Resume at the pointer, wrapping to the front
            pointer = min(self.next_fit_pointer, len(self.blocks))
            after = [i for i in fits if i >= pointer]
            return after[0] if after else fits[0]
        if policy == "BEST_FIT":
            return min(fits, key=lambda i: (self.blocks[i].size, i))
        return min(fits, key=lambda i: (-self.blocks[i].size, i))

    def allocate(self, size: Any, policy: Optional[str] = None) -> AllocationResult:
        size = _as_size(size, "size")
        if size <= 0 or size > self.config.total_memory:
            raise ValueError("Invalid process size.")
        policy = normalize_fit_policy(policy or self.policy)
        self.last_request_size = size

        idx = self.find_hole(size, policy)
        if idx is None:
            message = f"Allocation failed: No suitable hole found for size {size}."
            self._log(message, "error")
            return AllocationResult(False, message)

        hole = self.blocks[idx]
        pid = self.next_process_id
        block = MemoryBlock(id=self.next_block_id, start=hole.start, size=size, is_free=False, process_id=pid)
        if hole.size > size:
            hole.start += size
            hole.size -= size
            self.blocks.insert(idx, block)
        else:
            self.blocks[idx] = block
        # Next fit resumes at the block after this one, the leftover hole if split
        pointer = idx + 1
        self.next_fit_pointer = pointer if pointer < len(self.blocks) else 0

        proc = MemoryProcess(id=pid, name=f"P{pid}", size=size, block_id=block.id)
        self.processes.append(proc)
        self.next_process_id += 1
        self.next_block_id += 1
        self.allocations += 1
        self.version += 1

        message = f"{proc.name} ({size} KB) allocated at {block.start}."
        self._log(message, "success")
        return AllocationResult(True, message, proc, block)

    def deallocate(self, pid: int) -> bool:
        proc = self.process(pid)
        if proc is None:
            return False
        idx = next((i for i, b in enumerate(self.blocks) if b.id == proc.block_id), None)
        if idx is None:
            return False

        block = self.blocks[idx]
        block.is_free = True
        block.process_id = None

        nxt = idx + 1
        if nxt < len(self.blocks) and self.blocks[nxt].is_free:
            block.size += self.blocks[nxt].size
            del self.blocks[nxt]
            if self.next_fit_pointer >= nxt:
                self.next_fit_pointer -= 1

        prev = idx - 1
        if prev >= 0 and self.blocks[prev].is_free:
            block.start = self.blocks[prev].start
            block.size += self.blocks[prev].size
            del self.blocks[prev]
            if self.next_fit_pointer >= idx:
                self.next_fit_pointer -= 1

        if self.next_fit_pointer >= len(self.blocks):
            self.next_fit_pointer = 0

        self.processes = [p for p in self.processes if p.id != pid]
        self.deallocations += 1
        self.version += 1
        self._log(f"{proc.name} deallocated; {block.size} KB hole at {block.start}.", "action")
        logger.debug("freed %s, %d hole(s) remain", proc.name, len(self.holes()))
        return True
