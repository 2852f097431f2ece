"""Resource-allocation graph with cycle-based deadlock detection.

Request edges point process -> resource, allocation edges point
resource -> process. A cycle in the combined graph is reported as a
deadlock. The graph is tiny, so every structural change recomputes the
report from scratch.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from .base import EventLog
from .models import Allocation, GraphProcess, GraphResource, Request

logger = logging.getLogger(__name__)


def process_node(pid: int) -> str:
    return f"P{pid}"


def resource_node(rid: int) -> str:
    return f"R{rid}"


@dataclass(frozen=True)
class CycleReport:
    cycles: List[List[int]] = field(default_factory=list)
    deadlocked_nodes: FrozenSet[str] = frozenset()

    @property
    def deadlocked(self) -> bool:
        return bool(self.cycles)

    def deadlocked_processes(self) -> List[int]:
        seen: List[int] = []
        for cycle in self.cycles:
            for pid in cycle:
                if pid not in seen:
                    seen.append(pid)
        return seen


def detect_cycles(
    processes: Iterable[GraphProcess],
    resources: Iterable[GraphResource],
    allocations: Iterable[Allocation],
    requests: Iterable[Request],
) -> CycleReport:
    process_nodes = [process_node(p.id) for p in processes]
    resource_nodes = [resource_node(r.id) for r in resources]
    order = process_nodes + resource_nodes

    adj: Dict[str, List[str]] = {node: [] for node in order}
    for req in requests:
        src = process_node(req.process_id)
        if src in adj:
            adj[src].append(resource_node(req.resource_id))
    for alloc in allocations:
        src = resource_node(alloc.resource_id)
        if src in adj:
            adj[src].append(process_node(alloc.process_id))

    path: List[str] = []
    on_path: Set[str] = set()
    visited: Set[str] = set()
    cycles: List[List[int]] = []
    deadlocked: Set[str] = set()

    def dfs(node: str) -> None:
        path.append(node)
        on_path.add(node)
        visited.add(node)
        for neighbor in adj.get(node, []):
            if neighbor in on_path:
                cycle = path[path.index(neighbor):]
                pids = [int(n[1:]) for n in cycle if n.startswith("P")]
                if pids:
                    cycles.append(pids)
                deadlocked.update(cycle)
            elif neighbor not in visited and neighbor in adj:
                dfs(neighbor)
        path.pop()
        on_path.discard(node)

    for node in order:
        if node not in visited:
            dfs(node)

    return CycleReport(cycles=cycles, deadlocked_nodes=frozenset(deadlocked))


class ResourceGraph:
    """Mutable registry of processes, resources and edges.

    Every mutation recomputes `report`. Requests are granted on the spot
    when the resource has enough free instances; otherwise they stay as
    request edges until a release frees capacity.
    """

    def __init__(self, log_limit: int = 100):
        self.processes: List[GraphProcess] = []
        self.resources: List[GraphResource] = []
        self.allocations: List[Allocation] = []
        self.requests: List[Request] = []
        self.log = EventLog(log_limit)
        self.report = CycleReport()
        self.version = 0

    # -------- lookups --------
    def _process(self, pid: int) -> Optional[GraphProcess]:
        return next((p for p in self.processes if p.id == pid), None)

    def _resource(self, rid: int) -> Optional[GraphResource]:
        return next((r for r in self.resources if r.id == rid), None)

    def allocated(self, rid: int) -> int:
        return sum(a.instances for a in self.allocations if a.resource_id == rid)

    def free_instances(self, rid: int) -> int:
        res = self._resource(rid)
        if res is None:
            return 0
        return res.total_instances - self.allocated(rid)

    def held(self, pid: int, rid: int) -> int:
        return sum(a.instances for a in self.allocations if a.process_id == pid and a.resource_id == rid)

    def _log(self, message: str, kind: str = "info") -> None:
        self.log.append(self.version, message, kind)

    # -------- recomputation --------
    def _refresh(self) -> CycleReport:
        self.version += 1
        was_deadlocked = self.report.deadlocked
        self.report = detect_cycles(self.processes, self.resources, self.allocations, self.requests)
        if self.report.deadlocked and not was_deadlocked:
            text = ", ".join(" -> ".join(f"P{pid}" for pid in c) for c in self.report.cycles)
            self._log(f"Deadlock detected! Cycle: {text}", "error")
            logger.warning("deadlock detected: %s", text)
        elif was_deadlocked and not self.report.deadlocked:
            self._log("Deadlock resolved.", "success")
            logger.info("deadlock resolved")
        return self.report

    def detect_cycles(self) -> CycleReport:
        return detect_cycles(self.processes, self.resources, self.allocations, self.requests)

    # -------- structural mutations --------
    def add_process(self, name: Optional[str] = None) -> GraphProcess:
        pid = max((p.id for p in self.processes), default=0) + 1
        proc = GraphProcess(id=pid, name=str(name or "").strip() or f"P{pid}")
        self.processes.append(proc)
        self._log(f"Process {proc.name} created.")
        self._refresh()
        return proc

    def add_resource(self, name: Optional[str] = None, total_instances: int = 1) -> GraphResource:
        total_instances = int(total_instances)
        if total_instances < 1:
            raise ValueError("total_instances must be >= 1")
        rid = max((r.id for r in self.resources), default=0) + 1
        res = GraphResource(id=rid, name=str(name or "").strip() or f"R{rid}", total_instances=total_instances)
        self.resources.append(res)
        self._log(f"Resource {res.name} with {total_instances} instance(s) created.")
        self._refresh()
        return res

    def remove_process(self, pid: int) -> bool:
        if self._process(pid) is None:
            return False
        released = {a.resource_id for a in self.allocations if a.process_id == pid}
        self.processes = [p for p in self.processes if p.id != pid]
        self.allocations = [a for a in self.allocations if a.process_id != pid]
        self.requests = [r for r in self.requests if r.process_id != pid]
        self._log(f"Process P{pid} and its edges were removed.")
        for rid in sorted(released):
            self._grant_pending(rid)
        self._refresh()
        return True

    def remove_resource(self, rid: int) -> bool:
        if self._resource(rid) is None:
            return False
        self.resources = [r for r in self.resources if r.id != rid]
        self.allocations = [a for a in self.allocations if a.resource_id != rid]
        self.requests = [r for r in self.requests if r.resource_id != rid]
        self._log(f"Resource R{rid} and its edges were removed.")
        self._refresh()
        return True

    def request(self, pid: int, rid: int, instances: int = 1) -> bool:
        """Request `instances` of a resource. Returns False for a no-op."""
        res = self._resource(rid)
        if self._process(pid) is None or res is None:
            return False
        instances = int(instances)
        if instances < 1 or instances > res.total_instances:
            return False
        if any(r.process_id == pid and r.resource_id == rid for r in self.requests):
            return False
        # A holder may top up from free instances but never wait on itself
        if self.held(pid, rid) > 0 and self.free_instances(rid) < instances:
            return False

        if self.free_instances(rid) >= instances:
            self._allocate(pid, rid, instances)
            self._log(f"P{pid} requested R{rid}: granted {instances} instance(s).", "action")
        else:
            self.requests.append(Request(process_id=pid, resource_id=rid, instances=instances))
            self._log(f"P{pid} requested R{rid}: waiting.", "action")
        self._refresh()
        return True

    def release(self, pid: int, rid: int) -> bool:
        """Release everything `pid` holds of `rid`. Returns False if it holds nothing."""
        if self.held(pid, rid) == 0:
            return False
        self.allocations = [
            a for a in self.allocations if not (a.process_id == pid and a.resource_id == rid)
        ]
        self._log(f"P{pid} released R{rid}.", "action")
        self._grant_pending(rid)
        self._refresh()
        return True

    def terminate(self, pid: int) -> bool:
        """Deadlock recovery: kill `pid`, freeing everything it holds."""
        if not self.remove_process(pid):
            return False
        self._log(f"Deadlock recovery: Terminated process P{pid}.", "action")
        logger.info("terminated P%s for deadlock recovery", pid)
        return True

    def reset(self) -> None:
        self.processes = []
        self.resources = []
        self.allocations = []
        self.requests = []
        self.report = CycleReport()
        self.version = 0
        self.log.clear()
        self._log("Simulation reset.")

    # -------- helpers --------
    def _allocate(self, pid: int, rid: int, instances: int) -> None:
        for alloc in self.allocations:
            if alloc.process_id == pid and alloc.resource_id == rid:
                alloc.instances += instances
                return
        self.allocations.append(Allocation(process_id=pid, resource_id=rid, instances=instances))

    def _grant_pending(self, rid: int) -> None:
        # FIFO over the request edges waiting on this resource
        for req in list(self.requests):
            if req.resource_id != rid:
                continue
            if self.free_instances(rid) < req.instances:
                break
            self.requests.remove(req)
            self._allocate(req.process_id, rid, req.instances)
            self._log(f"P{req.process_id} granted R{rid} ({req.instances} instance(s)).", "success")
