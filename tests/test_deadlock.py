import pytest

from osviz.engine import Allocation, GraphProcess, GraphResource, Request, ResourceGraph, detect_cycles


def _two_process_deadlock():
    g = ResourceGraph()
    g.add_process()
    g.add_process()
    g.add_resource("R1", 1)
    g.add_resource("R2", 1)
    assert g.request(1, 1)
    assert g.request(2, 2)
    assert g.request(1, 2)
    assert g.request(2, 1)
    return g


def test_circular_wait_is_reported():
    g = _two_process_deadlock()
    assert g.report.deadlocked
    assert sorted(g.report.deadlocked_processes()) == [1, 2]
    assert g.report.deadlocked_nodes == frozenset({"P1", "P2", "R1", "R2"})
    assert any(m.startswith("Deadlock detected! Cycle:") for m in g.log.messages())


def test_release_breaks_cycle_and_grants_waiter():
    g = _two_process_deadlock()
    assert g.release(2, 2)

    assert not g.report.deadlocked
    assert g.held(1, 2) == 1
    assert [(r.process_id, r.resource_id) for r in g.requests] == [(2, 1)]
    assert "Deadlock resolved." in g.log.messages()


def test_terminate_recovers_from_deadlock():
    g = _two_process_deadlock()
    assert g.terminate(1)

    assert not g.report.deadlocked
    assert [p.id for p in g.processes] == [2]
    assert g.held(2, 1) == 1 and g.held(2, 2) == 1
    assert g.requests == []
    assert g.terminate(1) is False


def test_request_granted_while_instances_remain():
    g = ResourceGraph()
    for _ in range(3):
        g.add_process()
    g.add_resource("Printer", 2)

    assert g.request(1, 1)
    assert g.request(2, 1)
    assert g.request(3, 1)
    assert g.free_instances(1) == 0
    assert [(a.process_id, a.instances) for a in g.allocations] == [(1, 1), (2, 1)]
    assert [r.process_id for r in g.requests] == [3]
    assert not g.report.deadlocked


def test_no_op_mutations_return_false():
    g = ResourceGraph()
    g.add_process()
    g.add_resource(None, 1)
    assert g.resources[0].name == "R1"

    assert g.request(9, 1) is False
    assert g.request(1, 9) is False
    assert g.request(1, 1, instances=2) is False
    assert g.release(1, 1) is False
    assert g.remove_resource(9) is False

    g.add_process()
    assert g.request(1, 1)
    assert g.request(2, 1)
    # duplicate pending request
    assert g.request(2, 1) is False
    assert len(g.requests) == 1


def test_add_resource_rejects_zero_instances():
    g = ResourceGraph()
    with pytest.raises(ValueError):
        g.add_resource("R", 0)


def test_removing_resource_drops_its_edges():
    g = _two_process_deadlock()
    assert g.remove_resource(1)
    assert all(a.resource_id != 1 for a in g.allocations)
    assert all(r.resource_id != 1 for r in g.requests)
    assert not g.report.deadlocked


def test_reset_clears_everything():
    g = _two_process_deadlock()
    g.reset()
    assert g.processes == [] and g.resources == []
    assert not g.report.deadlocked
    assert g.log.messages() == ["Simulation reset."]
    assert g.version == 0
    assert g.log.entries[0].time == 0


def test_detect_cycles_is_pure_and_idempotent():
    processes = [GraphProcess(1, "P1"), GraphProcess(2, "P2"), GraphProcess(3, "P3")]
    resources = [GraphResource(1, "R1", 1), GraphResource(2, "R2", 1)]
    allocations = [Allocation(1, 1), Allocation(2, 2)]
    requests = [Request(1, 2), Request(2, 1), Request(3, 1)]

    first = detect_cycles(processes, resources, allocations, requests)
    second = detect_cycles(processes, resources, allocations, requests)
    assert first == second
    assert len(first.cycles) == 1
    assert sorted(first.deadlocked_processes()) == [1, 2]
    # P3 waits on the cycle but is not part of it
    assert "P3" not in first.deadlocked_nodes
    assert requests == [Request(1, 2), Request(2, 1), Request(3, 1)]

    # P2 no longer holds R2, so nothing closes the loop
    broken = detect_cycles(processes, resources, [Allocation(1, 1)], requests)
    assert not broken.deadlocked
    assert broken.cycles == []


def test_acyclic_graph_is_not_deadlocked():
    processes = [GraphProcess(1, "P1"), GraphProcess(2, "P2")]
    resources = [GraphResource(1, "R1", 1)]
    report = detect_cycles(processes, resources, [Allocation(1, 1)], [Request(2, 1)])
    assert not report.deadlocked
    assert report.deadlocked_nodes == frozenset()


def test_holder_cannot_wait_on_its_own_resource():
    g = ResourceGraph()
    g.add_process()
    g.add_resource("R1", 1)
    assert g.request(1, 1)

    assert g.request(1, 1) is False
    assert g.requests == []
    assert g.held(1, 1) == 1
    assert not g.report.deadlocked


def test_holder_may_take_more_free_instances():
    g = ResourceGraph()
    g.add_process()
    g.add_process()
    g.add_resource("Tape", 3)
    assert g.request(1, 1)
    assert g.request(1, 1)
    assert g.held(1, 1) == 2

    assert g.request(2, 1)
    # none left and P1 already holds some
    assert g.request(1, 1) is False
    assert g.requests == []
    assert not g.report.deadlocked


def test_non_string_names_are_stringified():
    g = ResourceGraph()
    assert g.add_process(7).name == "7"
    assert g.add_resource(["disk"], 1).name == "['disk']"
    assert g.add_process("  ").name == "P2"
