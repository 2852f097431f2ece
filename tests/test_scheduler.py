import random

import pytest

from osviz.engine import (
    LifecycleConfig,
    LifecycleScheduler,
    ProcessState,
    SimulatedProcess,
    advance,
    compare_context_switch_costs,
    generate_processes,
    load_preset,
    make_next_process,
    run_to_completion,
)


def _proc(pid, arrival, burst, **kw):
    return SimulatedProcess(id=pid, name=f"P{pid}", arrival_time=arrival, total_burst_time=burst, **kw)


def _by_name(sched):
    return {p.name: p for p in sched.processes}


def test_zero_cost_switch_dispatches_every_process():
    sched = LifecycleScheduler(load_preset(2), context_switch_time=0, rng=random.Random(0))
    sched.run(100)

    assert sched.done()
    procs = _by_name(sched)
    assert {n: p.completion_time for n, p in procs.items()} == {"P1": 19, "P2": 13, "P3": 8, "P4": 4}
    assert {n: p.waiting_time for n, p in procs.items()} == {"P1": 12, "P2": 7, "P3": 3, "P4": 0}
    assert sched.context_switches == 0
    assert sched.gantt_chart == ["IDLE"] + ["P4"] * 3 + ["P3"] * 4 + ["P2"] * 5 + ["P1"] * 6


def test_context_switch_delay_occupies_cpu():
    sched = LifecycleScheduler(load_preset(2), context_switch_time=1, rng=random.Random(0))
    sched.run(100)

    procs = _by_name(sched)
    assert {n: p.completion_time for n, p in procs.items()} == {"P1": 23, "P2": 16, "P3": 10, "P4": 5}
    assert sched.context_switches == 4
    assert sched.gantt_chart[:3] == ["IDLE", "CS", "P4"]
    assert sched.gantt_chart.count("CS") == 4
    assert len(sched.gantt_chart) == sched.time


def test_shorter_arrival_preempts_running_process():
    sched = LifecycleScheduler([_proc(1, 0, 8), _proc(2, 3, 2)], context_switch_time=0, rng=random.Random(0))
    sched.run(3)

    procs = _by_name(sched)
    assert sched.running is procs["P2"]
    assert procs["P1"].state == ProcessState.READY
    assert procs["P1"].remaining_burst_time == 6
    assert sched.last_transition == {"process_id": 2, "from": "READY", "to": "RUNNING"}
    assert any("preempted by P2" in m for m in sched.log.messages())

    sched.run(100)
    assert procs["P2"].completion_time == 5
    assert procs["P1"].completion_time == 11


def test_equal_remaining_time_does_not_preempt():
    sched = LifecycleScheduler([_proc(1, 0, 4), _proc(2, 2, 3)], context_switch_time=0, rng=random.Random(0))
    sched.run(2)
    # P1 has 3 left after two ticks, same as the new arrival
    assert sched.running.name == "P1"
    assert sched.running.remaining_burst_time == 3


def test_running_process_is_ready_process_with_least_remaining_time():
    procs = generate_processes(6, 10, 2, random.Random(7))
    for p in procs:
        p.io_frequency = 0.0
    sched = LifecycleScheduler(procs, context_switch_time=0, rng=random.Random(7))
    while not sched.done():
        sched.tick()
        running = sched.running
        if running is None:
            continue
        for p in sched.ready_processes():
            assert running.remaining_burst_time <= p.remaining_burst_time


def test_remaining_burst_never_increases_and_cpu_time_adds_up():
    procs = generate_processes(5, 12, 3, random.Random(3))
    sched = LifecycleScheduler(procs, context_switch_time=1, rng=random.Random(3))
    last = {p.id: p.remaining_burst_time for p in procs}
    for _ in range(5000):
        if sched.done():
            break
        sched.tick()
        for p in sched.processes:
            assert 0 <= p.remaining_burst_time <= last[p.id]
            last[p.id] = p.remaining_burst_time
    assert sched.done()
    for p in sched.processes:
        assert p.cpu_time == p.total_burst_time
        assert p.turnaround_time == p.completion_time - p.arrival_time
    assert sched.total_cpu_time == sum(p.total_burst_time for p in procs)


def test_io_blocks_then_returns_to_ready():
    sched = LifecycleScheduler([_proc(1, 0, 10, io_frequency=1.0, io_duration=2)], context_switch_time=0)
    sched.run(2)
    p = sched.processes[0]
    assert p.state == ProcessState.WAITING
    assert p.io_countdown == 2
    assert sched.running is None

    sched.tick()
    assert p.state == ProcessState.WAITING
    sched.tick()
    # I/O done, picked up again in the same tick
    assert p.state == ProcessState.RUNNING


def test_removing_pending_switch_target_cancels_countdown():
    sched = LifecycleScheduler([_proc(1, 0, 5), _proc(2, 0, 3)], context_switch_time=2, rng=random.Random(0))
    sched.tick()
    assert sched.next_process_id == 2
    assert sched.context_switch_countdown == 2

    assert sched.remove_process(2) is True
    assert sched.next_process_id is None
    assert sched.context_switch_countdown == 0
    assert sched.remove_process(2) is False

    sched.run(50)
    assert sched.done()


def test_removing_running_process_frees_cpu():
    sched = LifecycleScheduler([_proc(1, 0, 5)], context_switch_time=0)
    sched.tick()
    assert sched.running_process_id == 1
    sched.remove_process(1)
    assert sched.running_process_id is None
    assert not sched.done()


def test_add_process_rejects_duplicate_id():
    sched = LifecycleScheduler([_proc(1, 0, 5)])
    with pytest.raises(ValueError):
        sched.add_process(_proc(1, 2, 3))
    sched.add_process(_proc(sched.next_id(), 2, 3))
    assert [p.id for p in sched.processes] == [1, 2]


def test_reset_restores_initial_state():
    sched = LifecycleScheduler(load_preset(1), context_switch_time=1, rng=random.Random(0))
    sched.run(10)
    sched.reset()
    assert sched.time == 0
    assert sched.gantt_chart == []
    assert all(p.state == ProcessState.NEW for p in sched.processes)
    assert all(p.remaining_burst_time == p.total_burst_time for p in sched.processes)


def test_advance_leaves_input_untouched():
    sched = LifecycleScheduler(load_preset(1), context_switch_time=1, rng=random.Random(0))
    nxt = advance(sched)
    assert sched.time == 0
    assert nxt.time == 1
    assert all(p.state == ProcessState.NEW for p in sched.processes)


def test_process_validation():
    with pytest.raises(ValueError):
        _proc(1, -1, 5)
    with pytest.raises(ValueError):
        _proc(1, 0, 0)
    with pytest.raises(ValueError):
        _proc(1, 0, 5, io_frequency=1.5)
    with pytest.raises(ValueError):
        LifecycleScheduler([_proc(1, 0, 5)], context_switch_time=-1)
    with pytest.raises(ValueError):
        LifecycleScheduler([_proc(1, 0, 5), _proc(1, 1, 2)])


def test_config_from_dict():
    cfg = LifecycleConfig.from_dict({"num_processes": "3", "seed": 4})
    assert cfg.num_processes == 3
    assert cfg.seed == 4
    with pytest.raises(ValueError):
        LifecycleConfig.from_dict({"num_processes": "abc"})
    with pytest.raises(ValueError):
        LifecycleConfig.from_dict({"context_switch_time": -1})
    with pytest.raises(ValueError):
        LifecycleConfig.from_dict({"avg_burst_time": True})


def test_seeded_config_is_reproducible():
    cfg = LifecycleConfig(num_processes=4, seed=11)
    a = LifecycleScheduler.from_config(cfg).run(500)
    b = LifecycleScheduler.from_config(cfg).run(500)
    assert a.gantt_chart == b.gantt_chart
    assert [p.arrival_time for p in a.processes] == [0, 3, 6, 9]


def test_generated_processes_respect_bounds():
    procs = generate_processes(20, 10, 2, random.Random(5))
    for i, p in enumerate(procs):
        assert p.id == i + 1
        assert p.arrival_time == i * 2
        assert p.total_burst_time >= 2
        assert 1 <= p.priority <= 10
        assert 0.05 <= p.io_frequency <= 0.15
        assert 3 <= p.io_duration <= 7


def test_make_next_process_arrives_after_last():
    procs = [_proc(1, 0, 5), _proc(2, 4, 5)]
    nxt = make_next_process(procs, now=1, avg_burst_time=10, arrival_interval=3, rng=random.Random(1))
    assert nxt.id == 3
    assert nxt.arrival_time == 7
    late = make_next_process(procs, now=20, avg_burst_time=10, arrival_interval=3, rng=random.Random(1))
    assert late.arrival_time == 20


def test_compare_context_switch_costs():
    results = compare_context_switch_costs(load_preset(2), costs=[0, 1, 2])
    assert [r["context_switch_time"] for r in results] == [0, 1, 2]
    assert all(r["finished"] for r in results)
    makespans = [r["makespan"] for r in results]
    assert makespans[0] == 19
    assert makespans[1] == 23
    assert makespans == sorted(makespans)
    with pytest.raises(ValueError):
        compare_context_switch_costs(load_preset(2), costs=[-1])


def test_run_to_completion_summary():
    summary = run_to_completion(load_preset(3), context_switch_time=0)
    assert summary["finished"] is True
    assert summary["completed"] == 4
    assert 0 < summary["cpu_util"] < 100
    assert "IDLE" in summary["gantt"]
