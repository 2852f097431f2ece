import pytest

from osviz.engine import MemoryConfig, MemoryManager, normalize_fit_policy


def _manager(total=100, partitions=1, policy="FIRST_FIT"):
    return MemoryManager(MemoryConfig(total_memory=total, initial_partitions=partitions, policy=policy))


def _layout(mgr):
    return [(b.start, b.size, b.process_id) for b in mgr.blocks]


def _fragmented():
    # [hole 30 @0][P2 10 @30][hole 20 @40][P4 15 @60][hole 25 @75]
    mgr = _manager()
    for size in (30, 10, 20, 15):
        assert mgr.allocate(size).allocated
    mgr.deallocate(1)
    mgr.deallocate(3)
    return mgr


def test_partitions_spread_remainder_over_first_blocks():
    mgr = _manager(total=10, partitions=3)
    assert _layout(mgr) == [(0, 4, None), (4, 3, None), (7, 3, None)]
    assert [b.id for b in mgr.blocks] == [1, 2, 3]
    assert mgr.log.messages() == ["Memory reset: 10 KB in 3 partition(s)."]


def test_allocation_splits_hole():
    mgr = _manager()
    result = mgr.allocate(30)
    assert result.allocated
    assert result.process.name == "P1"
    assert result.block.start == 0
    assert _layout(mgr) == [(0, 30, 1), (30, 70, None)]
    assert mgr.allocations == 1


def test_exact_fit_replaces_hole():
    mgr = _manager(total=30, partitions=3)
    mgr.allocate(10)
    assert _layout(mgr) == [(0, 10, 1), (10, 10, None), (20, 10, None)]


def test_policies_pick_different_holes():
    mgr = _fragmented()

    def start(size, policy):
        return mgr.blocks[mgr.find_hole(size, policy)].start

    assert start(18, "FIRST_FIT") == 0
    assert start(18, "BEST_FIT") == 40
    assert start(18, "WORST_FIT") == 0
    assert start(22, "BEST_FIT") == 75
    assert mgr.find_hole(31, "FIRST_FIT") is None


def test_worst_fit_tie_goes_to_lowest_address():
    mgr = _manager(total=40, partitions=2)
    assert mgr.find_hole(5, "WORST_FIT") == 0
    assert mgr.find_hole(5, "BEST_FIT") == 0


def test_next_fit_resumes_after_last_allocation_and_wraps():
    mgr = _manager(total=100, partitions=4, policy="NEXT_FIT")
    starts = [mgr.allocate(size).block.start for size in (10, 20, 12, 24)]
    # first fit would have put the 12 KB request in the 15 KB hole at 10
    assert starts == [0, 25, 50, 75]
    assert mgr.blocks[mgr.next_fit_pointer].start == 99

    assert mgr.allocate(14).block.start == 10


def test_deallocate_merges_with_both_neighbours():
    mgr = _manager(total=30, partitions=3)
    for _ in range(3):
        mgr.allocate(10)
    assert mgr.deallocate(1)
    assert mgr.deallocate(3)
    assert len(mgr.holes()) == 2

    assert mgr.deallocate(2)
    assert _layout(mgr) == [(0, 30, None)]
    assert mgr.deallocations == 3
    assert mgr.processes == []
    assert mgr.deallocate(2) is False


def test_next_fit_pointer_follows_coalescing():
    mgr = _manager(total=30, policy="NEXT_FIT")
    mgr.allocate(10)
    mgr.allocate(10)
    assert mgr.next_fit_pointer == 2

    mgr.deallocate(2)
    assert _layout(mgr) == [(0, 10, 1), (10, 20, None)]
    assert mgr.next_fit_pointer == 1

    mgr.deallocate(1)
    assert _layout(mgr) == [(0, 30, None)]
    assert mgr.next_fit_pointer == 0


def test_no_fit_returns_failure_without_changes():
    mgr = _manager(total=50, partitions=2)
    result = mgr.allocate(30)
    assert result.allocated is False
    assert result.process is None
    assert result.message == "Allocation failed: No suitable hole found for size 30."
    assert _layout(mgr) == [(0, 25, None), (25, 25, None)]
    assert mgr.allocations == 0
    assert list(mgr.log)[-1].kind == "error"


def test_usage_and_external_fragmentation():
    mgr = _manager()
    for size in (40, 10, 30):
        mgr.allocate(size)
    mgr.deallocate(2)

    assert mgr.usage_percentage() == 70.0
    assert mgr.external_fragmentation(25) == 30
    assert mgr.external_fragmentation(15) == 10
    # defaults to the most recent request size
    assert mgr.external_fragmentation() == 30
    metrics = mgr.metrics()
    assert metrics["free"] == 30
    assert metrics["largest_hole"] == 20
    assert metrics["holes"] == 2


def test_invalid_sizes_raise():
    mgr = _manager()
    for bad in (0, -5, 101, "big", True):
        with pytest.raises(ValueError):
            mgr.allocate(bad)
    with pytest.raises(ValueError):
        mgr.allocate(10, policy="random")
    assert mgr.allocations == 0


def test_config_validation():
    with pytest.raises(ValueError):
        MemoryConfig(total_memory=0)
    with pytest.raises(ValueError):
        MemoryConfig(initial_partitions=0)
    with pytest.raises(ValueError):
        MemoryConfig(total_memory=4, initial_partitions=8)
    with pytest.raises(ValueError):
        MemoryConfig(policy="buddy")
    with pytest.raises(ValueError):
        MemoryConfig.from_dict({"total_memory": "abc"})
    cfg = MemoryConfig.from_dict({"total_memory": "256", "policy": "worst"})
    assert cfg.total_memory == 256
    assert cfg.policy == "WORST_FIT"


def test_normalize_fit_policy():
    assert normalize_fit_policy("best") == "BEST_FIT"
    assert normalize_fit_policy("next-fit") == "NEXT_FIT"
    assert normalize_fit_policy("worst fit") == "WORST_FIT"
    with pytest.raises(ValueError):
        normalize_fit_policy("")
    with pytest.raises(ValueError):
        normalize_fit_policy(None)


def test_reset_restores_partitions():
    mgr = _manager(total=64, partitions=2, policy="BEST_FIT")
    mgr.allocate(8)
    mgr.set_policy("worst")
    mgr.reset()
    assert _layout(mgr) == [(0, 32, None), (32, 32, None)]
    assert mgr.policy == "BEST_FIT"
    assert mgr.allocations == 0
    assert mgr.next_fit_pointer == 0
    assert mgr.allocate(8).process.id == 1
