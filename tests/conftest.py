import pytest

from osviz import session


@pytest.fixture(autouse=True)
def fresh_session():
    """Session state is module-global; start every test from a clean slate."""
    session.scheduler = None
    session.base_processes = []
    session.sync_engine = None
    session.graph.reset()
    session.memory = session.MemoryManager()
    session.running.update({"process": False, "sync": False})
    session.settings.update(
        {
            "tick_ms": 500,
            "num_processes": 5,
            "avg_burst_time": 15,
            "arrival_interval": 3,
            "context_switch_time": 1,
            "seed": None,
            "sync_mode": "MUTEX",
            "sync_config": {},
            "sync_seed": None,
            "memory_config": {},
        }
    )
    yield
