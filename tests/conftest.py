import itertools, os, sys

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from cloudsim.config import SimulationConfig
from cloudsim.entities import PriorityClass, Task, TaskKind


class FixedRng:
    """Stands in for random.Random where a test needs exact service durations."""

    def __init__(self, durations, uniforms=()):
        self._durations = iter(durations)
        self._uniforms = iter(uniforms)

    def expovariate(self, rate):
        return next(self._durations)

    def random(self):
        return next(self._uniforms)


@pytest.fixture
def fixed_rng():
    return FixedRng


@pytest.fixture
def make_task():
    ids = itertools.count(1)

    def _make(arrival_time=0.0, priority=PriorityClass.NORMAL, kind=TaskKind.CPU):
        return Task(next(ids), kind, priority, arrival_time)

    return _make


@pytest.fixture
def small_config():
    """Light, seeded configuration that finishes quickly headless."""
    return SimulationConfig(
        mean_arrival_interval=2.0,
        simulation_time=200.0,
        num_cpu_nodes=2,
        num_gpu_nodes=1,
        data_storage_service_time=0.5,
        classification_service_time=0.3,
        cpu_compute_service_time=3.0,
        gpu_compute_service_time=4.0,
        result_storage_service_time=0.5,
        seed=7,
    )
