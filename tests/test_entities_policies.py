import random

import pytest

from cloudsim.arrivals import ArrivalProcess
from cloudsim.config import SimulationConfig
from cloudsim.entities import PriorityClass, Task, TaskKind
from cloudsim.errors import SimulationStateError
from cloudsim.policies import pick_priority_class, pick_task_kind, priority_key, priority_rank
from cloudsim.random_streams import RandomStreams


def test_task_system_time_after_completion():
    task = Task(1, TaskKind.GPU, PriorityClass.NORMAL, arrival_time=2.0)
    assert not task.completed
    assert task.system_time is None
    task.complete(7.5)
    assert task.completed
    assert task.system_time == pytest.approx(5.5)


def test_task_cannot_complete_twice_or_before_arrival():
    task = Task(1, TaskKind.CPU, PriorityClass.NORMAL, arrival_time=3.0)
    with pytest.raises(SimulationStateError):
        task.complete(2.0)
    task.complete(3.0)
    with pytest.raises(SimulationStateError):
        task.complete(4.0)
    assert task.completion_time == 3.0


def test_priority_ranks_are_ordered():
    assert (priority_rank(PriorityClass.NORMAL)
            < priority_rank(PriorityClass.PERSONAL_PRIORITY)
            < priority_rank(PriorityClass.ENTERPRISE_PRIORITY))


def test_priority_key_orders_class_then_arrival():
    tasks = [
        Task(1, TaskKind.CPU, PriorityClass.NORMAL, 0.0),
        Task(2, TaskKind.CPU, PriorityClass.ENTERPRISE_PRIORITY, 9.0),
        Task(3, TaskKind.CPU, PriorityClass.PERSONAL_PRIORITY, 4.0),
        Task(4, TaskKind.CPU, PriorityClass.ENTERPRISE_PRIORITY, 1.0),
    ]
    assert [t.tid for t in sorted(tasks, key=priority_key)] == [4, 2, 3, 1]


def test_pick_task_kind(fixed_rng):
    rng = fixed_rng([], uniforms=[0.1, 0.69, 0.7, 0.99])
    kinds = [pick_task_kind(rng, 0.7) for _ in range(4)]
    assert kinds == [TaskKind.CPU, TaskKind.CPU, TaskKind.GPU, TaskKind.GPU]


def test_pick_priority_class_walks_classes_by_rank(fixed_rng):
    mix = {
        PriorityClass.ENTERPRISE_PRIORITY: 0.1,
        PriorityClass.NORMAL: 0.6,
        PriorityClass.PERSONAL_PRIORITY: 0.3,
    }
    rng = fixed_rng([], uniforms=[0.0, 0.59, 0.6, 0.89, 0.95])
    picks = [pick_priority_class(rng, mix) for _ in range(5)]
    assert picks == [
        PriorityClass.NORMAL, PriorityClass.NORMAL,
        PriorityClass.PERSONAL_PRIORITY, PriorityClass.PERSONAL_PRIORITY,
        PriorityClass.ENTERPRISE_PRIORITY,
    ]


def test_pick_priority_class_frequencies():
    mix = {PriorityClass.NORMAL: 0.6, PriorityClass.PERSONAL_PRIORITY: 0.3,
           PriorityClass.ENTERPRISE_PRIORITY: 0.1}
    rng = random.Random(5)
    n = 20000
    picks = [pick_priority_class(rng, mix) for _ in range(n)]
    for cls, p in mix.items():
        assert picks.count(cls) / n == pytest.approx(p, abs=0.02)


def test_random_streams_are_reproducible_and_independent():
    a, b = RandomStreams(42), RandomStreams(42)
    assert [a.get("arrivals").random() for _ in range(3)] == [b.get("arrivals").random() for _ in range(3)]
    assert a.get("cpu_compute") is a.get("cpu_compute")
    assert RandomStreams(42).get("cpu_compute").random() != RandomStreams(42).get("gpu_compute").random()


def test_arrival_process_builds_tasks(fixed_rng):
    cfg = SimulationConfig(simulation_time=10.0)
    proc = ArrivalProcess(cfg, fixed_rng([1.5, 2.0], uniforms=[0.5, 0.95, 0.9, 0.1]))
    first = proc.next_task(0.0)
    assert (first.tid, first.arrival_time) == (1, 1.5)
    assert first.kind == TaskKind.CPU
    assert first.priority == PriorityClass.ENTERPRISE_PRIORITY
    second = proc.next_task(first.arrival_time)
    assert (second.tid, second.arrival_time) == (2, 3.5)
    assert second.kind == TaskKind.GPU
    assert second.priority == PriorityClass.NORMAL


def test_arrival_process_stops_at_horizon(fixed_rng):
    cfg = SimulationConfig(simulation_time=10.0)
    proc = ArrivalProcess(cfg, fixed_rng([3.0]))
    assert proc.next_task(8.0) is None


def test_each_arrival_process_numbers_tasks_from_one(fixed_rng):
    cfg = SimulationConfig(simulation_time=100.0)
    first = ArrivalProcess(cfg, fixed_rng([1.0, 1.0], uniforms=[0.0] * 4))
    assert [first.next_task(0.0).tid, first.next_task(1.0).tid] == [1, 2]
    second = ArrivalProcess(cfg, fixed_rng([1.0], uniforms=[0.0] * 2))
    assert second.next_task(0.0).tid == 1
