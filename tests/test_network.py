import dataclasses

import pytest

from cloudsim.arrivals import ArrivalProcess
from cloudsim.entities import PriorityClass, Task, TaskKind
from cloudsim.metrics import ResultsAggregator
from cloudsim.network import Router
from cloudsim.queues import Clock, EventQueue
from cloudsim.random_streams import RandomStreams
from cloudsim.stations import (CLASSIFICATION, CPU_COMPUTE, DATA_STORAGE, GPU_COMPUTE,
                               RESULT_STORAGE, STAGE_ORDER, make_service_points)


def build(config):
    streams = RandomStreams(config.seed)
    clock, fel, results = Clock(), EventQueue(), ResultsAggregator()
    stations = make_service_points(config, streams)
    arrivals = ArrivalProcess(config, streams.get("arrivals"))
    router = Router(clock, fel, stations, results, arrivals)
    return router


def drain(router):
    router.schedule_next_arrival()
    while router.fel.has_pending():
        ev = router.fel.next()
        router.clock.advance_to(ev.t)
        router.dispatch(ev)


def test_next_stage_follows_pipeline():
    cpu = Task(1, TaskKind.CPU, PriorityClass.NORMAL, 0.0)
    gpu = Task(2, TaskKind.GPU, PriorityClass.NORMAL, 0.0)
    assert Router.next_stage(DATA_STORAGE, cpu) == CLASSIFICATION
    assert Router.next_stage(CLASSIFICATION, cpu) == CPU_COMPUTE
    assert Router.next_stage(CLASSIFICATION, gpu) == GPU_COMPUTE
    assert Router.next_stage(CPU_COMPUTE, cpu) == RESULT_STORAGE
    assert Router.next_stage(GPU_COMPUTE, gpu) == RESULT_STORAGE
    assert Router.next_stage(RESULT_STORAGE, gpu) is None


def test_stations_built_from_config(small_config):
    router = build(small_config)
    assert tuple(router.S) == STAGE_ORDER
    assert router.S[CPU_COMPUTE].c == 2
    assert router.S[GPU_COMPUTE].c == 1
    assert router.S[CPU_COMPUTE].discipline == "priority"
    assert router.S[DATA_STORAGE].discipline == "fifo"


def test_full_run_drains_every_task(small_config):
    router = build(small_config)
    drain(router)
    snap = router.R.snapshot()
    assert snap.arrived > 0
    # Arrivals stop at the horizon and the event list was drained, so everything finished
    assert snap.completed == snap.arrived
    for sp in router.S.values():
        assert sp.queue_length == 0
        assert sp.busy_servers == 0
    assert router.S[DATA_STORAGE].tasks_served == snap.arrived
    assert (router.S[CPU_COMPUTE].tasks_served + router.S[GPU_COMPUTE].tasks_served) == snap.arrived


def test_completed_tasks_visit_stages_in_order(small_config):
    router = build(small_config)
    drain(router)
    for task in router.R.tasks():
        compute = CPU_COMPUTE if task.kind == TaskKind.CPU else GPU_COMPUTE
        path = (DATA_STORAGE, CLASSIFICATION, compute, RESULT_STORAGE)
        assert tuple(task.service_exit_times) == path
        stamps = []
        for stage in path:
            stamps += [task.queue_entry_times[stage], task.service_start_times[stage],
                       task.service_exit_times[stage]]
        assert stamps == sorted(stamps)
        assert task.arrival_time <= stamps[0]
        assert task.completion_time == task.service_exit_times[RESULT_STORAGE]
        assert task.arrival_time <= small_config.simulation_time


def test_pure_queue_stage_passes_tasks_through_instantly(small_config):
    config = dataclasses.replace(small_config, classification_service_time=0.0)
    router = build(config)
    drain(router)
    assert router.R.snapshot().completed > 0
    for task in router.R.tasks():
        assert task.service_exit_times[CLASSIFICATION] == task.service_start_times[CLASSIFICATION]
    assert router.S[CLASSIFICATION].utilization(router.clock.now()) == 0.0


def test_zero_gpu_nodes_hold_gpu_tasks_forever(small_config):
    config = dataclasses.replace(small_config, num_gpu_nodes=0, cpu_task_probability=0.0)
    router = build(config)
    drain(router)
    snap = router.R.snapshot()
    assert snap.arrived > 0
    assert snap.completed == 0
    assert router.S[GPU_COMPUTE].queue_length == snap.arrived


def test_compute_queue_prefers_higher_priority(small_config):
    config = dataclasses.replace(small_config, num_cpu_nodes=1)
    router = build(config)
    cpu = router.S[CPU_COMPUTE]
    first = Task(1, TaskKind.CPU, PriorityClass.NORMAL, 0.0)
    router._admit(CPU_COMPUTE, first)
    assert cpu.busy_servers == 1
    normal = Task(2, TaskKind.CPU, PriorityClass.NORMAL, 0.1)
    enterprise = Task(3, TaskKind.CPU, PriorityClass.ENTERPRISE_PRIORITY, 0.2)
    router._admit(CPU_COMPUTE, normal)
    router._admit(CPU_COMPUTE, enterprise)
    ev = router.fel.next()
    router.clock.advance_to(ev.t)
    router.dispatch(ev)
    assert enterprise.service_start_times[CPU_COMPUTE] == pytest.approx(ev.t)
    assert CPU_COMPUTE not in normal.service_start_times
