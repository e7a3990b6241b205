# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# network.py
# -----------------------------------------------------------------------------
# Purpose:
#   Router and network wiring. Decides where tasks go on arrival and after
#   each stage departure, and keeps every stage pulling work forward.
#
# Design notes:
#   - Path: data_storage -> classification -> cpu_compute | gpu_compute
#     -> result_storage -> exit.
#   - Every departure handler has the same shape: end service upstream, admit
#     downstream (or finalize), then start the next waiting task upstream.
#   - A pure-queue stage (mean service 0) releases tasks at the current time.
#
# Usage:
#   router = Router(clock, fel, stations, results, arrivals)
#   router.dispatch(event)
# -----------------------------------------------------------------------------

from __future__ import annotations
from typing import Dict, Optional

from .arrivals import ArrivalProcess
from .entities import Task, TaskKind
from .metrics import ResultsAggregator
from .queues import Clock, Event, EventKind, EventQueue, ServicePoint
from .stations import CLASSIFICATION, CPU_COMPUTE, DATA_STORAGE, GPU_COMPUTE, RESULT_STORAGE

DEPARTURE_KINDS = {
    DATA_STORAGE: EventKind.DEP_DATA_STORAGE,
    CLASSIFICATION: EventKind.DEP_CLASSIFICATION,
    CPU_COMPUTE: EventKind.DEP_CPU_COMPUTE,
    GPU_COMPUTE: EventKind.DEP_GPU_COMPUTE,
    RESULT_STORAGE: EventKind.DEP_RESULT_STORAGE,
}
STAGE_OF_KIND = {kind: stage for stage, kind in DEPARTURE_KINDS.items()}


class Router:
    def __init__(self, clock: Clock, fel: EventQueue, stations: Dict[str, ServicePoint],
                 results: ResultsAggregator, arrivals: ArrivalProcess):
        self.clock = clock
        self.fel = fel
        self.S = stations
        self.R = results
        self.arrivals = arrivals

    def schedule_next_arrival(self) -> Optional[Task]:
        task = self.arrivals.next_task(self.clock.now())
        if task is not None:
            self.fel.schedule(Event(task.arrival_time, EventKind.ARRIVAL, task))
        return task

    def dispatch(self, ev: Event):
        if ev.kind == EventKind.ARRIVAL:
            self.on_arrival(ev.task)
        else:
            self.on_departure(STAGE_OF_KIND[ev.kind], ev.task)

    # Incoming arrivals; the next one is always scheduled (open loop)
    def on_arrival(self, task: Task):
        self.R.record_arrival()
        self._admit(DATA_STORAGE, task)
        self.schedule_next_arrival()

    def on_departure(self, stage: str, task: Task):
        now = self.clock.now()
        self.S[stage].end_service(now)
        task.service_exit_times[stage] = now
        target = self.next_stage(stage, task)
        if target is None:
            task.complete(now)
            self.R.record_completion(task)
        else:
            self._admit(target, task)
        # A server just freed up here; pull the next waiting task into it
        self.try_start_service(stage)

    @staticmethod
    def next_stage(stage: str, task: Task) -> Optional[str]:
        if stage == DATA_STORAGE:
            return CLASSIFICATION
        if stage == CLASSIFICATION:
            return CPU_COMPUTE if task.kind == TaskKind.CPU else GPU_COMPUTE
        if stage in (CPU_COMPUTE, GPU_COMPUTE):
            return RESULT_STORAGE
        return None

    def try_start_service(self, stage: str) -> Optional[Task]:
        """Begin service on the head of `stage`'s queue and schedule its departure."""
        sp = self.S[stage]
        now = self.clock.now()
        task = sp.begin_service(now)
        if task is None:
            return None
        st = 0.0 if sp.is_pure_queue else sp.draw_service_duration()
        self.fel.schedule(Event(now + st, DEPARTURE_KINDS[stage], task))
        return task

    def _admit(self, stage: str, task: Task):
        sp = self.S[stage]
        sp.enqueue(task, self.clock.now())
        if sp.has_capacity():
            self.try_start_service(stage)
