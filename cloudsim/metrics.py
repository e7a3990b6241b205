# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# metrics.py
# -----------------------------------------------------------------------------
# Purpose:
#   Collect and summarize run KPIs: arrivals, completions, breakdowns by task
#   kind and priority class, system-time statistics, and throughput.
#
# Design notes:
#   - Keep side-effect methods (record_*) for instrumentation from the router.
#   - Only the driver thread writes; readers call snapshot(), which copies
#     every counter under the lock so no half-applied completion is visible.
#   - Summaries return JSON-serializable dicts for easy tabulation.
#
# Usage:
#   R = ResultsAggregator(); R.record_arrival(); R.snapshot().summary()
# -----------------------------------------------------------------------------

from __future__ import annotations
import math, threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List

from .entities import PriorityClass, Task, TaskKind
from .errors import SimulationStateError


@dataclass(frozen=True)
class ResultsSnapshot:
    arrived: int = 0
    completed: int = 0
    completed_by_kind: Dict[TaskKind, int] = field(default_factory=dict)
    completed_by_priority: Dict[PriorityClass, int] = field(default_factory=dict)
    system_time_by_kind: Dict[TaskKind, float] = field(default_factory=dict)
    system_time_by_priority: Dict[PriorityClass, float] = field(default_factory=dict)
    total_system_time: float = 0.0
    min_system_time: float = 0.0
    max_system_time: float = 0.0
    total_elapsed: float = 0.0

    @property
    def average_system_time(self) -> float:
        return self.total_system_time / self.completed if self.completed else 0.0

    def throughput(self, elapsed: float | None = None) -> float:
        elapsed = self.total_elapsed if elapsed is None else elapsed
        return self.completed / elapsed if elapsed > 0 else 0.0

    def average_system_time_by_kind(self) -> Dict[str, float]:
        return {
            kind.value: (self.system_time_by_kind.get(kind, 0.0) / n if n else 0.0)
            for kind, n in ((k, self.completed_by_kind.get(k, 0)) for k in TaskKind)
        }

    def average_system_time_by_priority(self) -> Dict[str, float]:
        return {
            cls.value: (self.system_time_by_priority.get(cls, 0.0) / n if n else 0.0)
            for cls, n in ((c, self.completed_by_priority.get(c, 0)) for c in PriorityClass)
        }

    def summary(self) -> Dict:
        return {
            "arrived": self.arrived,
            "completed": self.completed,
            "in_system": self.arrived - self.completed,
            "completed_by_kind": {k.value: self.completed_by_kind.get(k, 0) for k in TaskKind},
            "completed_by_priority": {c.value: self.completed_by_priority.get(c, 0) for c in PriorityClass},
            "avg_system_time": self.average_system_time,
            "min_system_time": self.min_system_time,
            "max_system_time": self.max_system_time,
            "avg_system_time_by_kind": self.average_system_time_by_kind(),
            "avg_system_time_by_priority": self.average_system_time_by_priority(),
            "total_elapsed": self.total_elapsed,
            "throughput": self.throughput(),
        }


class ResultsAggregator:
    def __init__(self, retain_tasks: bool = True):
        self.retain_tasks = retain_tasks
        self._lock = threading.Lock()
        self.reset()

    def reset(self):
        with self._lock:
            self.arrived = 0
            self.completed = 0
            self.completed_by_kind = defaultdict(int)         # throughput per task kind
            self.completed_by_priority = defaultdict(int)     # throughput per priority class
            self.system_time_by_kind = defaultdict(float)     # summed system times for per-kind averages
            self.system_time_by_priority = defaultdict(float) # summed system times for per-class averages
            self.total_system_time = 0.0
            self.min_system_time = math.inf
            self.max_system_time = 0.0
            self.total_elapsed = 0.0
            self.completed_tasks: List[Task] = []
            self.time_series: List[Dict[str, float]] = []

    def record_arrival(self):
        with self._lock:
            self.arrived += 1

    def record_completion(self, task: Task):
        st = task.system_time
        if st is None:
            raise SimulationStateError(f"task {task.tid} has no completion time")
        with self._lock:
            self.completed += 1
            self.completed_by_kind[task.kind] += 1
            self.completed_by_priority[task.priority] += 1
            self.system_time_by_kind[task.kind] += st
            self.system_time_by_priority[task.priority] += st
            self.total_system_time += st
            self.min_system_time = min(self.min_system_time, st)
            self.max_system_time = max(self.max_system_time, st)
            if self.retain_tasks:
                self.completed_tasks.append(task)
                self._record_time_series(task.completion_time)

    def set_total_elapsed(self, elapsed: float):
        with self._lock:
            self.total_elapsed = elapsed

    def average_system_time(self) -> float:
        with self._lock:
            return self.total_system_time / self.completed if self.completed else 0.0

    def throughput(self, elapsed: float) -> float:
        with self._lock:
            return self.completed / elapsed if elapsed > 0 else 0.0

    def tasks(self) -> List[Task]:
        """Copy of the completed tasks (empty when retain_tasks is False, as is series())."""
        with self._lock:
            return list(self.completed_tasks)

    def series(self) -> List[Dict[str, float]]:
        with self._lock:
            return [dict(pt) for pt in self.time_series]

    def snapshot(self) -> ResultsSnapshot:
        with self._lock:
            return ResultsSnapshot(
                arrived=self.arrived,
                completed=self.completed,
                completed_by_kind=dict(self.completed_by_kind),
                completed_by_priority=dict(self.completed_by_priority),
                system_time_by_kind=dict(self.system_time_by_kind),
                system_time_by_priority=dict(self.system_time_by_priority),
                total_system_time=self.total_system_time,
                min_system_time=self.min_system_time if self.completed else 0.0,
                max_system_time=self.max_system_time,
                total_elapsed=self.total_elapsed,
            )

    def _record_time_series(self, t: float):
        """Cumulative point for plotting completions and mean system time over a run."""
        self.time_series.append({
            "time": t,
            "completed": self.completed,
            "avg_system_time": self.total_system_time / self.completed,
        })

    def summary(self) -> Dict:
        return self.snapshot().summary()


@dataclass(frozen=True)
class StageStats:
    """Per-stage aggregates, one row per service point in the run store."""
    name: str
    capacity: float
    served: int
    started: int
    busy_servers: int
    queue_length: int
    max_queue_length: int
    avg_queue_length: float
    avg_wait: float
    avg_service_time: float
    utilization: float

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "capacity": None if math.isinf(self.capacity) else self.capacity,
            "served": self.served,
            "started": self.started,
            "busy_servers": self.busy_servers,
            "queue_length": self.queue_length,
            "max_queue_length": self.max_queue_length,
            "avg_queue_length": self.avg_queue_length,
            "avg_wait": self.avg_wait,
            "avg_service_time": self.avg_service_time,
            "utilization": self.utilization,
        }
