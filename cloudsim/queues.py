# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# queues.py
# -----------------------------------------------------------------------------
# Purpose:
#   Discrete-event primitives: Clock, Event, EventQueue (the future event
#   list) and ServicePoint, a stage with c parallel servers and a FIFO or
#   priority-ordered admission queue.
#
# Design notes:
#   - Service times are exponential (M/M/c); a ServicePoint whose mean service
#     time is 0 is a pure queue: it gates tasks but never draws a duration and
#     never counts toward utilization.
#   - Busy time and queue length are integrated exactly: every state change
#     first flushes (now - last_change) * current count, then mutates.
#   - Events scheduled for the same time come out in insertion order.
#
# Usage:
#   from cloudsim.queues import Clock, Event, EventKind, EventQueue, ServicePoint
# -----------------------------------------------------------------------------

from __future__ import annotations
import heapq, itertools, math, random, threading
from collections import deque
from enum import Enum
from typing import Any, List, Optional

from .entities import Task
from .errors import SimulationStateError
from .metrics import StageStats
from .policies import priority_key

FIFO = "fifo"
PRIORITY = "priority"


class Clock:
    """Current simulated time. Owned by the driver; callers serialize access."""
    def __init__(self):
        self.t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance_to(self, t: float):
        if t < self.t:
            raise SimulationStateError(f"clock cannot move backward from {self.t} to {t}")
        self.t = t

    def reset(self):
        self.t = 0.0


class EventKind(str, Enum):
    ARRIVAL = "ARRIVAL"
    DEP_DATA_STORAGE = "DEP_DATA_STORAGE"
    DEP_CLASSIFICATION = "DEP_CLASSIFICATION"
    DEP_CPU_COMPUTE = "DEP_CPU_COMPUTE"
    DEP_GPU_COMPUTE = "DEP_GPU_COMPUTE"
    DEP_RESULT_STORAGE = "DEP_RESULT_STORAGE"


class Event:
    """Minimal event object for the future event list."""
    __slots__ = ("t", "kind", "task", "seq")
    def __init__(self, t: float, kind: EventKind, task: Optional[Task] = None):
        self.t = t; self.kind = kind; self.task = task; self.seq = 0
    def __lt__(self, other: "Event"):
        return (self.t, self.seq) < (other.t, other.seq)
    def __repr__(self):
        tid = self.task.tid if self.task is not None else None
        return f"Event(t={self.t:.4f}, kind={self.kind.value}, task={tid})"


class EventQueue:
    """Min-heap of scheduled events, earliest first, ties in insertion order."""
    def __init__(self):
        self._heap: List[Event] = []
        self._seq = itertools.count()

    def schedule(self, ev: Event):
        ev.seq = next(self._seq)
        heapq.heappush(self._heap, ev)

    def next(self) -> Optional[Event]:
        return heapq.heappop(self._heap) if self._heap else None

    def peek_time(self) -> Optional[float]:
        return self._heap[0].t if self._heap else None

    def has_pending(self) -> bool:
        return bool(self._heap)

    def clear(self):
        self._heap.clear()
        self._seq = itertools.count()

    def __len__(self):
        return len(self._heap)


class ServicePoint:
    """Stage with c parallel servers and an admission queue.

    Parameters
    ----------
    name : str
        Stage name for logging/metrics.
    c : int or math.inf
        Number of parallel servers; math.inf for an unbounded pure queue.
    mean_service_time : float
        Mean of the exponential service time; 0 makes this a pure queue.
    discipline : str
        "fifo" or "priority" (see policies.priority_key).
    rng : random.Random
        Stream used for service-time draws.

    Notes
    -----
    - Every public method takes the point's lock, so an observer thread can
      read counters while the driver mutates them.
    - begin_service() is the only way a task moves from queued to in service.
    """
    def __init__(self, name: str, c: float = 1, mean_service_time: float = 0.0,
                 discipline: str = FIFO, rng: random.Random | None = None):
        if discipline not in (FIFO, PRIORITY):
            raise ValueError(f"Unknown queue discipline {discipline!r} for {name}")
        self.name = name
        self.c = c
        self.mean_service_time = mean_service_time
        self.discipline = discipline
        self.rng = rng or random.Random()
        self._lock = threading.RLock()
        self._fifo: deque = deque()
        self._heap: List[Any] = []
        self._seq = itertools.count()
        self.in_service: int = 0
        self.tasks_served: int = 0
        self.tasks_started: int = 0
        self.max_queue_len: int = 0
        self.busy_time: float = 0.0
        self.queue_area: float = 0.0
        self.total_wait: float = 0.0
        self.last_change: float = 0.0

    @property
    def is_pure_queue(self) -> bool:
        return self.mean_service_time == 0

    @property
    def queue_length(self) -> int:
        with self._lock:
            return len(self._heap) if self.discipline == PRIORITY else len(self._fifo)

    @property
    def busy_servers(self) -> int:
        with self._lock:
            return self.in_service

    def has_capacity(self) -> bool:
        with self._lock:
            return self.in_service < self.c

    def enqueue(self, task: Task, now: float | None = None):
        """Admit `task` to the waiting line. `now` defaults to the last flush time."""
        with self._lock:
            t = self.last_change if now is None else now
            self._flush(t)
            # Remember when this task joined so its wait can be measured at begin_service
            task.queue_entry_times[self.name] = t
            if self.discipline == PRIORITY:
                heapq.heappush(self._heap, (priority_key(task), next(self._seq), task))
            else:
                self._fifo.append(task)
            self.max_queue_len = max(self.max_queue_len, self._qlen())

    def begin_service(self, now: float) -> Optional[Task]:
        with self._lock:
            if self._qlen() == 0 or self.in_service >= self.c:
                return None
            self._flush(now)
            if self.discipline == PRIORITY:
                task = heapq.heappop(self._heap)[-1]
            else:
                task = self._fifo.popleft()
            self.in_service += 1
            self.tasks_started += 1
            t_arr = task.queue_entry_times.get(self.name, now)
            self.total_wait += max(now - t_arr, 0.0)
            task.service_start_times[self.name] = now
            return task

    def draw_service_duration(self) -> float:
        if self.is_pure_queue:
            raise SimulationStateError(f"{self.name} is a pure queue and has no service time")
        rate = 1.0 / self.mean_service_time
        while True:
            st = self.rng.expovariate(rate)
            if st > 0.0:
                return st

    def end_service(self, now: float):
        with self._lock:
            if self.in_service == 0:
                return
            self._flush(now)
            self.in_service -= 1
            self.tasks_served += 1

    def utilization(self, now: float) -> float:
        """Busy server-time divided by (now * c); 0 for pure queues."""
        with self._lock:
            if self.is_pure_queue or self.c == 0 or math.isinf(self.c) or now <= 0:
                return 0.0
            self._flush(now)
            return self.busy_time / (now * self.c)

    def average_queue_length(self, now: float) -> float:
        with self._lock:
            if now <= 0:
                return 0.0
            self._flush(now)
            return self.queue_area / now

    def average_wait(self) -> float:
        with self._lock:
            return self.total_wait / self.tasks_started if self.tasks_started else 0.0

    def average_service_time(self) -> float:
        with self._lock:
            return self.busy_time / self.tasks_served if self.tasks_served else 0.0

    def stats(self, now: float) -> StageStats:
        with self._lock:
            return StageStats(
                name=self.name,
                capacity=self.c,
                served=self.tasks_served,
                started=self.tasks_started,
                busy_servers=self.in_service,
                queue_length=self._qlen(),
                max_queue_length=self.max_queue_len,
                avg_queue_length=self.average_queue_length(now),
                avg_wait=self.average_wait(),
                avg_service_time=self.average_service_time(),
                utilization=self.utilization(now),
            )

    def reset(self):
        with self._lock:
            self._fifo.clear()
            self._heap.clear()
            self._seq = itertools.count()
            self.in_service = 0
            self.tasks_served = 0
            self.tasks_started = 0
            self.max_queue_len = 0
            self.busy_time = 0.0
            self.queue_area = 0.0
            self.total_wait = 0.0
            self.last_change = 0.0

    def _qlen(self) -> int:
        return len(self._heap) if self.discipline == PRIORITY else len(self._fifo)

    def _flush(self, now: float):
        # Integrate busy servers and queue length over the interval since the last change
        dt = now - self.last_change
        if dt > 0:
            if not self.is_pure_queue:
                self.busy_time += self.in_service * dt
            self.queue_area += self._qlen() * dt
            self.last_change = now

    def __repr__(self):
        return (f"ServicePoint({self.name!r}, c={self.c}, busy={self.in_service}, "
                f"queued={self._qlen()}, served={self.tasks_served})")
