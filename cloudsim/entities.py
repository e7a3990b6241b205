# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# entities.py
# -----------------------------------------------------------------------------
# Purpose:
#   Entity definitions for the cloud DES: Task plus its kind and priority
#   class. Tasks are the work that flows through the storage, classification,
#   compute and result-storage stages.
#
# Design notes:
#   - A Task is immutable after creation except for its completion time,
#     which is set exactly once when it leaves result storage.
#   - Per-stage timestamps mirror what the run store keeps for every task.
#
# Usage:
#   from cloudsim.entities import Task, TaskKind, PriorityClass
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from .errors import SimulationStateError


class TaskKind(str, Enum):
    CPU = "CPU"
    GPU = "GPU"


class PriorityClass(str, Enum):
    NORMAL = "NORMAL"
    PERSONAL_PRIORITY = "PERSONAL_PRIORITY"
    ENTERPRISE_PRIORITY = "ENTERPRISE_PRIORITY"


@dataclass
class Task:
    tid: int
    kind: TaskKind
    priority: PriorityClass
    arrival_time: float
    completion_time: Optional[float] = None
    queue_entry_times: Dict[str, float] = field(default_factory=dict)     # per-stage admission timestamps
    service_start_times: Dict[str, float] = field(default_factory=dict)   # per-stage begin-service timestamps
    service_exit_times: Dict[str, float] = field(default_factory=dict)    # per-stage end-service timestamps

    @property
    def completed(self) -> bool:
        return self.completion_time is not None

    @property
    def system_time(self) -> Optional[float]:
        """Time spent in the network, or None while the task is still inside."""
        if self.completion_time is None:
            return None
        return self.completion_time - self.arrival_time

    def complete(self, now: float):
        if self.completion_time is not None:
            raise SimulationStateError(f"task {self.tid} already completed at {self.completion_time}")
        if now < self.arrival_time:
            raise SimulationStateError(
                f"task {self.tid} cannot complete at {now} before arriving at {self.arrival_time}"
            )
        self.completion_time = now
