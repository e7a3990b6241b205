# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# records.py
# -----------------------------------------------------------------------------
# Purpose:
#   Shape of what a finished (or interrupted) run hands to an external store:
#   one run record, one record per completed task, one stats row per stage,
#   and per-priority / per-kind aggregates.
#
# Design notes:
#   - Nothing here talks to a database; to_dict() gives JSON-serializable rows
#     for whatever store or report consumes them.
#   - Driver outcome maps to stored status: COMPLETED -> COMPLETED,
#     CANCELLED -> STOPPED, FAILED -> ERROR, anything live -> RUNNING.
#
# Usage:
#   rec = build_run_record(driver, run_name="baseline", started_at=t0)
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .entities import Task
from .metrics import StageStats
from .simulation import RunState, SimulationDriver


class RunStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


STATUS_BY_STATE = {
    RunState.COMPLETED: RunStatus.COMPLETED,
    RunState.CANCELLED: RunStatus.STOPPED,
    RunState.FAILED: RunStatus.ERROR,
}


@dataclass
class TaskRecord:
    task_id: int
    kind: str
    priority: str
    arrival_time: float
    completion_time: Optional[float]
    system_time: Optional[float]
    # stage -> {"entry": t, "start": t, "exit": t}
    stage_times: Dict[str, Dict[str, float]] = field(default_factory=dict)

    @classmethod
    def from_task(cls, task: Task) -> "TaskRecord":
        stages = {}
        for stage, t_entry in task.queue_entry_times.items():
            times = {"entry": t_entry}
            if stage in task.service_start_times:
                times["start"] = task.service_start_times[stage]
            if stage in task.service_exit_times:
                times["exit"] = task.service_exit_times[stage]
            stages[stage] = times
        return cls(
            task_id=task.tid,
            kind=task.kind.value,
            priority=task.priority.value,
            arrival_time=task.arrival_time,
            completion_time=task.completion_time,
            system_time=task.system_time,
            stage_times=stages,
        )

    def to_dict(self) -> Dict:
        return {
            "task_id": self.task_id,
            "kind": self.kind,
            "priority": self.priority,
            "arrival_time": self.arrival_time,
            "completion_time": self.completion_time,
            "system_time": self.system_time,
            "stage_times": {k: dict(v) for k, v in self.stage_times.items()},
        }


@dataclass
class RunRecord:
    run_name: str
    started_at: Optional[datetime]
    ended_at: Optional[datetime]
    simulation_duration: float
    total_arrived: int
    total_completed: int
    avg_system_time: float
    throughput: float
    status: RunStatus
    tasks: List[TaskRecord] = field(default_factory=list)
    stages: List[StageStats] = field(default_factory=list)
    by_priority: Dict[str, Dict[str, float]] = field(default_factory=dict)
    by_kind: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "run_name": self.run_name,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "simulation_duration": self.simulation_duration,
            "total_arrived": self.total_arrived,
            "total_completed": self.total_completed,
            "avg_system_time": self.avg_system_time,
            "throughput": self.throughput,
            "status": self.status.value,
            "tasks": [t.to_dict() for t in self.tasks],
            "stages": [s.to_dict() for s in self.stages],
            "by_priority": {k: dict(v) for k, v in self.by_priority.items()},
            "by_kind": {k: dict(v) for k, v in self.by_kind.items()},
        }


def build_run_record(driver: SimulationDriver, run_name: str | None = None,
                     started_at: datetime | None = None,
                     ended_at: datetime | None = None) -> RunRecord:
    """Collect everything the run store keeps about `driver`'s current run."""
    snap = driver.snapshot()
    res = snap.results
    status = STATUS_BY_STATE.get(snap.state, RunStatus.RUNNING)
    if ended_at is None and status != RunStatus.RUNNING:
        ended_at = datetime.now()
    elapsed = res.total_elapsed if status != RunStatus.RUNNING else snap.time
    avg_by_priority = res.average_system_time_by_priority()
    avg_by_kind = res.average_system_time_by_kind()
    return RunRecord(
        run_name=run_name or f"Simulation Run {int((started_at or datetime.now()).timestamp() * 1000)}",
        started_at=started_at,
        ended_at=ended_at,
        simulation_duration=elapsed,
        total_arrived=res.arrived,
        total_completed=res.completed,
        avg_system_time=res.average_system_time,
        throughput=res.throughput(elapsed),
        status=status,
        tasks=[TaskRecord.from_task(t) for t in snap.tasks],
        stages=list(snap.stages.values()),
        by_priority={
            cls.value: {"total_tasks": n, "avg_system_time": avg_by_priority[cls.value]}
            for cls, n in res.completed_by_priority.items()
        },
        by_kind={
            kind.value: {"total_tasks": n, "avg_system_time": avg_by_kind[kind.value]}
            for kind, n in res.completed_by_kind.items()
        },
    )
