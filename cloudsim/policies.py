# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# policies.py
# -----------------------------------------------------------------------------
# Purpose:
#   Priority and sampling policies: how priority classes rank, how a priority
#   admission queue orders tasks, and how new tasks draw their kind and class.
#
# Design notes:
#   - Keep pure functions to ease testing (policy -> decision).
#   - Ranking lives here, not on the enum, so the ordering can change without
#     touching the data definition.
#
# Usage:
#   from cloudsim.policies import priority_key, pick_priority_class
# -----------------------------------------------------------------------------

from __future__ import annotations
import random
from typing import Mapping, Tuple

from .entities import PriorityClass, Task, TaskKind

PRIORITY_RANKS = {
    PriorityClass.NORMAL: 1,
    PriorityClass.PERSONAL_PRIORITY: 2,
    PriorityClass.ENTERPRISE_PRIORITY: 3,
}


def priority_rank(priority: PriorityClass) -> int:
    """Numeric rank of a priority class; higher is served first."""
    return PRIORITY_RANKS[priority]


def priority_key(task: Task) -> Tuple[int, float]:
    """
    Sort key for priority admission queues: higher class first, then earlier
    arrival (FCFS within a class). Smaller keys are dequeued first.
    """
    return (-priority_rank(task.priority), task.arrival_time)


def pick_task_kind(rng: random.Random, cpu_probability: float) -> TaskKind:
    return TaskKind.CPU if rng.random() < cpu_probability else TaskKind.GPU


def pick_priority_class(rng: random.Random, mix: Mapping[PriorityClass, float]) -> PriorityClass:
    """
    Draw a priority class from `mix` (class -> probability, summing to 1).
    Classes are walked from lowest to highest rank so a given random stream
    always maps to the same class regardless of dict ordering.
    """
    u = rng.random()
    acc = 0.0
    ordered = sorted(mix, key=priority_rank)
    for cls in ordered:
        acc += mix[cls]
        if u < acc:
            return cls
    # Rounding can leave u just above the accumulated total
    return ordered[-1]
