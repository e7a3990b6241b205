# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# arrivals.py
# -----------------------------------------------------------------------------
# Purpose:
#   Generate exogenous task arrivals as an open-loop Poisson process: each
#   arrival schedules the next one, independent of the network's state.
#
# Design notes:
#   - The process owns its task-id counter, so every run numbers tasks from 1.
#   - Arrivals past the horizon are never created.
#
# Usage:
#   proc = ArrivalProcess(cfg, rng); task = proc.next_task(now)
# -----------------------------------------------------------------------------

from __future__ import annotations
import itertools, random
from typing import Optional

from .config import SimulationConfig
from .entities import Task
from .policies import pick_priority_class, pick_task_kind


class ArrivalProcess:
    def __init__(self, cfg: SimulationConfig, rng: random.Random):
        self.cfg = cfg
        self.rng = rng
        self._ids = itertools.count(1)

    def draw_interarrival(self) -> float:
        return self.rng.expovariate(1.0 / self.cfg.mean_arrival_interval)

    def next_task(self, now: float) -> Optional[Task]:
        """Create the task arriving one exponential gap after `now`, or None past the horizon."""
        t_arr = now + self.draw_interarrival()
        if t_arr > self.cfg.simulation_time:
            return None
        kind = pick_task_kind(self.rng, self.cfg.cpu_task_probability)
        priority = pick_priority_class(self.rng, self.cfg.priority_mix)
        return Task(next(self._ids), kind, priority, t_arr)
