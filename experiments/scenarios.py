"""
experiments/scenarios.py

Holds scenario definitions (configuration overrides) to sweep during
experiments. Add node counts, load levels, and priority mixes here.
"""

from __future__ import annotations

DEFAULT = {
    "name": "default",
    "overrides": {},  # override config keys here per scenario
}

HIGH_LOAD = {
    "name": "high_load",
    "overrides": {
        "arrivals": {
            "mean_interval": 1.0,
        },
        "capacities": {
            "cpu_nodes": 3,
            "gpu_nodes": 2,
        },
    },
}

PRIORITY_HEAVY = {
    "name": "priority_heavy",
    "overrides": {
        "arrivals": {
            "priority_mix": {
                "normal": 0.3,
                "personal_priority": 0.4,
                "enterprise_priority": 0.3,
            },
        },
    },
}

GPU_INTENSIVE = {
    "name": "gpu_intensive",
    "overrides": {
        "arrivals": {
            "cpu_task_probability": 0.3,
        },
        "capacities": {
            "gpu_nodes": 3,
        },
    },
}

SCENARIOS = [DEFAULT, HIGH_LOAD, PRIORITY_HEAVY, GPU_INTENSIVE]
