# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# config.py
# -----------------------------------------------------------------------------
# Purpose:
#   Load the YAML config, apply scenario overrides, and turn the nested dict
#   into a validated SimulationConfig.
#
# Design notes:
#   - Config files are nested dicts (sim / arrivals / service_times /
#     capacities / pacing). Missing keys fall back to the defaults below.
#   - Validation happens once, when a driver is initialized; the only value
#     that is ever clamped instead of rejected is the live speed multiplier.
#
# Usage:
#   cfg = load_cfg(); cfg = apply_overrides(cfg, scenario["overrides"])
#   config = SimulationConfig.from_dict(cfg)
# -----------------------------------------------------------------------------

from __future__ import annotations
import copy, logging, math, os
from dataclasses import dataclass, field
from typing import Dict, Optional

import yaml

from .entities import PriorityClass
from .errors import ConfigError

LOGGER = logging.getLogger(__name__)

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CONFIG_PATH = os.path.join(ROOT, "config", "baseline.yaml")


def _default_mix() -> Dict[PriorityClass, float]:
    return {
        PriorityClass.NORMAL: 0.6,
        PriorityClass.PERSONAL_PRIORITY: 0.3,
        PriorityClass.ENTERPRISE_PRIORITY: 0.1,
    }


@dataclass
class SimulationConfig:
    """Parameters of one simulation run."""

    # Mean time between task arrivals (seconds)
    mean_arrival_interval: float = 1.0
    # Simulated horizon (seconds); no arrival is generated after it
    simulation_time: float = 1000.0
    # Compute node counts (0 leaves tasks of that kind queued forever)
    num_cpu_nodes: int = 4
    num_gpu_nodes: int = 3
    # Servers at the single-lane stages
    data_storage_servers: int = 1
    classification_servers: int = 1
    result_storage_servers: int = 1
    cpu_task_probability: float = 0.7
    priority_mix: Dict[PriorityClass, float] = field(default_factory=_default_mix)
    # Mean service times (seconds); 0 = pure queue
    data_storage_service_time: float = 1.0
    classification_service_time: float = 0.5
    cpu_compute_service_time: float = 5.0
    gpu_compute_service_time: float = 8.0
    result_storage_service_time: float = 1.5
    # Playback
    speed: float = 1.0
    min_speed: float = 0.1
    max_speed: float = 100.0
    pacing_interval: float = 0.05
    seed: Optional[int] = None
    # Keep every completed Task on the results (False = counts only)
    retain_tasks: bool = True

    @classmethod
    def from_dict(cls, cfg: dict) -> "SimulationConfig":
        """Build a config from the nested YAML layout; absent keys keep defaults."""
        d = cls()
        sim = cfg.get("sim", {}) or {}
        arr = cfg.get("arrivals", {}) or {}
        svc = cfg.get("service_times", {}) or {}
        caps = cfg.get("capacities", {}) or {}
        pacing = cfg.get("pacing", {}) or {}
        mix_cfg = arr.get("priority_mix")
        mix = d.priority_mix
        if mix_cfg is not None:
            mix = {
                PriorityClass.NORMAL: float(mix_cfg.get("normal", 0.0)),
                PriorityClass.PERSONAL_PRIORITY: float(mix_cfg.get("personal_priority", 0.0)),
                PriorityClass.ENTERPRISE_PRIORITY: float(mix_cfg.get("enterprise_priority", 0.0)),
            }
        return cls(
            mean_arrival_interval=float(arr.get("mean_interval", d.mean_arrival_interval)),
            simulation_time=float(sim.get("simulation_time", d.simulation_time)),
            num_cpu_nodes=caps.get("cpu_nodes", d.num_cpu_nodes),
            num_gpu_nodes=caps.get("gpu_nodes", d.num_gpu_nodes),
            data_storage_servers=caps.get("data_storage", d.data_storage_servers),
            classification_servers=caps.get("classification", d.classification_servers),
            result_storage_servers=caps.get("result_storage", d.result_storage_servers),
            cpu_task_probability=float(arr.get("cpu_task_probability", d.cpu_task_probability)),
            priority_mix=mix,
            data_storage_service_time=float(svc.get("data_storage", d.data_storage_service_time)),
            classification_service_time=float(svc.get("classification", d.classification_service_time)),
            cpu_compute_service_time=float(svc.get("cpu_compute", d.cpu_compute_service_time)),
            gpu_compute_service_time=float(svc.get("gpu_compute", d.gpu_compute_service_time)),
            result_storage_service_time=float(svc.get("result_storage", d.result_storage_service_time)),
            speed=float(sim.get("speed", d.speed)),
            min_speed=float(pacing.get("min_speed", d.min_speed)),
            max_speed=float(pacing.get("max_speed", d.max_speed)),
            pacing_interval=float(pacing.get("interval_seconds", d.pacing_interval)),
            seed=sim.get("seed", d.seed),
            retain_tasks=bool(sim.get("retain_tasks", d.retain_tasks)),
        )

    def validate(self):
        """Raise ConfigError describing the first invalid parameter."""
        if not (self.mean_arrival_interval > 0 and math.isfinite(self.mean_arrival_interval)):
            raise ConfigError(f"mean_arrival_interval must be a finite value > 0, got {self.mean_arrival_interval}")
        if not self.simulation_time > 0:
            raise ConfigError(f"simulation_time must be > 0, got {self.simulation_time}")
        for name in ("num_cpu_nodes", "num_gpu_nodes", "data_storage_servers",
                     "classification_servers", "result_storage_servers"):
            val = getattr(self, name)
            if not (isinstance(val, (int, float)) and math.isfinite(val) and int(val) == val):
                raise ConfigError(f"{name} must be a whole number, got {val!r}")
        for name in ("num_cpu_nodes", "num_gpu_nodes"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)}")
        for name in ("data_storage_servers", "classification_servers", "result_storage_servers"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1, got {getattr(self, name)}")
        for name in ("data_storage_service_time", "classification_service_time",
                     "cpu_compute_service_time", "gpu_compute_service_time",
                     "result_storage_service_time"):
            val = getattr(self, name)
            if not (val >= 0 and math.isfinite(val)):
                raise ConfigError(f"{name} must be a finite value >= 0, got {val}")
        if not 0.0 <= self.cpu_task_probability <= 1.0:
            raise ConfigError(f"cpu_task_probability must be in [0, 1], got {self.cpu_task_probability}")
        if set(self.priority_mix) != set(PriorityClass):
            raise ConfigError("priority_mix must give a probability for every priority class")
        for cls, p in self.priority_mix.items():
            if not 0.0 <= p <= 1.0:
                raise ConfigError(f"priority probability for {cls.value} must be in [0, 1], got {p}")
        total = sum(self.priority_mix.values())
        if abs(total - 1.0) > 1e-9:
            raise ConfigError(f"priority probabilities must sum to 1, got {total}")
        if not 0 < self.min_speed <= self.max_speed:
            raise ConfigError(f"speed range [{self.min_speed}, {self.max_speed}] is empty")
        if not self.pacing_interval > 0:
            raise ConfigError(f"pacing interval must be > 0, got {self.pacing_interval}")

    def clamp_speed(self, speed: float) -> float:
        return max(self.min_speed, min(self.max_speed, speed))


def load_cfg(path: str | None = None) -> Dict:
    path = path or DEFAULT_CONFIG_PATH
    with open(path, "r") as f:
        cfg = yaml.safe_load(f) or {}
    LOGGER.info(f"Loaded configuration from {path}")
    return cfg


def apply_overrides(cfg: Dict, overrides: Dict) -> Dict:
    """Apply scenario overrides (recursive merge) on top of the base config."""
    new = copy.deepcopy(cfg)

    def _merge(dst: Dict, src: Dict):
        for key, val in src.items():
            if isinstance(val, dict) and isinstance(dst.get(key), dict):
                _merge(dst[key], val)
            else:
                dst[key] = copy.deepcopy(val)

    _merge(new, overrides)
    return new
