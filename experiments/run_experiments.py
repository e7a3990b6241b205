"""
experiments/run_experiments.py

Experiment harness that loads the baseline config, applies scenario overrides,
runs multiple independent replications, and reports KPIs with confidence
intervals. Plots of completions over time and per-priority system times are
written to experiments/output.
"""

from __future__ import annotations
import copy, logging, math, os, sys
from statistics import mean, stdev
from typing import Callable, Dict, List

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from scipy.stats import t

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from cloudsim.config import apply_overrides, load_cfg
from cloudsim.entities import PriorityClass
from cloudsim.simulation import run_once
from experiments.scenarios import SCENARIOS

OUT_DIR = os.path.join(ROOT, "experiments", "output")


def mean_ci(values: List[float], confidence_level: float) -> tuple[float, float]:
    """Return (mean, half-width) using a t-distribution critical value."""
    if not values:
        return 0.0, 0.0
    mu = mean(values)
    n = len(values)
    if n < 2:
        return mu, 0.0
    level = min(max(confidence_level, 0.0), 0.999999)
    alpha = 1.0 - level
    tcrit = t.ppf(1 - alpha / 2.0, n - 1)
    return mu, tcrit * (stdev(values) / math.sqrt(n))


def series(results: List[Dict], extractor: Callable[[Dict], float]) -> List[float]:
    """Collect a numeric series from each replication result."""
    return [float(extractor(res)) for res in results]


def avg_nested(results: List[Dict], key: str) -> Dict[str, float]:
    """Average nested dictionaries (e.g., completed_by_priority) across replications."""
    if not results:
        return {}
    totals: Dict[str, float] = {}
    for res in results:
        for subk, val in res.get(key, {}).items():
            totals[subk] = totals.get(subk, 0.0) + float(val)
    return {subk: totals[subk] / len(results) for subk in totals}


def completed_at(points: List[Dict[str, float]], when: float) -> float:
    """Cumulative completions at time `when` (step function over the time series)."""
    done = 0.0
    for pt in points:
        if pt["time"] > when:
            break
        done = pt["completed"]
    return done


def aggregate_time_series(results: List[Dict], horizon: float, interval: float) -> List[Dict[str, float]]:
    """
    Average the per-replication completion counts on a fixed interval grid so
    throughput per interval can be plotted over the simulated horizon.
    """
    if not results or horizon <= 0:
        return []
    if interval <= 0:
        interval = horizon / 20.0
    steps = int(math.ceil(horizon / interval))
    aggregated = [{"time": 0.0, "completed_interval": 0.0}]
    for idx in range(1, steps + 1):
        start, end = (idx - 1) * interval, min(idx * interval, horizon)
        vals = []
        for res in results:
            pts = res.get("time_series", [])
            vals.append(completed_at(pts, end) - completed_at(pts, start))
        aggregated.append({"time": end, "completed_interval": sum(vals) / len(vals)})
    return aggregated


def plot_completions(all_series: List[Dict], horizon: float):
    """Plot completions per interval for every scenario on one figure."""
    if not all_series:
        return None
    plt.figure(figsize=(9, 5))
    for entry in all_series:
        pts = entry["series"]
        if not pts:
            continue
        plt.plot([p["time"] for p in pts], [p["completed_interval"] for p in pts],
                 linewidth=1.5, label=entry["name"])
    plt.xlim(0, horizon)
    plt.xlabel("Simulated time (s)")
    plt.ylabel("Tasks completed per interval")
    plt.title("Completions over time across scenarios")
    plt.grid(True, linestyle="--", alpha=0.4)
    plt.legend()
    os.makedirs(OUT_DIR, exist_ok=True)
    out_path = os.path.join(OUT_DIR, "all_scenarios_completions_by_time.png")
    plt.tight_layout()
    plt.savefig(out_path, dpi=160)
    plt.close()
    return out_path


def plot_priority_system_times(name: str, by_priority: Dict[str, tuple[float, float]]):
    """Bar chart of mean system time per priority class with CI error bars."""
    if not by_priority:
        return None
    labels = list(by_priority)
    means = [by_priority[k][0] for k in labels]
    halves = [by_priority[k][1] for k in labels]
    plt.figure(figsize=(7, 4))
    plt.bar(labels, means, yerr=halves, capsize=4, color="#2563eb")
    plt.ylabel("Mean system time (s)")
    plt.title(f"{name}: system time by priority class")
    plt.grid(True, axis="y", linestyle="--", alpha=0.4)
    os.makedirs(OUT_DIR, exist_ok=True)
    out_path = os.path.join(OUT_DIR, f"{name.lower().replace(' ', '_')}_priority_system_time.png")
    plt.tight_layout()
    plt.savefig(out_path, dpi=160)
    plt.close()
    return out_path


def main():
    """Entry point: drive all scenarios, replications, and report KPIs."""
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    cfg = load_cfg()
    exp_cfg = cfg.get("experiments", {})
    replications = max(1, int(exp_cfg.get("replications", 1)))
    confidence = float(exp_cfg.get("confidence_level", 0.95))
    level_pct = confidence * 100.0
    default_seed = cfg.get("sim", {}).get("seed", 0) or 0

    all_series: List[Dict] = []
    max_horizon = 0.0
    for sc in SCENARIOS:
        sc_base_cfg = apply_overrides(cfg, sc["overrides"])
        scenario_seed = sc_base_cfg.get("sim", {}).get("seed", default_seed) or 0
        horizon = float(sc_base_cfg.get("sim", {}).get("simulation_time", 0.0))
        interval = float(exp_cfg.get("time_series_interval", horizon / 20.0 if horizon else 0.0))
        max_horizon = max(max_horizon, horizon)
        results = []
        for rep in range(replications):
            sc_cfg = copy.deepcopy(sc_base_cfg)
            sc_cfg.setdefault("sim", {})
            # Advance the seed per replication so replications stay independent
            sc_cfg["sim"]["seed"] = scenario_seed + rep
            results.append(run_once(sc_cfg))

        arrived = mean_ci(series(results, lambda r: r["arrived"]), confidence)
        completed = mean_ci(series(results, lambda r: r["completed"]), confidence)
        throughput = mean_ci(series(results, lambda r: r["throughput"]), confidence)
        sys_time = mean_ci(series(results, lambda r: r["avg_system_time"]), confidence)
        by_priority = {
            cls.value: mean_ci(series(results, lambda r, c=cls.value: r["avg_system_time_by_priority"][c]), confidence)
            for cls in PriorityClass
        }
        by_kind = avg_nested(results, "avg_system_time_by_kind")
        utilizations = {k: round(v * 100.0, 1) for k, v in avg_nested(results, "station_utilization").items()}
        all_series.append({
            "name": sc["name"],
            "series": aggregate_time_series(results, horizon, interval),
        })
        plot_path = plot_priority_system_times(sc["name"], by_priority)

        print(f"Scenario: {sc['name']} (replications={replications}, {level_pct:.1f}% CI, "
              f"seeds {scenario_seed}-{scenario_seed + replications - 1})")
        print(f"  Tasks arrived: {arrived[0]:.1f} ± {arrived[1]:.1f}")
        print(f"  Tasks completed: {completed[0]:.1f} ± {completed[1]:.1f}")
        print(f"  Throughput: {throughput[0]:.4f} ± {throughput[1]:.4f} tasks/s")
        print(f"  Avg system time: {sys_time[0]:.2f} ± {sys_time[1]:.2f} s")
        for name, (mu, half) in by_priority.items():
            print(f"    {name}: {mu:.2f} ± {half:.2f} s")
        print(f"  Avg system time by kind (mean s): { {k: round(v, 2) for k, v in by_kind.items()} }")
        print(f"  Server utilization (mean % busy): {utilizations}")
        if plot_path:
            print(f"  Priority system-time plot saved to: {plot_path}")
        print("-")

    cross_plot = plot_completions(all_series, max_horizon)
    if cross_plot:
        print(f"\nAll-scenario completions plot saved to: {cross_plot}")


if __name__ == "__main__":
    main()
