"""
experiments/playback.py

Paced (wall-clock) run of one scenario observed from the console. Prints the
simulated clock and running counts every few real seconds, and optionally
demonstrates live control: a pause/resume in the middle of the run and a
speed change.

    python experiments/playback.py --scenario high_load --speed 50 --horizon 300
"""

from __future__ import annotations
import argparse, logging, os, sys, threading, time
from datetime import datetime

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from cloudsim.config import SimulationConfig, apply_overrides, load_cfg
from cloudsim.records import build_run_record
from cloudsim.simulation import SimulationDriver
from experiments.scenarios import SCENARIOS


class ConsoleListener:
    """Throttled console output for time updates plus a completion flag."""

    def __init__(self, driver: SimulationDriver, every_seconds: float = 1.0):
        self.driver = driver
        self.every = every_seconds
        self._last = 0.0
        self.done = threading.Event()

    def on_time_update(self, t: float):
        wall = time.monotonic()
        if wall - self._last < self.every:
            return
        self._last = wall
        res = self.driver.results.snapshot()
        print(f"  t={t:9.2f}  arrived={res.arrived:5d}  completed={res.completed:5d}  "
              f"speed={self.driver.speed:g}x")

    def on_complete(self):
        self.done.set()


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Paced playback of one cloud simulation run.")
    p.add_argument("--config", default=None, help="YAML config (defaults to config/baseline.yaml)")
    p.add_argument("--scenario", default="default", choices=[s["name"] for s in SCENARIOS])
    p.add_argument("--speed", type=float, default=None, help="simulated seconds per real second")
    p.add_argument("--horizon", type=float, default=None, help="override simulation_time")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--demo-controls", action="store_true",
                   help="pause for 2 s, step one event, then resume at double speed")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    cfg = load_cfg(args.config)
    scenario = next(s for s in SCENARIOS if s["name"] == args.scenario)
    cfg = apply_overrides(cfg, scenario["overrides"])
    sim_overrides = {}
    if args.speed is not None:
        sim_overrides["speed"] = args.speed
    if args.horizon is not None:
        sim_overrides["simulation_time"] = args.horizon
    if args.seed is not None:
        sim_overrides["seed"] = args.seed
    cfg = apply_overrides(cfg, {"sim": sim_overrides})

    driver = SimulationDriver(SimulationConfig.from_dict(cfg))
    listener = ConsoleListener(driver)
    driver.set_listener(listener.on_time_update, listener.on_complete)
    driver.initialize()

    print(f"Playback: {scenario['name']} (horizon={driver.config.simulation_time}, speed={driver.speed:g}x)")
    started_at = time.time()
    driver.start()
    try:
        if args.demo_controls:
            time.sleep(2.0)
            driver.pause()
            time.sleep(2.0)
            if driver.paused:
                ev = driver.step_forward()
                print(f"  stepped: {ev!r}")
                driver.set_speed(driver.speed * 2)
                driver.resume()
        while not listener.done.wait(0.5):
            pass
        driver.join(5.0)
    except KeyboardInterrupt:
        print("Interrupted; stopping.")
        driver.stop()
        driver.join(5.0)

    record = build_run_record(driver, run_name=f"playback {scenario['name']}",
                              started_at=datetime.fromtimestamp(started_at))
    print(f"Run {record.status.value}: arrived={record.total_arrived}, completed={record.total_completed}, "
          f"avg system time={record.avg_system_time:.2f} s, throughput={record.throughput:.4f} tasks/s")
    for st in record.stages:
        print(f"  {st.name:15s} served={st.served:5d}  util={st.utilization * 100:5.1f}%  "
              f"avg wait={st.avg_wait:.2f} s  avg queue={st.avg_queue_length:.2f}")


if __name__ == "__main__":
    main()
