# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# simulation.py
# -----------------------------------------------------------------------------
# Purpose:
#   SimulationDriver: owns the clock, event list, service points and results
#   of one run, advances simulated time on a single thread, paces it against
#   the wall clock for human observation, and accepts pause / resume / step /
#   stop / speed commands from other threads.
#
# Design notes:
#   - One condition variable (over a re-entrant lock) guards the run flags and
#     serializes event dispatch, so a step taken from an observer thread can
#     never interleave with the loop's own dispatch.
#   - Pacing starts from the current clock value and advances the clock in
#     small increments while it waits. A pause mid-gap therefore resumes with
#     only the remaining gap, and a live speed change applies to the next
#     increment.
#   - Pacing never changes outcomes: handlers only read the clock after it is
#     set to the dispatched event's time, and the horizon is checked against
#     the last dispatched event time.
#
# Usage:
#   driver = SimulationDriver(config)
#   driver.set_listener(on_time_update=print, on_complete=done)
#   driver.initialize(); driver.start(); ...; driver.join()
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging, threading, time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .arrivals import ArrivalProcess
from .config import SimulationConfig
from .entities import Task
from .errors import SimulationStateError
from .metrics import ResultsAggregator, ResultsSnapshot, StageStats
from .network import Router
from .queues import Clock, Event, EventQueue, ServicePoint
from .random_streams import RandomStreams
from .stations import make_service_points

LOGGER = logging.getLogger(__name__)


class RunState(str, Enum):
    NEW = "NEW"
    INITIALIZED = "INITIALIZED"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


TERMINAL_STATES = (RunState.COMPLETED, RunState.CANCELLED, RunState.FAILED)


@dataclass(frozen=True)
class EngineSnapshot:
    time: float
    state: RunState
    speed: float
    events_processed: int
    pending_events: int
    results: ResultsSnapshot
    stages: Dict[str, StageStats]
    # Completed tasks as of `results` (empty when retain_tasks is off)
    tasks: List[Task] = field(default_factory=list)


def time_update_notifier(driver: "SimulationDriver",
                         on_time_update: Callable[[float], None]) -> Callable[[], None]:
    """Zero-argument callable that reports the driver's current time to `on_time_update`."""
    def notify():
        on_time_update(driver.clock.now())
    return notify


class SimulationDriver:
    """Runs one simulation at a time; call initialize() again for a fresh run."""

    def __init__(self, config: SimulationConfig | None = None,
                 streams: RandomStreams | None = None, realtime: bool = True):
        self.config = config or SimulationConfig()
        self.realtime = realtime
        self._injected_streams = streams
        self.clock = Clock()
        self.fel = EventQueue()
        self.results = ResultsAggregator(self.config.retain_tasks)
        self.stations: Dict[str, ServicePoint] = {}
        self.arrivals: Optional[ArrivalProcess] = None
        self.router: Optional[Router] = None
        self.speed = self.config.clamp_speed(self.config.speed)
        self.previous_event_time = 0.0
        self.events_processed = 0
        self.error: Optional[BaseException] = None
        self._cond = threading.Condition(threading.RLock())
        self._thread: Optional[threading.Thread] = None
        self._initialized = False
        self._started = False
        self._running = False
        self._paused = False
        self._outcome: Optional[RunState] = None
        self._on_time_update: Optional[Callable[[float], None]] = None
        self._on_complete: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------ setup
    def set_listener(self, on_time_update: Callable[[float], None] | None = None,
                     on_complete: Callable[[], None] | None = None):
        """Register callbacks; both run on the driver thread."""
        with self._cond:
            self._on_time_update = on_time_update
            self._on_complete = on_complete

    def initialize(self, config: SimulationConfig | None = None):
        """Reset every component and schedule the first arrival."""
        with self._cond:
            if self._started and self._outcome is None:
                raise SimulationStateError("stop the current run before re-initializing")
            if config is not None:
                self.config = config
            self.config.validate()
            streams = self._injected_streams or RandomStreams(self.config.seed)
            self.clock.reset()
            self.fel.clear()
            self.results.retain_tasks = self.config.retain_tasks
            self.results.reset()
            self.stations = make_service_points(self.config, streams)
            self.arrivals = ArrivalProcess(self.config, streams.get("arrivals"))
            self.router = Router(self.clock, self.fel, self.stations, self.results, self.arrivals)
            self.speed = self.config.clamp_speed(self.config.speed)
            self.previous_event_time = 0.0
            self.events_processed = 0
            self.error = None
            self._thread = None
            self._started = False
            self._running = False
            self._paused = False
            self._outcome = None
            self._initialized = True
            self.router.schedule_next_arrival()
        LOGGER.info(f"Initialized run: horizon={self.config.simulation_time}, "
                    f"cpu_nodes={self.config.num_cpu_nodes}, gpu_nodes={self.config.num_gpu_nodes}, "
                    f"seed={self.config.seed}")

    # -------------------------------------------------------------- lifecycle
    def start(self) -> threading.Thread:
        """Run the event loop on a background thread."""
        self._begin()
        self._thread = threading.Thread(target=self._loop, name="simulation-driver", daemon=True)
        self._thread.start()
        return self._thread

    def run(self):
        """Run the event loop on the calling thread until it finishes."""
        self._begin()
        self._loop()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for a background run; True once the loop has exited."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            return not thread.is_alive()
        return self.state in TERMINAL_STATES

    def pause(self):
        with self._cond:
            self._require_initialized()
            if self._outcome is not None:
                LOGGER.debug(f"pause ignored; run already {self._outcome.value}")
                return
            self._paused = True
            self._cond.notify_all()
        LOGGER.info(f"Paused at t={self.clock.now():.3f}")

    def resume(self):
        with self._cond:
            self._require_initialized()
            if self._outcome is not None:
                LOGGER.debug(f"resume ignored; run already {self._outcome.value}")
                return
            self._paused = False
            self._cond.notify_all()
        LOGGER.info(f"Resumed at t={self.clock.now():.3f}")

    def stop(self):
        """Request cancellation; the loop exits after the event being dispatched, if any."""
        with self._cond:
            self._require_initialized()
            if self._outcome is not None:
                return
            if not self._started:
                # Nothing is running, so there is no loop left to exit
                self._outcome = RunState.CANCELLED
                self.results.set_total_elapsed(self.clock.now())
            self._running = False
            self._cond.notify_all()
        LOGGER.info(f"Stop requested at t={self.clock.now():.3f}")

    def step_forward(self) -> Optional[Event]:
        """Dispatch exactly one event while paused; None when no events remain."""
        with self._cond:
            self._require_initialized()
            if not self._paused or self._outcome is not None or (self._started and not self._running):
                raise SimulationStateError("step_forward is only valid while paused")
            ev = self._dispatch_next()
            now = self.clock.now()
        if ev is not None:
            LOGGER.debug(f"Stepped {ev!r}")
            self._notify_time(now)
        return ev

    def set_speed(self, multiplier: float) -> float:
        """Set the pacing multiplier, clamped to the configured range; returns the value applied."""
        speed = self.config.clamp_speed(multiplier)
        if speed != multiplier:
            LOGGER.debug(f"Speed {multiplier} clamped to {speed}")
        with self._cond:
            self.speed = speed
        return speed

    # ---------------------------------------------------------------- queries
    @property
    def state(self) -> RunState:
        with self._cond:
            if self._outcome is not None:
                return self._outcome
            if not self._initialized:
                return RunState.NEW
            if self._paused:
                return RunState.PAUSED
            if self._running:
                return RunState.RUNNING
            return RunState.INITIALIZED

    @property
    def running(self) -> bool:
        with self._cond:
            return self._running

    @property
    def paused(self) -> bool:
        with self._cond:
            return self._paused

    def snapshot(self) -> EngineSnapshot:
        """Consistent view of the whole engine, safe to call from any thread."""
        with self._cond:
            now = self.clock.now()
            return EngineSnapshot(
                time=now,
                state=self.state,
                speed=self.speed,
                events_processed=self.events_processed,
                pending_events=len(self.fel),
                results=self.results.snapshot(),
                stages={name: sp.stats(now) for name, sp in self.stations.items()},
                tasks=self.results.tasks(),
            )

    def summary(self) -> Dict:
        snap = self.snapshot()
        out = snap.results.summary()
        out["state"] = snap.state.value
        out["events_processed"] = snap.events_processed
        out["station_utilization"] = {name: st.utilization for name, st in snap.stages.items()}
        out["stations"] = {name: st.to_dict() for name, st in snap.stages.items()}
        return out

    # --------------------------------------------------------------- internals
    def _require_initialized(self):
        if not self._initialized:
            raise SimulationStateError("initialize() must be called first")

    def _begin(self):
        with self._cond:
            self._require_initialized()
            if self._started or self._outcome is not None:
                raise SimulationStateError(f"run cannot start from state {self.state.value}")
            self._started = True
            self._running = True
        LOGGER.info(f"Simulation started (realtime={self.realtime}, speed={self.speed})")

    def _loop(self):
        horizon = self.config.simulation_time
        try:
            while True:
                with self._cond:
                    self._cond.wait_for(lambda: not self._paused or not self._running)
                    if not self._running:
                        break
                    next_t = self.fel.peek_time()
                    if next_t is None or self.previous_event_time > horizon:
                        break
                if self.realtime and not self._pace(next_t):
                    # Paused or stopped mid-gap; re-evaluate from the top
                    continue
                with self._cond:
                    if not self._running or self._paused or self.fel.peek_time() != next_t:
                        continue
                    self._dispatch_next()
                    now = self.clock.now()
                self._notify_time(now)
        except BaseException as exc:
            with self._cond:
                self._outcome = RunState.FAILED
                self.error = exc
            LOGGER.exception(f"Simulation failed at t={self.clock.now():.3f}")
            raise
        finally:
            with self._cond:
                stopped = not self._running
                self._running = False
                if self._outcome is None:
                    self._outcome = RunState.CANCELLED if stopped else RunState.COMPLETED
                self.results.set_total_elapsed(self.clock.now())
                outcome = self._outcome
            snap = self.results.snapshot()
            LOGGER.info(f"Simulation {outcome.value.lower()} at t={self.clock.now():.3f}: "
                        f"arrived={snap.arrived}, completed={snap.completed}, "
                        f"events={self.events_processed}")
            self._notify_complete()

    def _pace(self, target: float) -> bool:
        """
        Block in wall-clock time until the clock reaches `target`, moving the
        clock forward in increments of at most `pacing_interval` real seconds.
        Returns False if a pause or stop interrupts the wait.
        """
        interval = self.config.pacing_interval
        while True:
            with self._cond:
                if not self._running or self._paused:
                    return False
                now = self.clock.now()
                if now >= target:
                    return True
                # Re-read the speed every increment so slider changes apply immediately
                speed = self.speed
                chunk = min(interval, (target - now) / speed)
                started = time.monotonic()
                if self._cond.wait_for(lambda: not self._running or self._paused, timeout=chunk):
                    return False
                if self.clock.now() != now:
                    # A step was dispatched while we waited
                    return False
                slept = time.monotonic() - started
                self.clock.advance_to(min(target, now + slept * speed))
                t = self.clock.now()
            self._notify_time(t)

    def _dispatch_next(self) -> Optional[Event]:
        ev = self.fel.next()
        if ev is None:
            return None
        self.clock.advance_to(ev.t)
        self.router.dispatch(ev)
        self.previous_event_time = ev.t
        self.events_processed += 1
        return ev

    def _notify_time(self, t: float):
        cb = self._on_time_update
        if cb is not None:
            cb(t)

    def _notify_complete(self):
        cb = self._on_complete
        if cb is not None:
            cb()


def run_once(cfg: Dict) -> Dict:
    """Run a single replication headless (no pacing) and return its summary plus time series."""
    config = SimulationConfig.from_dict(cfg)
    driver = SimulationDriver(config, realtime=False)
    driver.initialize()
    driver.run()
    out = driver.summary()
    out["time_series"] = driver.results.series()
    return out
