"""Simulation runner for downcue-sim.

This module handles the actual simulation logic, decoupled from display.
It updates a SimulationState object that can be rendered by any display.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from downcue import DownloadEngine, DownloadListener, EngineConfig
from downcue.config import DEFAULT_BUFFER_SIZE, DEFAULT_NOTIFICATION_SIZE
from downcue_sim.scenarios import Scenario, get_scenario

if TYPE_CHECKING:
    from downcue import Job
    from downcue_sim.display import SimulationState

log = logging.getLogger(__name__)


@dataclass
class SimConfig:
    """Configuration for a simulation run."""

    count: int = 20
    size_kb: int = 256
    latency_ms: int = 5  # per chunk read
    latency_jitter: float = 0.2  # ±20% variance
    error_rate: float = 0.0
    cancel_rate: float = 0.0
    duration: float | None = None
    max_concurrent: int = 3
    buffer_size: int = DEFAULT_BUFFER_SIZE
    notification_size: int = DEFAULT_NOTIFICATION_SIZE
    submit_rate: float | None = None  # downloads/second, None = batch
    output_dir: Path | None = None  # None = temporary directory
    keep_files: bool = False
    scenario: str = "single_queue"
    urls: list[str] = field(default_factory=list)
    http_timeout: float = 30.0


class StateListener(DownloadListener):
    """Mirrors engine events into a SimulationState."""

    def __init__(self, state: SimulationState):
        self.state = state

    def on_processor_count_updated(self, processor_count: int) -> None:
        self.state.processor_count = processor_count

    def on_job_scheduled(self, job: Job) -> None:
        self.state.record_scheduled(job)

    def on_job_started(self, job: Job) -> None:
        self.state.record_started(job)
        job.add_progress_listener(self.state.record_progress)

    def on_job_completed(self, job: Job) -> None:
        self.state.record_completed(job.snapshot())

    def on_job_cancelled(self, job: Job) -> None:
        self.state.record_cancelled(job.snapshot())


class SimulationRunner:
    """Runs simulations and updates state for display.

    This class is decoupled from display - it just updates state.
    ``on_tick`` is called from the monitor loop so a display can refresh.

    Usage:
        config = SimConfig(count=100, latency_ms=5)
        state = SimulationState()
        runner = SimulationRunner(config, state)
        try:
            runner.run()
        finally:
            runner.cleanup()
    """

    def __init__(
        self,
        config: SimConfig,
        state: SimulationState,
        on_tick: Callable[[], None] | None = None,
    ):
        self.config = config
        self.state = state
        self.on_tick = on_tick

        self.engine: DownloadEngine | None = None
        self._scenario: Scenario | None = None
        self._output_dir: Path | None = None
        self._temporary_output = False
        self._running = False

    def run(self) -> None:
        """Run the simulation to completion."""
        config = self.config
        self._running = True
        self.state.start_time = time.time()
        self.state.target_count = config.count
        self.state.processor_count = config.max_concurrent
        self.state.size_kb = config.size_kb
        self.state.latency_ms = config.latency_ms
        self.state.error_rate = config.error_rate
        self.state.cancel_rate = config.cancel_rate
        self.state.buffer_size = config.buffer_size
        self.state.notification_size = config.notification_size
        self.state.scenario_name = config.scenario

        if config.output_dir is None:
            self._output_dir = Path(tempfile.mkdtemp(prefix="downcue-sim-"))
            self._temporary_output = True
        else:
            self._output_dir = Path(config.output_dir)

        # Create engine
        self.engine = DownloadEngine(
            self._output_dir,
            EngineConfig(
                buffer_size=config.buffer_size,
                notification_size=config.notification_size,
                processor_count=config.max_concurrent,
            ),
        )
        self.engine.add_listener(StateListener(self.state))

        self._scenario = get_scenario(config.scenario)
        self._scenario.setup(self.engine, config, self.state)

        # Submit work
        self._scenario.submit_workload(self.engine, config, self.state)

        # Monitor until complete
        self._monitor()
        self._settle()
        self._update_state()
        self._running = False

    def _settle(self, timeout: float = 1.0) -> None:
        """Wait for workers that are still finishing after the engine went idle."""
        if self.engine.is_busy():
            return
        self.engine.join(timeout)

    def _monitor(self) -> None:
        """Monitor until all downloads finish or duration exceeded."""
        while self._running:
            self._update_state()
            if self.on_tick:
                self.on_tick()

            # Check completion
            if not self.engine.is_busy():
                break

            # Check duration limit
            if self.config.duration and self._elapsed >= self.config.duration:
                log.debug(f"Duration of {self.config.duration}s exceeded")
                break

            time.sleep(0.05)

    def _update_state(self) -> None:
        """Update simulation state from the engine."""
        if not self.engine:
            return

        self.state.elapsed = self._elapsed
        self.state.waiting = len(self.engine.list_waiting_jobs())
        self.state.active = len(self.engine.list_active_jobs())

    @property
    def _elapsed(self) -> float:
        """Elapsed time since start."""
        return time.time() - self.state.start_time

    @property
    def output_dir(self) -> Path | None:
        return self._output_dir

    def stop(self) -> None:
        """Request simulation stop."""
        self._running = False

    def cleanup(self) -> None:
        """Cancel leftover downloads and release resources. Call after interrupt or completion."""
        if self.engine:
            self.engine.clear_waiting_jobs()
            for job in self.engine.list_active_jobs():
                job.cancel("Simulation stopped")
            self.engine.wait_until_all_downloads_complete(timeout=5.0)
            self.engine.join(timeout=5.0)
            self._update_state()
        if self._scenario:
            self._scenario.teardown()
            self._scenario = None
        if self._temporary_output and self._output_dir and not self.config.keep_files:
            shutil.rmtree(self._output_dir, ignore_errors=True)
        self._running = False
