"""Flaky scenario - failures, cancellations and vetoes.

Exercises every unhappy path of the engine:
- a listener vetoes every tenth request
- some transfers fail partway through (``error_rate``, at least 20%)
- some running downloads are cancelled shortly after they start
  (``cancel_rate``, at least 10%)
- some sources do not report their size
"""

from __future__ import annotations

import random
import threading
from typing import TYPE_CHECKING

from downcue import DownloadListener, Request, RequestRejectedError
from downcue_sim.scenarios import Scenario, ScenarioInfo, pick_failure_offset, submit
from downcue_sim.sources import SimulatedSource

if TYPE_CHECKING:
    import downcue
    from downcue_sim.display import SimulationState
    from downcue_sim.runner import SimConfig

MIN_ERROR_RATE = 0.2
MIN_CANCEL_RATE = 0.1


class RejectEveryTenth(DownloadListener):
    """Vetoes requests whose id ends in 9."""

    def on_request_submitted(self, request: Request) -> None:
        if request.id and request.id.endswith("9"):
            raise RequestRejectedError(f"{request.id} is blocked by policy")


class RandomCanceller(DownloadListener):
    """Cancels a started job after a short delay with probability ``rate``."""

    def __init__(self, rate: float, delay: float):
        self.rate = rate
        self.delay = delay
        self.timers: list[threading.Timer] = []

    def on_job_started(self, job: downcue.Job) -> None:
        if random.random() < self.rate:
            timer = threading.Timer(self.delay, job.cancel, args=("Cancelled by flaky scenario",))
            timer.daemon = True
            self.timers.append(timer)
            timer.start()

    def stop(self) -> None:
        for timer in self.timers:
            timer.cancel()


class FlakyScenario(Scenario):
    """Unreliable sources and impatient users."""

    def __init__(self) -> None:
        self._canceller: RandomCanceller | None = None

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="flaky",
            description="Failures, cancellations and vetoed requests",
        )

    def setup(self, engine: downcue.DownloadEngine, config: SimConfig, state: SimulationState) -> None:
        state.error_rate = max(config.error_rate, MIN_ERROR_RATE)
        state.cancel_rate = max(config.cancel_rate, MIN_CANCEL_RATE)

        # Cancel roughly a third of the way into a download
        size = config.size_kb * 1024
        chunks = max(1, size // config.buffer_size)
        delay = chunks * config.latency_ms / 1000.0 / 3

        self._canceller = RandomCanceller(state.cancel_rate, delay)
        engine.add_listener(RejectEveryTenth())
        engine.add_listener(self._canceller)

    def submit_workload(self, engine: downcue.DownloadEngine, config: SimConfig, state: SimulationState) -> None:
        size = config.size_kb * 1024
        error_rate = max(config.error_rate, MIN_ERROR_RATE)
        for i in range(config.count):
            source = SimulatedSource(
                size,
                latency=config.latency_ms / 1000.0,
                jitter=config.latency_jitter,
                fail_at=pick_failure_offset(size, error_rate),
                known_size=random.random() >= 0.25,
            )
            submit(engine, state, Request(
                target_file_name=f"flaky_{i:04d}.bin",
                content_factory=source,
                id=f"flaky_{i:04d}",
            ))

    def teardown(self) -> None:
        if self._canceller:
            self._canceller.stop()
